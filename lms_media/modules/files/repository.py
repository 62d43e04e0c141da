import uuid
from typing import Sequence
from sqlalchemy import select, and_, case
from sqlalchemy.ext.asyncio import AsyncSession
from lms_media.modules.files.models import Attachment, MediaTrack
from lms_media.modules.directory.context import ContextRef

# Replacement chains longer than this are treated as broken data
MAX_REPLACEMENT_HOPS = 10

class AttachmentRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, org_id: uuid.UUID, attachment_id: uuid.UUID) -> Attachment | None:
        # Deleted (file_state) attachments are returned too; callers decide what to do with them
        q = select(Attachment).where(Attachment.id == attachment_id, Attachment.org_id == org_id)
        res = await self.session.execute(q)
        return res.scalar_one_or_none()

    async def resolve_replacement(self, org_id: uuid.UUID, attachment: Attachment) -> Attachment:
        """Follow old -> replacement links from a deleted attachment to the live one."""
        current = attachment
        for _ in range(MAX_REPLACEMENT_HOPS):
            if not current.is_deleted or current.replacement_attachment_id is None:
                return current
            nxt = await self.get(org_id, current.replacement_attachment_id)
            if nxt is None:
                return current
            current = nxt
        return current

    async def canonical_for_media(
        self, org_id: uuid.UUID, media_id: str, prefer: ContextRef | None = None
    ) -> Attachment | None:
        # The original upload for a media id is the earliest attachment referencing it,
        # looked for first in ``prefer`` when given
        ordering = [Attachment.created_at.asc(), Attachment.id.asc()]
        if prefer is not None:
            in_context = and_(Attachment.context_type == prefer.kind.value, Attachment.context_id == prefer.id)
            ordering.insert(0, case((in_context, 0), else_=1))
        q = select(Attachment).where(
            Attachment.org_id == org_id,
            Attachment.media_entry_id == media_id,
        ).order_by(*ordering).limit(1)
        res = await self.session.execute(q)
        return res.scalar_one_or_none()

    async def list_in_context(
        self, org_id: uuid.UUID, context: ContextRef, *, with_media: bool = False
    ) -> Sequence[Attachment]:
        # Includes deleted attachments: media objects stay joined to them
        q = select(Attachment).where(
            Attachment.org_id == org_id,
            Attachment.context_type == context.kind.value,
            Attachment.context_id == context.id,
        )
        if with_media:
            q = q.where(Attachment.media_entry_id.is_not(None))
        res = await self.session.execute(q)
        return res.scalars().all()

class MediaTrackRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, org_id: uuid.UUID, **data) -> MediaTrack:
        obj = MediaTrack(org_id=org_id, **data)
        self.session.add(obj)
        await self.session.flush()
        return obj

    async def list_for_attachment(self, org_id: uuid.UUID, attachment_id: uuid.UUID) -> Sequence[MediaTrack]:
        q = select(MediaTrack).where(
            MediaTrack.org_id == org_id,
            MediaTrack.attachment_id == attachment_id,
            MediaTrack.deleted_at.is_(None),
        ).order_by(MediaTrack.created_at.asc(), MediaTrack.id.asc())
        res = await self.session.execute(q)
        return res.scalars().all()
