import uuid
import logging
from typing import Any, Sequence
from sqlalchemy import select, func, or_, and_, literal
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from lms_media.core.config import settings
from lms_media.modules.media.models import MediaObject, MediaType, DEFAULT_TITLE
from lms_media.modules.directory.context import ContextRef

log = logging.getLogger(__name__)

# Mutable attributes accepted by find_or_create
TITLE_FIELDS = ("title", "user_entered_title")
MUTABLE_FIELDS = TITLE_FIELDS + ("media_type",)

SORT_COLUMNS = ("title", "created_at")

def truncate_title(value: str | None) -> str | None:
    if value is None:
        return None
    return value[: settings.TITLE_MAX_LENGTH]

def effective_title_expr():
    """SQL mirror of MediaObject.effective_title, used for search and sort."""
    return func.coalesce(
        func.nullif(MediaObject.user_entered_title, ""),
        func.nullif(MediaObject.title, ""),
        literal(DEFAULT_TITLE),
    )

class MediaObjectRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, org_id: uuid.UUID, media_object_id: uuid.UUID) -> MediaObject | None:
        q = select(MediaObject).where(MediaObject.id == media_object_id, MediaObject.org_id == org_id)
        res = await self.session.execute(q)
        return res.scalar_one_or_none()

    async def by_media_id(self, org_id: uuid.UUID, media_id: str) -> Sequence[MediaObject]:
        # Soft-deleted rows included: used for existence checks before calling the provider
        q = select(MediaObject).where(
            MediaObject.org_id == org_id,
            MediaObject.media_id == media_id,
        ).order_by(MediaObject.created_at.asc(), MediaObject.id.asc())
        res = await self.session.execute(q)
        return res.scalars().all()

    async def get_in_context(self, org_id: uuid.UUID, context: ContextRef, media_id: str) -> MediaObject | None:
        q = select(MediaObject).where(
            MediaObject.org_id == org_id,
            MediaObject.context_type == context.kind.value,
            MediaObject.context_id == context.id,
            MediaObject.media_id == media_id,
        )
        res = await self.session.execute(q)
        return res.scalar_one_or_none()

    @staticmethod
    def _clean_attrs(attrs: dict[str, Any]) -> dict[str, Any]:
        data: dict[str, Any] = {}
        for k in MUTABLE_FIELDS:
            v = attrs.get(k)
            if v is None:
                continue
            if k in TITLE_FIELDS:
                v = truncate_title(v)
            elif k == "media_type":
                mt = MediaType.coerce(v)
                v = mt.value if mt else None
                if v is None:
                    continue
            data[k] = v
        return data

    async def find_or_create(
        self,
        org_id: uuid.UUID,
        context: ContextRef,
        media_id: str,
        attrs: dict[str, Any],
        *,
        user_id: uuid.UUID | None = None,
    ) -> tuple[MediaObject, bool]:
        """Create-or-update-title for a (context, media_id) pair.

        Returns the row and whether it was newly created. Concurrent creators
        race on the unique index; the loser re-reads the winner's row and
        applies its attributes as an update.
        """
        data = self._clean_attrs(attrs)
        obj = await self.get_in_context(org_id, context, media_id)
        if obj is None:
            obj = MediaObject(org_id=org_id, media_id=media_id, user_id=user_id, **data)
            obj.context = context
            try:
                async with self.session.begin_nested():
                    self.session.add(obj)
                    await self.session.flush()
                return obj, True
            except IntegrityError:
                log.info(f"find_or_create lost race for {context.code}/{media_id}; reloading")
                obj = await self.get_in_context(org_id, context, media_id)
                if obj is None:
                    raise
        for k, v in data.items():
            setattr(obj, k, v)
        await self.session.flush()
        return obj, False

    async def update_fields(self, obj: MediaObject, **data) -> MediaObject:
        for k, v in self._clean_attrs(data).items():
            setattr(obj, k, v)
        await self.session.flush()
        return obj

    async def link_attachment(self, obj: MediaObject, attachment_id: uuid.UUID) -> bool:
        """Set the attachment link once; an existing link is never replaced."""
        if obj.attachment_id is not None:
            return False
        obj.attachment_id = attachment_id
        await self.session.flush()
        return True

    async def list_visible(
        self,
        org_id: uuid.UUID,
        *,
        contexts: Sequence[ContextRef],
        attachment_ids: Sequence[uuid.UUID] = (),
        search_term: str | None = None,
        sort: str = "title",
        order: str = "asc",
        limit: int = 50,
        offset: int = 0,
    ) -> Sequence[MediaObject]:
        scope = [
            and_(MediaObject.context_type == c.kind.value, MediaObject.context_id == c.id)
            for c in contexts
        ]
        if attachment_ids:
            scope.append(MediaObject.attachment_id.in_(list(attachment_ids)))
        if not scope:
            return []

        conditions = [
            MediaObject.org_id == org_id,
            MediaObject.workflow_state != "deleted",
            or_(*scope),
        ]
        title = effective_title_expr()
        if search_term:
            conditions.append(func.lower(title).contains(search_term.lower(), autoescape=True))

        key = func.lower(title) if sort == "title" else MediaObject.created_at
        if order == "desc":
            ordering = (key.desc(), MediaObject.id.desc())
        else:
            ordering = (key.asc(), MediaObject.id.asc())

        q = select(MediaObject).where(and_(*conditions)).order_by(*ordering).limit(limit).offset(offset)
        res = await self.session.execute(q)
        return res.scalars().all()
