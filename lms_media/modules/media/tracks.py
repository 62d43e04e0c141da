import uuid
from dataclasses import dataclass
from sqlalchemy.ext.asyncio import AsyncSession
from lms_media.core.security import Principal
from lms_media.modules.files.models import Attachment, MediaTrack
from lms_media.modules.files.repository import MediaTrackRepository
from lms_media.modules.media.models import MediaObject
from lms_media.modules.permissions.policy import PermissionPolicy

@dataclass(frozen=True)
class EffectiveTrack:
    track: MediaTrack
    inherited: bool

class TrackResolver:
    """Caption tracks for an attachment, including those of the canonical attachment.

    Every attachment sharing a media id sees its own tracks followed by the
    canonical attachment's tracks. Siblings never see each other's tracks.
    Same-locale duplicates between the two sets are returned as-is.
    """

    def __init__(self, session: AsyncSession, policy: PermissionPolicy):
        self.tracks = MediaTrackRepository(session)
        self.policy = policy

    async def effective_tracks(
        self, org_id: uuid.UUID, attachment: Attachment | None, canonical: Attachment | None
    ) -> list[EffectiveTrack]:
        if attachment is None:
            attachment = canonical
        if attachment is None:
            return []
        result = [EffectiveTrack(t, False) for t in await self.tracks.list_for_attachment(org_id, attachment.id)]
        if canonical is not None and canonical.id != attachment.id:
            result.extend(
                EffectiveTrack(t, True) for t in await self.tracks.list_for_attachment(org_id, canonical.id)
            )
        return result

    async def can_add_captions(
        self, principal: Principal | None, attachment: Attachment | None, media_object: MediaObject | None
    ) -> bool:
        # both rights must hold; a missing object means no rights
        if principal is None or media_object is None:
            return False
        if attachment is not None and not await self.policy.has_right(principal, attachment, "update"):
            return False
        return await self.policy.has_right(principal, media_object, "add_captions")
