import uuid
import logging
from dataclasses import dataclass
from sqlalchemy.ext.asyncio import AsyncSession
from lms_media.core.config import settings
from lms_media.core.errors import BadRequest, NotFound, Unauthorized
from lms_media.core.security import Principal, default_org_id
from lms_media.platform.ports.event_bus import EventBusPort
from lms_media.platform.ports.feature_flags import FeatureFlagsPort
from lms_media.platform.ports.media_provider import MediaProviderPort, RemoteStream
from lms_media.modules.directory.context import ContextRef, ContextKind
from lms_media.modules.directory.repository import DirectoryRepository
from lms_media.modules.files.models import Attachment, MediaTrack
from lms_media.modules.files.repository import AttachmentRepository, MediaTrackRepository
from lms_media.modules.media.models import MediaObject
from lms_media.modules.media.repository import MediaObjectRepository
from lms_media.modules.media.schemas import MediaObjectCreate, MediaTrackCreate
from lms_media.modules.media.sources import SourceResolver, REDIRECT_FLAG
from lms_media.modules.media.tracks import TrackResolver
from lms_media.modules.media.urls import MediaUrls
from lms_media.modules.media.visibility import ListQuery, VisibilityResolver, VisiblePage
from lms_media.modules.permissions.policy import PermissionPolicy, EnrollmentPolicy

log = logging.getLogger(__name__)

EXCLUDABLE = frozenset({"sources", "tracks"})
EVENT_TOPIC = "lms.media"

@dataclass
class RedirectTarget:
    stream: RemoteStream
    filename: str
    content_type: str

def _org(principal: Principal | None) -> uuid.UUID:
    return principal.org_id if principal else default_org_id()

class MediaService:
    def __init__(
        self,
        session: AsyncSession,
        provider: MediaProviderPort,
        flags: FeatureFlagsPort,
        bus: EventBusPort,
        urls: MediaUrls,
        policy: PermissionPolicy | None = None,
    ):
        self.session = session
        self.provider = provider
        self.bus = bus
        self.urls = urls
        self.policy = policy or EnrollmentPolicy(session)
        self.repo = MediaObjectRepository(session)
        self.attachments = AttachmentRepository(session)
        self.track_repo = MediaTrackRepository(session)
        self.directory = DirectoryRepository(session)
        self.visibility = VisibilityResolver(session, self.policy)
        self.tracks = TrackResolver(session, self.policy)
        # flag read once, at construction
        self.sources = SourceResolver(
            provider,
            use_redirect=flags.enabled(REDIRECT_FLAG),
            redirect_url=urls.redirect,
        )

    # ---- serialization ----

    async def _canonical(self, org_id: uuid.UUID, mo: MediaObject) -> Attachment | None:
        if mo.attachment_id is not None:
            att = await self.attachments.get(org_id, mo.attachment_id)
            if att is not None:
                return att
        # unsaved objects have no context yet
        prefer = mo.context if mo.context_type is not None else None
        return await self.attachments.canonical_for_media(org_id, mo.media_id, prefer)

    async def serialize(
        self,
        principal: Principal | None,
        mo: MediaObject,
        *,
        attachment: Attachment | None = None,
        exclude: frozenset[str] = frozenset(),
    ) -> dict:
        org_id = _org(principal)
        canonical = await self._canonical(org_id, mo)
        if attachment is not None:
            iframe = self.urls.attachment_iframe(attachment.id)
        else:
            iframe = self.urls.media_iframe(mo.media_id)
        out = {
            "media_id": mo.media_id,
            "title": mo.effective_title,
            "media_type": mo.media_type,
            "created_at": mo.created_at,
            "can_add_captions": await self.tracks.can_add_captions(principal, attachment or canonical, mo),
            "embedded_iframe_url": iframe,
        }
        if "sources" not in exclude:
            out["media_sources"] = await self.sources.sources(mo)
        if "tracks" not in exclude:
            viewer = attachment or canonical
            out["media_tracks"] = [
                {
                    "id": et.track.id,
                    "kind": et.track.kind,
                    "locale": et.track.locale,
                    "label": et.track.locale,
                    "src": self.urls.track(viewer.id, et.track.id),
                    "inherited": et.inherited,
                }
                for et in await self.tracks.effective_tracks(org_id, attachment, canonical)
            ]
        return out

    async def _publish(self, event_type: str, mo: MediaObject) -> None:
        try:
            await self.bus.publish(topic=EVENT_TOPIC, key=str(mo.id), value={
                "event_type": event_type,
                "org_id": str(mo.org_id),
                "media_object_id": str(mo.id),
                "media_id": mo.media_id,
                "context": mo.context.code,
            })
        except Exception:  # noqa
            # the row is already committed; delivery is best-effort
            log.exception(f"Publishing {event_type} for {mo.media_id} failed")

    # ---- lookups ----

    async def _media_for_attachment(self, org_id: uuid.UUID, att: Attachment) -> MediaObject | None:
        candidates = await self.repo.by_media_id(org_id, att.media_entry_id)
        for mo in candidates:
            if mo.context == att.context:
                return mo
        return candidates[0] if candidates else None

    async def _readable_attachment(self, principal: Principal | None, attachment_id: uuid.UUID) -> Attachment:
        att = await self.attachments.get(_org(principal), attachment_id)
        if att is None:
            raise NotFound("Attachment not found")
        att = await self.attachments.resolve_replacement(_org(principal), att)
        if not await self.policy.has_right(principal, att, "read"):
            raise Unauthorized()
        if not att.media_entry_id:
            raise NotFound("Attachment has no media")
        return att

    # ---- operations ----

    async def list(
        self, principal: Principal, query: ListQuery, exclude: frozenset[str] = frozenset()
    ) -> tuple[list[dict], VisiblePage]:
        page = await self.visibility.resolve(principal, query)
        items = [await self.serialize(principal, mo, exclude=exclude) for mo in page.items]
        return items, page

    async def show_by_media_id(
        self, principal: Principal | None, media_id: str, exclude: frozenset[str] = frozenset()
    ) -> dict:
        org_id = _org(principal)
        existing = await self.repo.by_media_id(org_id, media_id)
        if existing:
            # soft-deleted rows are still served on direct lookup
            return await self.serialize(principal, existing[0], exclude=exclude)

        if not await self.provider.asset_exists(media_id):
            raise NotFound("Media object not found")
        if principal is None:
            # nowhere to file it for anonymous viewers; serve an unsaved record
            mo = MediaObject(org_id=org_id, media_id=media_id, workflow_state="active")
            return await self.serialize(principal, mo, exclude=exclude)

        mo, created = await self.repo.find_or_create(
            org_id, ContextRef.user(principal.user_id), media_id, {}, user_id=principal.user_id
        )
        await self.session.commit()
        if created:
            await self._publish("media_object.created", mo)
        return await self.serialize(principal, mo, exclude=exclude)

    async def show_by_attachment(
        self, principal: Principal | None, attachment_id: uuid.UUID, exclude: frozenset[str] = frozenset()
    ) -> dict:
        org_id = _org(principal)
        att = await self._readable_attachment(principal, attachment_id)
        mo = await self._media_for_attachment(org_id, att)
        changed = False
        if mo is None:
            mo, changed = await self.repo.find_or_create(
                org_id, att.context, att.media_entry_id,
                {"title": att.display_name or att.filename, "media_type": att.content_type},
                user_id=att.user_id,
            )
        if mo.attachment_id is None:
            canonical = await self.attachments.canonical_for_media(org_id, mo.media_id, mo.context)
            if canonical is not None:
                await self.repo.link_attachment(mo, canonical.id)
                changed = True
        if changed:
            await self.session.commit()
        return await self.serialize(principal, mo, attachment=att, exclude=exclude)

    async def update_title(
        self,
        principal: Principal,
        title: str,
        *,
        media_id: str | None = None,
        attachment_id: uuid.UUID | None = None,
    ) -> dict:
        org_id = principal.org_id
        attachment = None
        if attachment_id is not None:
            attachment = await self.attachments.get(org_id, attachment_id)
            if attachment is None:
                raise Unauthorized()
            attachment = await self.attachments.resolve_replacement(org_id, attachment)
            if not attachment.media_entry_id or not await self.policy.has_right(principal, attachment, "update"):
                raise Unauthorized()
            mo = await self._media_for_attachment(org_id, attachment)
        else:
            mo = next(
                (o for o in await self.repo.by_media_id(org_id, media_id or "") if o.user_id == principal.user_id),
                None,
            )
        if mo is None:
            raise Unauthorized()
        await self.repo.update_fields(mo, user_entered_title=title)
        await self.session.commit()
        await self._publish("media_object.updated", mo)
        return await self.serialize(principal, mo, attachment=attachment)

    async def create(self, principal: Principal, payload: MediaObjectCreate) -> dict:
        org_id = principal.org_id
        if payload.context_code:
            try:
                context = ContextRef.parse_code(payload.context_code)
            except ValueError:
                raise BadRequest(f"Invalid context_code: {payload.context_code}")
        else:
            context = ContextRef.user(principal.user_id)

        if context.kind is ContextKind.COURSE and await self.directory.get_course(org_id, context.id) is None:
            raise NotFound("Course not found")
        if context.kind is ContextKind.GROUP and await self.directory.get_group(org_id, context.id) is None:
            raise NotFound("Group not found")
        if not await self.policy.has_right(principal, context, "read"):
            raise Unauthorized()

        mo, created = await self.repo.find_or_create(
            org_id,
            context,
            payload.id,
            {"title": payload.title, "user_entered_title": payload.user_entered_title, "media_type": payload.type},
            user_id=principal.user_id,
        )
        await self.session.commit()
        await self._publish("media_object.created" if created else "media_object.updated", mo)
        return await self.serialize(principal, mo, exclude=EXCLUDABLE)

    def thumbnail_url(self, media_id: str, width: int | None, height: int | None) -> str:
        # no lookup: the provider serves thumbnails for ids we have never stored
        return self.provider.thumbnail_url(
            media_id,
            width or settings.THUMBNAIL_DEFAULT_WIDTH,
            height or settings.THUMBNAIL_DEFAULT_HEIGHT,
        )

    async def redirect_target(
        self, principal: Principal | None, media_object_id: uuid.UUID, bitrate: str | None
    ) -> RedirectTarget:
        org_id = _org(principal)
        mo = await self.repo.get(org_id, media_object_id)
        if mo is None:
            raise NotFound("Media object not found")
        att = await self._canonical(org_id, mo)
        allowed = await self.policy.has_right(principal, mo, "read")
        if not allowed and att is not None:
            allowed = await self.policy.has_right(principal, att, "read")
        if not allowed:
            raise Unauthorized()

        src = await self.sources.select_source(mo, bitrate)
        if src is None:
            raise NotFound("No media sources available")
        stream = await self.provider.open_stream(src["url"])
        if att is not None:
            return RedirectTarget(stream, att.display_name or att.filename, att.content_type)
        return RedirectTarget(
            stream,
            mo.effective_title,
            stream.headers.get("content-type", "application/octet-stream"),
        )

    async def create_track(self, principal: Principal, attachment_id: uuid.UUID, payload: MediaTrackCreate) -> MediaTrack:
        org_id = principal.org_id
        att = await self.attachments.get(org_id, attachment_id)
        if att is None or not att.media_entry_id:
            raise NotFound("Attachment not found")
        mo = await self._media_for_attachment(org_id, att)
        if not await self.tracks.can_add_captions(principal, att, mo):
            raise Unauthorized()
        track = await self.track_repo.create(
            org_id, attachment_id=att.id, user_id=principal.user_id, **payload.model_dump()
        )
        await self.session.commit()
        return track

    async def track_content(self, principal: Principal | None, attachment_id: uuid.UUID, track_id: uuid.UUID) -> MediaTrack:
        org_id = _org(principal)
        att = await self._readable_attachment(principal, attachment_id)
        mo = await self._media_for_attachment(org_id, att)
        if mo is not None:
            canonical = await self._canonical(org_id, mo)
        else:
            canonical = await self.attachments.canonical_for_media(org_id, att.media_entry_id, att.context)
        for et in await self.tracks.effective_tracks(org_id, att, canonical):
            if et.track.id == track_id:
                return et.track
        raise NotFound("Media track not found")
