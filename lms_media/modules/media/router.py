import uuid
from urllib.parse import quote
from fastapi import APIRouter, Depends, Query, Request, Response
from fastapi.responses import RedirectResponse, StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.background import BackgroundTask
from lms_media.core.db import get_session
from lms_media.core.errors import NotFound
from lms_media.core.paging import PageRequest, link_header
from lms_media.core.security import get_optional_principal, require_principal, Principal
from lms_media.platform.ports.event_bus import EventBusPort
from lms_media.platform.ports.feature_flags import FeatureFlagsPort
from lms_media.platform.ports.media_provider import MediaProviderPort
from lms_media.platform.provider_registry import get_media_provider, get_feature_flags, get_event_bus
from lms_media.modules.media.schemas import (
    MediaObjectOut, MediaObjectCreate, MediaObjectUpdate, MediaTrackCreate, MediaTrackOut,
)
from lms_media.modules.media.service import MediaService, EXCLUDABLE
from lms_media.modules.media.urls import MediaUrls
from lms_media.modules.media.visibility import ListQuery

router = APIRouter()

def svc(
    request: Request,
    session: AsyncSession = Depends(get_session),
    provider: MediaProviderPort = Depends(get_media_provider),
    flags: FeatureFlagsPort = Depends(get_feature_flags),
    bus: EventBusPort = Depends(get_event_bus),
) -> MediaService:
    return MediaService(session, provider, flags, bus, MediaUrls(request))

def excluded(
    exclude: list[str] = Query([]),
    exclude_brackets: list[str] = Query([], alias="exclude[]"),
) -> frozenset[str]:
    return frozenset(exclude + exclude_brackets) & EXCLUDABLE

def _scope_id(raw: str | None, what: str) -> uuid.UUID | None:
    if raw is None or raw == "":
        return None
    try:
        return uuid.UUID(raw)
    except ValueError:
        raise NotFound(f"{what} not found")

@router.get("/media_objects", response_model=list[MediaObjectOut], response_model_exclude_unset=True)
@router.get("/media_attachments", response_model=list[MediaObjectOut], response_model_exclude_unset=True)
async def list_media_objects(
    request: Request,
    response: Response,
    course_id: str | None = None,
    group_id: str | None = None,
    sort: str | None = None,
    order: str | None = None,
    order_by: str | None = None,
    order_dir: str | None = None,
    search_term: str | None = None,
    page: int = 1,
    per_page: int | None = None,
    exclude: frozenset[str] = Depends(excluded),
    principal: Principal = Depends(require_principal),
    service: MediaService = Depends(svc),
):
    query = ListQuery(
        course_id=_scope_id(course_id, "Course"),
        group_id=_scope_id(group_id, "Group"),
        search_term=search_term or None,
        sort=(sort or order_by or "title").lower(),
        order=(order or order_dir or "asc").lower(),
        page=PageRequest.build(page, per_page),
    )
    items, result = await service.list(principal, query, exclude)
    base = str(request.url.replace(query=""))
    response.headers["Link"] = link_header(base, list(request.query_params.multi_items()), result.page, result.has_next)
    return items

@router.get("/media_objects/{media_id}", response_model=MediaObjectOut, response_model_exclude_unset=True)
async def show_media_object(
    media_id: str,
    attachment_id: uuid.UUID | None = None,
    exclude: frozenset[str] = Depends(excluded),
    principal: Principal | None = Depends(get_optional_principal),
    service: MediaService = Depends(svc),
):
    if attachment_id is not None:
        return await service.show_by_attachment(principal, attachment_id, exclude)
    return await service.show_by_media_id(principal, media_id, exclude)

@router.get("/media_attachments/{attachment_id}", response_model=MediaObjectOut, response_model_exclude_unset=True)
async def show_media_attachment(
    attachment_id: uuid.UUID,
    exclude: frozenset[str] = Depends(excluded),
    principal: Principal | None = Depends(get_optional_principal),
    service: MediaService = Depends(svc),
):
    return await service.show_by_attachment(principal, attachment_id, exclude)

@router.put("/media_objects/{media_id}", response_model=MediaObjectOut, response_model_exclude_unset=True)
async def update_media_object(
    media_id: str,
    payload: MediaObjectUpdate,
    principal: Principal = Depends(require_principal),
    service: MediaService = Depends(svc),
):
    return await service.update_title(principal, payload.user_entered_title, media_id=media_id)

@router.put("/media_attachments/{attachment_id}", response_model=MediaObjectOut, response_model_exclude_unset=True)
async def update_media_attachment(
    attachment_id: uuid.UUID,
    payload: MediaObjectUpdate,
    principal: Principal = Depends(require_principal),
    service: MediaService = Depends(svc),
):
    return await service.update_title(principal, payload.user_entered_title, attachment_id=attachment_id)

@router.post("/media_objects", response_model=MediaObjectOut, response_model_exclude_unset=True)
@router.post("/media_attachments", response_model=MediaObjectOut, response_model_exclude_unset=True)
async def create_media_object(
    payload: MediaObjectCreate,
    principal: Principal = Depends(require_principal),
    service: MediaService = Depends(svc),
):
    return await service.create(principal, payload)

@router.get("/media_objects/{media_id}/thumbnail")
async def media_object_thumbnail(
    media_id: str,
    width: int | None = Query(None, ge=1),
    height: int | None = Query(None, ge=1),
    service: MediaService = Depends(svc),
):
    return RedirectResponse(service.thumbnail_url(media_id, width, height), status_code=302)

@router.get("/media_objects/{media_object_id}/redirect", name="media_object_redirect")
async def media_object_redirect(
    media_object_id: uuid.UUID,
    bitrate: str | None = None,
    principal: Principal | None = Depends(get_optional_principal),
    service: MediaService = Depends(svc),
):
    target = await service.redirect_target(principal, media_object_id, bitrate)
    disposition = f"attachment; filename*=UTF-8''{quote(target.filename)}"
    return StreamingResponse(
        target.stream.aiter_bytes(),
        media_type=target.content_type,
        headers={"Content-Disposition": disposition},
        background=BackgroundTask(target.stream.aclose),
    )

@router.post("/media_attachments/{attachment_id}/media_tracks", response_model=MediaTrackOut, status_code=201)
async def create_media_track(
    request: Request,
    attachment_id: uuid.UUID,
    payload: MediaTrackCreate,
    principal: Principal = Depends(require_principal),
    service: MediaService = Depends(svc),
):
    track = await service.create_track(principal, attachment_id, payload)
    return {
        "id": track.id,
        "kind": track.kind,
        "locale": track.locale,
        "label": track.locale,
        "src": MediaUrls(request).track(attachment_id, track.id),
        "inherited": False,
    }

@router.get("/media_attachments/{attachment_id}/media_tracks/{track_id}", name="media_track_content")
async def media_track_content(
    attachment_id: uuid.UUID,
    track_id: uuid.UUID,
    principal: Principal | None = Depends(get_optional_principal),
    service: MediaService = Depends(svc),
):
    track = await service.track_content(principal, attachment_id, track_id)
    return Response(content=track.content, media_type="text/vtt")
