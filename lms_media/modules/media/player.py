"""Minimal embeddable player pages served at the iframe urls."""
import uuid
from html import escape
from fastapi import APIRouter, Depends
from fastapi.responses import HTMLResponse
from lms_media.core.security import get_optional_principal, Principal
from lms_media.modules.media.router import svc
from lms_media.modules.media.service import MediaService

router = APIRouter()

def render_player(media: dict) -> str:
    tag = "audio" if media.get("media_type") == "audio" else "video"
    sources = "\n".join(
        f'    <source src="{escape(s["src"])}" data-bitrate="{s["bitrate"]}" label="{escape(s["label"])}">'
        for s in media.get("media_sources") or []
    )
    tracks = "\n".join(
        f'    <track kind="{escape(t["kind"])}" srclang="{escape(t["locale"])}" label="{escape(t["label"])}" src="{escape(t["src"])}">'
        for t in media.get("media_tracks") or []
    )
    title = escape(media["title"])
    return f"""<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="utf-8">
  <title>{title}</title>
  <style>html,body{{margin:0;height:100%;background:#000}}{tag}{{width:100%;height:100%}}</style>
</head>
<body>
  <{tag} controls preload="metadata" title="{title}" data-media-id="{escape(media["media_id"])}">
{sources}
{tracks}
  </{tag}>
</body>
</html>
"""

@router.get("/media_objects_iframe/{media_id}", name="media_object_iframe", response_class=HTMLResponse)
async def media_object_iframe(
    media_id: str,
    principal: Principal | None = Depends(get_optional_principal),
    service: MediaService = Depends(svc),
):
    media = await service.show_by_media_id(principal, media_id)
    return HTMLResponse(render_player(media))

@router.get("/media_attachments_iframe/{attachment_id}", name="media_attachment_iframe", response_class=HTMLResponse)
async def media_attachment_iframe(
    attachment_id: uuid.UUID,
    principal: Principal | None = Depends(get_optional_principal),
    service: MediaService = Depends(svc),
):
    media = await service.show_by_attachment(principal, attachment_id)
    return HTMLResponse(render_player(media))
