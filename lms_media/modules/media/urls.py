import uuid
from fastapi import Request
from starlette.datastructures import URL
from lms_media.core.config import settings

class MediaUrls:
    """Absolute urls for media routes, built from route names."""

    def __init__(self, request: Request):
        self.request = request

    def _url(self, name: str, query: dict | None = None, **path_params) -> str:
        url = URL(str(self.request.url_for(name, **path_params)))
        if settings.PUBLIC_BASE_URL:
            url = URL(settings.PUBLIC_BASE_URL.rstrip("/") + url.path)
        if query:
            url = url.include_query_params(**query)
        return str(url)

    def media_iframe(self, media_id: str) -> str:
        return self._url("media_object_iframe", media_id=media_id)

    def attachment_iframe(self, attachment_id: uuid.UUID) -> str:
        return self._url("media_attachment_iframe", attachment_id=str(attachment_id))

    def redirect(self, media_object, bitrate: int) -> str:
        return self._url("media_object_redirect", {"bitrate": bitrate}, media_object_id=str(media_object.id))

    def track(self, attachment_id: uuid.UUID, track_id: uuid.UUID) -> str:
        return self._url("media_track_content", attachment_id=str(attachment_id), track_id=str(track_id))
