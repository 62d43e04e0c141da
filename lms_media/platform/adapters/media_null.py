import logging
from urllib.parse import urlencode
from lms_media.core.errors import UpstreamFetchError
from lms_media.platform.ports.media_provider import MediaProviderPort, ProviderSource, RemoteStream
from lms_media.core.config import settings

log = logging.getLogger("media.provider")

class NullMediaProvider(MediaProviderPort):
    """Provider for local setups with no media hosting behind it."""

    def __init__(self, base_url: str | None = None):
        self.base_url = (base_url or settings.MEDIA_PROVIDER_URL).rstrip("/")

    async def list_sources(self, media_id: str) -> list[ProviderSource]:
        return []

    def thumbnail_url(self, media_id: str, width: int, height: int) -> str:
        return f"{self.base_url}/entries/{media_id}/thumbnail?{urlencode({'width': width, 'height': height})}"

    async def asset_exists(self, media_id: str) -> bool:
        return False

    async def open_stream(self, url: str) -> RemoteStream:
        log.warning(f"[NULL PROVIDER] refusing to stream {url}")
        raise UpstreamFetchError(404, "No media provider configured")
