import logging
from urllib.parse import quote, urlencode
import httpx
from lms_media.core.config import settings
from lms_media.core.errors import UpstreamFetchError
from lms_media.platform.ports.media_provider import MediaProviderPort, ProviderSource, RemoteStream

log = logging.getLogger("media.provider")

class HttpMediaProvider(MediaProviderPort):
    """REST client for the external media hosting service.

    Endpoints used:
        GET {base}/entries/{media_id}            -> 200 when the asset exists
        GET {base}/entries/{media_id}/sources    -> [{"bitrate": int, "url": str}, ...]
        GET {base}/entries/{media_id}/thumbnail  (browser redirect target only)

    Every call uses the configured timeout; failures are surfaced as
    ``UpstreamFetchError`` and never retried.
    """

    def __init__(
        self,
        base_url: str | None = None,
        token: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = (base_url or settings.MEDIA_PROVIDER_URL).rstrip("/")
        token = token if token is not None else settings.MEDIA_PROVIDER_TOKEN
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        self.client = httpx.AsyncClient(
            timeout=timeout or settings.MEDIA_PROVIDER_TIMEOUT_SECONDS,
            headers=headers,
            transport=transport,
            follow_redirects=True,
        )

    def _entry_url(self, media_id: str) -> str:
        return f"{self.base_url}/entries/{quote(media_id, safe='')}"

    async def list_sources(self, media_id: str) -> list[ProviderSource]:
        try:
            resp = await self.client.get(f"{self._entry_url(media_id)}/sources")
        except httpx.RequestError as e:
            log.error(f"Provider transport error listing sources for {media_id}: {e}")
            raise UpstreamFetchError(None, f"Provider unreachable: {e}")
        if resp.status_code >= 400:
            log.error(f"Provider returned {resp.status_code} listing sources for {media_id}")
            raise UpstreamFetchError(resp.status_code)
        sources: list[ProviderSource] = []
        for item in resp.json() or []:
            try:
                sources.append({"bitrate": int(item["bitrate"]), "url": str(item["url"])})
            except (KeyError, TypeError, ValueError):
                log.warning(f"Skipping malformed provider source for {media_id}: {item!r}")
        return sources

    def thumbnail_url(self, media_id: str, width: int, height: int) -> str:
        return f"{self._entry_url(media_id)}/thumbnail?{urlencode({'width': width, 'height': height})}"

    async def asset_exists(self, media_id: str) -> bool:
        try:
            resp = await self.client.get(self._entry_url(media_id))
        except httpx.RequestError as e:
            log.error(f"Provider transport error checking {media_id}: {e}")
            raise UpstreamFetchError(None, f"Provider unreachable: {e}")
        if resp.status_code == 404:
            return False
        if resp.status_code >= 400:
            raise UpstreamFetchError(resp.status_code)
        return True

    async def open_stream(self, url: str) -> RemoteStream:
        req = self.client.build_request("GET", url)
        try:
            resp = await self.client.send(req, stream=True)
        except httpx.RequestError as e:
            log.error(f"Provider transport error streaming {url}: {e}")
            raise UpstreamFetchError(None, f"Provider unreachable: {e}")
        if resp.status_code >= 400:
            await resp.aclose()
            log.error(f"Provider returned {resp.status_code} streaming {url}")
            raise UpstreamFetchError(resp.status_code, "error fetching url")
        return resp

    async def close(self) -> None:
        await self.client.aclose()
