import logging
from typing import Callable
from lms_media.core.errors import UpstreamFetchError
from lms_media.platform.ports.media_provider import MediaProviderPort, ProviderSource
from lms_media.modules.media.models import MediaObject

log = logging.getLogger(__name__)

REDIRECT_FLAG = "authenticated_iframe_content"

def bitrate_label(bitrate: int) -> str:
    return f"{bitrate // 1000} kbps"

class SourceResolver:
    """Playable sources for a media object.

    With ``use_redirect`` set, urls point at our own redirect endpoint
    (parameterized by bitrate) instead of the provider's direct url, so the
    provider fetch happens at request time behind our auth.
    """

    def __init__(
        self,
        provider: MediaProviderPort,
        *,
        use_redirect: bool = False,
        redirect_url: Callable[[MediaObject, int], str] | None = None,
    ):
        self.provider = provider
        self.use_redirect = use_redirect and redirect_url is not None
        self.redirect_url = redirect_url

    async def sources(self, media_object: MediaObject) -> list[dict]:
        try:
            provided = await self.provider.list_sources(media_object.media_id)
        except UpstreamFetchError as e:
            # only the redirect path surfaces provider failures
            log.warning(f"Sources unavailable for {media_object.media_id}: {e.status_code} {e.detail}")
            return []
        out = []
        for src in provided:
            url = src["url"]
            # unsaved objects have no id to redirect through
            if self.use_redirect and media_object.id is not None:
                url = self.redirect_url(media_object, src["bitrate"])
            out.append({
                "bitrate": src["bitrate"],
                "label": bitrate_label(src["bitrate"]),
                "url": url,
                "src": url,
            })
        return out

    async def select_source(self, media_object: MediaObject, bitrate: str | None) -> ProviderSource | None:
        """Source matching ``bitrate``, else the provider's first one."""
        sources = await self.provider.list_sources(media_object.media_id)
        if not sources:
            return None
        if bitrate is not None:
            for src in sources:
                if str(src["bitrate"]) == str(bitrate).strip():
                    return src
            log.info(f"bitrate {bitrate!r} not offered for {media_object.media_id}; using first source")
        return sources[0]
