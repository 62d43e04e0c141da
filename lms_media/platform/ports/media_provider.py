from typing import AsyncIterator, Protocol, TypedDict, runtime_checkable

class ProviderSource(TypedDict):
    bitrate: int
    url: str

class RemoteStream(Protocol):
    headers: dict

    def aiter_bytes(self) -> AsyncIterator[bytes]: ...

    async def aclose(self) -> None: ...

@runtime_checkable
class MediaProviderPort(Protocol):
    async def list_sources(self, media_id: str) -> list[ProviderSource]: ...

    def thumbnail_url(self, media_id: str, width: int, height: int) -> str: ...

    async def asset_exists(self, media_id: str) -> bool: ...

    async def open_stream(self, url: str) -> RemoteStream:
        """Open ``url`` for streaming.

        Raises ``UpstreamFetchError`` when the remote answers with a non-2xx
        status, before any bytes are handed to the caller.
        """
        ...
