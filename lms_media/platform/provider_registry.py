from lms_media.core.config import settings
from lms_media.platform.ports.event_bus import EventBusPort
from lms_media.platform.adapters.bus_noop import NoopEventBus
from lms_media.platform.adapters.bus_redis import RedisEventBus
from lms_media.platform.ports.media_provider import MediaProviderPort
from lms_media.platform.adapters.media_null import NullMediaProvider
from lms_media.platform.adapters.media_http import HttpMediaProvider
from lms_media.platform.ports.feature_flags import FeatureFlagsPort
from lms_media.platform.adapters.flags_settings import SettingsFeatureFlags

class ProviderRegistry:
    _event_bus: EventBusPort | None = None
    _media_provider: MediaProviderPort | None = None
    _feature_flags: FeatureFlagsPort | None = None

    @classmethod
    def event_bus(cls) -> EventBusPort:
        if cls._event_bus is None:
            prov = (settings.EVENT_BUS_PROVIDER or "noop").lower()
            if prov == "redis":
                cls._event_bus = RedisEventBus()
            else:
                cls._event_bus = NoopEventBus()
        return cls._event_bus

    @classmethod
    def media_provider(cls) -> MediaProviderPort:
        if cls._media_provider is None:
            if settings.MEDIA_PROVIDER == "http":
                cls._media_provider = HttpMediaProvider()
            else:
                cls._media_provider = NullMediaProvider()
        return cls._media_provider

    @classmethod
    def feature_flags(cls) -> FeatureFlagsPort:
        if cls._feature_flags is None:
            cls._feature_flags = SettingsFeatureFlags()
        return cls._feature_flags

    @classmethod
    async def close(cls) -> None:
        for provider in (cls._media_provider, cls._event_bus):
            closer = getattr(provider, "close", None)
            if closer is not None:
                await closer()
        cls._event_bus = None
        cls._media_provider = None
        cls._feature_flags = None

registry = ProviderRegistry()

# FastAPI dependency shims so routes can be overridden in tests
def get_media_provider() -> MediaProviderPort:
    return registry.media_provider()

def get_feature_flags() -> FeatureFlagsPort:
    return registry.feature_flags()

def get_event_bus() -> EventBusPort:
    return registry.event_bus()
