from lms_media.platform.ports.feature_flags import FeatureFlagsPort
from lms_media.core.config import settings

class SettingsFeatureFlags(FeatureFlagsPort):
    """Flags switched on globally through the FEATURE_FLAGS setting."""

    def __init__(self, flags: set[str] | None = None):
        self.flags = set(settings.FEATURE_FLAGS if flags is None else flags)

    def enabled(self, flag: str, scope: str | None = None) -> bool:
        # scope is accepted for interface parity; settings flags are site-wide
        return flag in self.flags
