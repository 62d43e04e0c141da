from typing import Protocol, runtime_checkable

@runtime_checkable
class FeatureFlagsPort(Protocol):
    def enabled(self, flag: str, scope: str | None = None) -> bool: ...
