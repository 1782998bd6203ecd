"""Process-wide runtime state shared by all checks."""

from dataclasses import dataclass, field

from webpage_monitor.core.alert_cache import AlertCache
from webpage_monitor.core.guard import CheckGuard
from webpage_monitor.core.throttle import EndpointThrottle


@dataclass
class MonitorState:
    """Dedup cache, guard flags and webhook spacing for one process.

    Nothing here is persisted except what the orchestrator copies out of
    ``alert_cache`` into each target's alert history.
    """

    alert_cache: AlertCache = field(default_factory=AlertCache)
    guard: CheckGuard = field(default_factory=CheckGuard)
    throttle: EndpointThrottle = field(default_factory=EndpointThrottle)

    def forget(self, target_id: str) -> None:
        """Drop runtime state for a deleted target."""
        self.alert_cache.forget(target_id)
        self.guard.forget(target_id)
