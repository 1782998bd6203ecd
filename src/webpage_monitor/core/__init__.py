"""Core domain layer."""

from webpage_monitor.core.alert_cache import AlertCache, hash_content
from webpage_monitor.core.entities import (
    CheckOutcome,
    CheckResult,
    DispatchReport,
    ExtractKind,
    SelectorRule,
    Target,
    WebhookStatus,
)
from webpage_monitor.core.guard import CheckGuard
from webpage_monitor.core.interfaces import (
    AlertPresenter,
    Extractor,
    Fetcher,
    NotificationService,
    Scheduler,
    TargetStore,
)
from webpage_monitor.core.normalizer import normalize_content, strip_markup
from webpage_monitor.core.novelty import find_new_items, similarity
from webpage_monitor.core.state import MonitorState
from webpage_monitor.core.throttle import EndpointThrottle

__all__ = [
    "Target",
    "SelectorRule",
    "ExtractKind",
    "CheckOutcome",
    "CheckResult",
    "DispatchReport",
    "WebhookStatus",
    "Fetcher",
    "Extractor",
    "TargetStore",
    "AlertPresenter",
    "Scheduler",
    "NotificationService",
    "AlertCache",
    "hash_content",
    "CheckGuard",
    "EndpointThrottle",
    "MonitorState",
    "normalize_content",
    "strip_markup",
    "find_new_items",
    "similarity",
]
