"""Core domain entities."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional
from urllib.parse import urlparse


MIN_INTERVAL_SECONDS = 10
HISTORY_SIZE = 100


class ExtractKind(str, Enum):
    """What to pull out of an element matched by a selector."""

    TEXT = "text"
    HTML = "html"
    ATTR = "attr"


@dataclass
class SelectorRule:
    """CSS selector plus extraction kind."""

    selector: str
    kind: ExtractKind = ExtractKind.TEXT
    attribute: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.selector:
            raise ValueError("Selector cannot be empty")
        self.kind = ExtractKind(self.kind)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"selector": self.selector, "kind": self.kind.value}
        if self.attribute:
            data["attribute"] = self.attribute
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SelectorRule":
        # Exports from the browser extension call the kind "type"
        kind = data.get("kind") or data.get("type") or ExtractKind.TEXT.value
        try:
            kind = ExtractKind(kind)
        except ValueError:
            # Unknown kinds read the element text
            kind = ExtractKind.TEXT

        return cls(
            selector=data.get("selector", ""),
            kind=kind,
            attribute=data.get("attribute"),
        )


@dataclass
class Target:
    """A monitored page with its extraction rules and delivery settings."""

    id: str
    url: str
    name: str = ""
    rules: list[SelectorRule] = field(default_factory=list)
    interval_seconds: int = 60
    enabled: bool = True
    webhook_url: Optional[str] = None
    popup_enabled: bool = True
    audio_enabled: bool = True

    # Updated by the orchestrator only
    last_check: Optional[str] = None
    last_change: Optional[str] = None
    last_content: str = ""
    alert_history: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not self.id:
            raise ValueError("Target id cannot be empty")
        if not self.url:
            raise ValueError("URL cannot be empty")
        if self.interval_seconds < MIN_INTERVAL_SECONDS:
            raise ValueError(
                f"Interval must be at least {MIN_INTERVAL_SECONDS} seconds"
            )
        if not self.name:
            self.name = urlparse(self.url).hostname or self.url

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the persisted record shape."""
        return {
            "id": self.id,
            "name": self.name,
            "url": self.url,
            "rules": [rule.to_dict() for rule in self.rules],
            "interval_seconds": self.interval_seconds,
            "enabled": self.enabled,
            "webhook_url": self.webhook_url,
            "audio_enabled": self.audio_enabled,
            "popup_enabled": self.popup_enabled,
            "last_check": self.last_check,
            "last_change": self.last_change,
            "last_content": self.last_content,
            "alert_history": list(self.alert_history),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any], target_id: Optional[str] = None) -> "Target":
        """Build a target from a persisted or exported record.

        Accepts both the snake_case records written by the store and the
        camelCase records of the browser extension export format.
        """
        def pick(*keys: str, default: Any = None) -> Any:
            for key in keys:
                if data.get(key) is not None:
                    return data[key]
            return default

        rules = pick("rules", "selectors", default=[])

        return cls(
            id=str(pick("id", default=target_id or "")),
            url=pick("url", default=""),
            name=pick("name", default=""),
            rules=[SelectorRule.from_dict(rule) for rule in rules],
            interval_seconds=int(pick("interval_seconds", "interval", default=60)),
            enabled=bool(pick("enabled", default=True)),
            webhook_url=pick("webhook_url", "webhookUrl") or None,
            popup_enabled=pick("popup_enabled", "popupEnabled", default=True) is not False,
            audio_enabled=pick("audio_enabled", "audioEnabled", default=True) is not False,
            last_check=pick("last_check", "lastCheck"),
            last_change=pick("last_change", "lastChange"),
            last_content=pick("last_content", "lastContent", default=""),
            alert_history=[str(h) for h in pick("alert_history", "alertHistory", default=[])],
        )


class CheckOutcome(str, Enum):
    """How a single check pass ended."""

    BUSY = "busy"
    SKIPPED = "skipped"
    FETCH_FAILED = "fetch_failed"
    BASELINE = "baseline"
    UNCHANGED = "unchanged"
    ALREADY_ALERTED = "already_alerted"
    CHANGED = "changed"
    FAULT = "fault"


class WebhookStatus(str, Enum):
    """Result of a webhook delivery attempt."""

    NOT_CONFIGURED = "not_configured"
    SKIPPED_EMPTY = "skipped_empty"
    SENT = "sent"
    SENT_AFTER_RETRY = "sent_after_retry"
    THROTTLED = "throttled"
    FAILED = "failed"


@dataclass
class DispatchReport:
    """What the dispatcher actually delivered for one change."""

    local_alert: bool = False
    sound: bool = False
    webhook: WebhookStatus = WebhookStatus.NOT_CONFIGURED


@dataclass
class CheckResult:
    """Outcome of one orchestration pass."""

    target_id: str
    outcome: CheckOutcome
    new_items: list[str] = field(default_factory=list)
    dispatch: Optional[DispatchReport] = None
    error: Optional[str] = None

    @property
    def changed(self) -> bool:
        return self.outcome == CheckOutcome.CHANGED
