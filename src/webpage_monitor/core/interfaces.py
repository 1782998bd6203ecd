"""Core interfaces for adapters."""

from abc import ABC, abstractmethod
from typing import Optional

from webpage_monitor.core.entities import SelectorRule, Target, WebhookStatus


class Fetcher(ABC):
    """Interface for downloading a target's document."""

    @abstractmethod
    async def fetch(self, url: str) -> Optional[str]:
        """Return the response body, or None on any failure."""
        pass


class Extractor(ABC):
    """Interface for pulling text out of a document with selector rules."""

    @abstractmethod
    async def extract(self, raw_body: str, rules: list[SelectorRule]) -> str:
        """Extract text for the given rules, one matched element per line."""
        pass


class TargetStore(ABC):
    """Interface for the persisted target definitions."""

    @abstractmethod
    def get(self, target_id: str) -> Optional[Target]:
        pass

    @abstractmethod
    def set(self, target_id: str, target: Target) -> None:
        pass

    @abstractmethod
    def list_all(self) -> dict[str, Target]:
        pass

    @abstractmethod
    def delete(self, target_id: str) -> None:
        pass


class AlertPresenter(ABC):
    """Interface for local (on-machine) notifications."""

    @abstractmethod
    def show_local_alert(self, title: str, body: str) -> None:
        pass

    @abstractmethod
    def play_sound(self) -> None:
        pass


class Scheduler(ABC):
    """Interface for the periodic trigger that invokes checks."""

    @abstractmethod
    def schedule(self, target_id: str, interval_seconds: int) -> None:
        """Start (or restart) periodic checks for a target."""
        pass

    @abstractmethod
    def cancel(self, target_id: str) -> None:
        pass

    @abstractmethod
    def cancel_all(self) -> None:
        pass

    @abstractmethod
    def scheduled_intervals(self) -> dict[str, int]:
        """Currently scheduled targets and their intervals."""
        pass


class NotificationService(ABC):
    """Interface for remote change notifications (webhooks)."""

    @abstractmethod
    async def send(self, target: Target, new_items_text: str) -> WebhookStatus:
        """Deliver a change message for a target."""
        pass
