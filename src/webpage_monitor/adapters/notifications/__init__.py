"""Notification adapters."""

from webpage_monitor.adapters.notifications.console_presenter import ConsoleAlertPresenter
from webpage_monitor.adapters.notifications.webhook_notifier import WebhookNotifier

__all__ = ["ConsoleAlertPresenter", "WebhookNotifier"]
