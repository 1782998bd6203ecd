"""Webhook notification adapter (Discord and Slack incoming webhooks)."""

import asyncio
import html
import re
from typing import Optional
from urllib.parse import urlparse

import httpx
import structlog

from webpage_monitor.config import WebhookConfig
from webpage_monitor.core import EndpointThrottle, NotificationService, Target, WebhookStatus
from webpage_monitor.core.normalizer import collapse_whitespace

logger = structlog.get_logger(__name__)

MIN_MESSAGE_LENGTH = 5


class WebhookNotifier(NotificationService):
    """Post change messages to a target's webhook.

    Deliveries to one endpoint are spaced by the shared ``EndpointThrottle``.
    A 429 answer is retried exactly once after the delay the server asks
    for; anything else that goes wrong is logged and reported as a status.
    """

    def __init__(
        self,
        throttle: EndpointThrottle,
        config: Optional[WebhookConfig] = None,
    ) -> None:
        self.throttle = throttle
        self.config = config or WebhookConfig()

    def _clean_change_text(self, text: str) -> str:
        """Collapse whitespace, decode HTML entities and cap the length."""
        change_text = html.unescape(collapse_whitespace(text or ""))

        if len(change_text) > self.config.max_preview:
            change_text = change_text[: self.config.max_preview] + "..."

        return change_text

    def compose_message(self, target: Target, new_items_text: str) -> Optional[str]:
        """Build the message body, or None when there is nothing worth sending."""
        change_text = self._clean_change_text(new_items_text)

        if len(change_text) < MIN_MESSAGE_LENGTH:
            return None

        return f"**{target.name} was updated** | <{target.url}>\n\n> {change_text}"

    def _convert_markdown_to_mrkdwn(self, text: str) -> str:
        """Convert markdown to Slack mrkdwn format.

        Args:
            text: Markdown text

        Returns:
            Text in Slack mrkdwn format
        """
        # Convert markdown links [text](url) to Slack format <url|text>
        text = re.sub(r'\[([^\]]+)\]\(([^)]+)\)', r'<\2|\1>', text)

        # Convert markdown bold **text** to Slack bold *text*
        text = re.sub(r'\*\*([^*]+)\*\*', r'*\1*', text)

        return text

    def build_payload(self, webhook_url: str, message: str) -> dict:
        """Shape the payload for the endpoint's flavour."""
        if urlparse(webhook_url).netloc.endswith("hooks.slack.com"):
            return {
                "text": self._convert_markdown_to_mrkdwn(message),
                "mrkdwn": True,
            }

        return {
            "content": message,
            "username": self.config.username,
        }

    def _get_retry_delay(self, response: httpx.Response) -> float:
        """Seconds to wait before retrying a throttled delivery."""
        # Discord puts retry_after (seconds) in the JSON body
        try:
            body = response.json()
        except ValueError:
            body = None

        if isinstance(body, dict) and body.get("retry_after") is not None:
            try:
                return float(body["retry_after"]) + self.config.retry_buffer
            except (TypeError, ValueError):
                pass

        retry_after = response.headers.get("retry-after")
        if retry_after:
            try:
                return float(retry_after) + self.config.retry_buffer
            except ValueError:
                pass

        return self.config.default_retry_after + self.config.retry_buffer

    async def send(self, target: Target, new_items_text: str) -> WebhookStatus:
        """Deliver one change message for a target.

        Args:
            target: Target whose ``webhook_url`` receives the message
            new_items_text: Newly detected items, newline separated

        Returns:
            Delivery status; never raises for delivery problems
        """
        webhook_url = target.webhook_url
        if not webhook_url:
            return WebhookStatus.NOT_CONFIGURED

        log = logger.bind(target_id=target.id, endpoint=urlparse(webhook_url).netloc)

        message = self.compose_message(target, new_items_text)
        if message is None:
            log.info("webhook_skipped_empty")
            return WebhookStatus.SKIPPED_EMPTY

        payload = self.build_payload(webhook_url, message)

        async with self.throttle.slot(webhook_url):
            async with httpx.AsyncClient(timeout=self.config.timeout) as client:
                try:
                    response = await client.post(webhook_url, json=payload)

                    if response.status_code != 429:
                        response.raise_for_status()
                        log.info("webhook_sent")
                        return WebhookStatus.SENT

                    self.throttle.mark_sent(webhook_url)
                    retry_delay = self._get_retry_delay(response)
                    log.info("webhook_throttled", retry_after=retry_delay)
                    await asyncio.sleep(retry_delay)

                    response = await client.post(webhook_url, json=payload)
                    if response.status_code == 429:
                        log.warning("webhook_dropped_after_retry")
                        return WebhookStatus.THROTTLED

                    response.raise_for_status()
                    log.info("webhook_sent", retried=True)
                    return WebhookStatus.SENT_AFTER_RETRY
                except httpx.HTTPError as e:
                    log.warning("webhook_failed", error=str(e) or type(e).__name__)
                    return WebhookStatus.FAILED
