"""Business logic use cases."""

import asyncio
from datetime import datetime, timezone
from typing import Optional

import structlog

from webpage_monitor.config import DetectionConfig
from webpage_monitor.core import (
    AlertPresenter,
    CheckOutcome,
    CheckResult,
    DispatchReport,
    Extractor,
    Fetcher,
    MonitorState,
    NotificationService,
    Scheduler,
    Target,
    TargetStore,
    find_new_items,
    hash_content,
    normalize_content,
    strip_markup,
)
from webpage_monitor.core.normalizer import collapse_whitespace

logger = structlog.get_logger(__name__)

LOCAL_ALERT_PREVIEW = 100


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class NotificationDispatcher:
    """Deliver change notifications through the local and webhook channels."""

    def __init__(
        self,
        presenter: Optional[AlertPresenter] = None,
        notification_service: Optional[NotificationService] = None,
    ) -> None:
        self.presenter = presenter
        self.notification_service = notification_service

    async def dispatch(self, target: Target, new_items: list[str]) -> DispatchReport:
        """Notify about new items; channel failures are logged, never raised."""
        new_items_text = "\n".join(new_items)
        report = DispatchReport()

        if target.popup_enabled and self.presenter:
            report.local_alert, report.sound = self._show_local_alert(target, new_items_text)

        if target.webhook_url and self.notification_service:
            report.webhook = await self.notification_service.send(target, new_items_text)

        return report

    def _show_local_alert(self, target: Target, new_items_text: str) -> tuple[bool, bool]:
        preview = collapse_whitespace(new_items_text[:LOCAL_ALERT_PREVIEW])
        shown = sound = False

        try:
            self.presenter.show_local_alert(f"{target.name} was updated", preview or "Content changed")
            shown = True
            if target.audio_enabled:
                self.presenter.play_sound()
                sound = True
        except Exception as e:
            logger.warning("local_alert_failed", target_id=target.id, error=str(e))

        return shown, sound


class MonitorService:
    """Run checks for targets: fetch, detect new items, persist, notify.

    All runtime state lives on ``state`` so tests (and separate processes)
    can use a fresh instance. No method raises for check failures; the
    returned ``CheckResult`` says what happened.
    """

    def __init__(
        self,
        store: TargetStore,
        fetcher: Fetcher,
        extractor: Extractor,
        dispatcher: NotificationDispatcher,
        state: Optional[MonitorState] = None,
        scheduler: Optional[Scheduler] = None,
        detection: Optional[DetectionConfig] = None,
        check_all_delay: float = 0.5,
    ) -> None:
        self.store = store
        self.fetcher = fetcher
        self.extractor = extractor
        self.dispatcher = dispatcher
        self.state = state or MonitorState()
        self.scheduler = scheduler
        self.detection = detection or DetectionConfig()
        self.check_all_delay = check_all_delay

    async def check_target(self, target_id: str) -> CheckResult:
        """Check one target unless a check for it is already running."""
        guard = self.state.guard

        if not guard.try_acquire(target_id):
            logger.debug("check_skipped_busy", target_id=target_id)
            return CheckResult(target_id=target_id, outcome=CheckOutcome.BUSY)

        log = logger.bind(target_id=target_id)
        try:
            return await self._run_check(target_id, log)
        except Exception as e:
            log.exception("check_failed")
            return CheckResult(
                target_id=target_id,
                outcome=CheckOutcome.FAULT,
                error=f"{type(e).__name__}: {e}",
            )
        finally:
            guard.release(target_id)

    async def check_now(self, target_id: str) -> CheckResult:
        """Manual check; same semantics as a scheduled one."""
        return await self.check_target(target_id)

    async def _run_check(self, target_id: str, log: structlog.stdlib.BoundLogger) -> CheckResult:
        target = self.store.get(target_id)
        if target is None or not target.enabled:
            log.debug("check_skipped", reason="missing" if target is None else "disabled")
            return CheckResult(target_id=target_id, outcome=CheckOutcome.SKIPPED)

        cache = self.state.alert_cache
        cache.initialize(target_id, target.alert_history)

        raw_body = await self.fetcher.fetch(target.url)
        if not raw_body:
            log.info("check_fetch_failed", url=target.url)
            return CheckResult(target_id=target_id, outcome=CheckOutcome.FETCH_FAILED)

        content = await self._extract(raw_body, target, log)

        # Deleted while the page was loading: write nothing back
        if self.store.get(target_id) is None:
            log.info("check_dropped_target_deleted")
            return CheckResult(target_id=target_id, outcome=CheckOutcome.SKIPPED)

        min_length = self.detection.min_item_length
        old_items = normalize_content(target.last_content, min_length=min_length)
        new_items = normalize_content(content, min_length=min_length)

        novel_items = find_new_items(
            old_items,
            new_items,
            threshold=self.detection.similarity_threshold,
            min_word_length=self.detection.min_word_length,
        )

        had_baseline = bool(target.last_content)
        target.last_check = _now()

        if not had_baseline or not novel_items:
            target.last_content = content
            self.store.set(target_id, target)
            outcome = CheckOutcome.UNCHANGED if had_baseline else CheckOutcome.BASELINE
            log.debug("check_no_change", outcome=outcome.value, items=len(new_items))
            return CheckResult(target_id=target_id, outcome=outcome)

        # Skip items already alerted on, and duplicates within this batch
        truly_new: dict[str, str] = {}
        for item in novel_items:
            content_hash = hash_content(item)
            if not cache.contains(target_id, content_hash) and content_hash not in truly_new:
                truly_new[content_hash] = item

        if not truly_new:
            target.last_content = content
            self.store.set(target_id, target)
            log.debug("check_already_alerted", novel=len(novel_items))
            return CheckResult(target_id=target_id, outcome=CheckOutcome.ALREADY_ALERTED)

        # Cache first, then storage, then notifications: a crash can lose an
        # alert but never repeat one
        for content_hash in truly_new:
            cache.insert(target_id, content_hash)

        target.alert_history = cache.snapshot(target_id)
        target.last_change = _now()
        target.last_content = content
        self.store.set(target_id, target)

        items = list(truly_new.values())
        log.info("change_detected", new_items=len(items), preview="\n".join(items)[:100])

        report = await self.dispatcher.dispatch(target, items)

        return CheckResult(
            target_id=target_id,
            outcome=CheckOutcome.CHANGED,
            new_items=items,
            dispatch=report,
        )

    async def _extract(self, raw_body: str, target: Target, log: structlog.stdlib.BoundLogger) -> str:
        """Apply selector rules, or strip the whole page when there are none."""
        if not target.rules:
            return strip_markup(raw_body)

        try:
            return await self.extractor.extract(raw_body, target.rules)
        except Exception as e:
            log.warning("extraction_failed_using_page_text", error=str(e))
            return strip_markup(raw_body)

    async def check_all(self) -> list[CheckResult]:
        """Check every enabled target one after another, lightly paced."""
        try:
            targets = self.store.list_all()
        except Exception:
            logger.exception("check_all_failed_listing_targets")
            return []

        enabled_ids = [target_id for target_id, target in targets.items() if target.enabled]

        results = []
        for index, target_id in enumerate(enabled_ids):
            if index:
                await asyncio.sleep(self.check_all_delay)
            results.append(await self.check_target(target_id))

        return results

    def reload_schedule(self) -> list[str]:
        """Bring the scheduler in line with the stored targets.

        Enabled targets whose interval is unchanged keep their running
        trigger; new or changed ones are (re)scheduled and the rest are
        cancelled. Safe to call repeatedly.

        Returns:
            Ids of the scheduled targets
        """
        if self.scheduler is None:
            logger.debug("reload_skipped_no_scheduler")
            return []

        current = self.scheduler.scheduled_intervals()

        try:
            targets = self.store.list_all()
        except Exception:
            logger.exception("reload_failed_listing_targets")
            return list(current)

        wanted = {
            target_id: target.interval_seconds
            for target_id, target in targets.items()
            if target.enabled
        }

        removed = [target_id for target_id in current if target_id not in wanted]
        for target_id in removed:
            self.scheduler.cancel(target_id)
            if target_id not in targets:
                self.state.forget(target_id)

        added = [
            target_id for target_id, interval in wanted.items()
            if current.get(target_id) != interval
        ]
        for target_id in added:
            self.scheduler.schedule(target_id, wanted[target_id])

        if added or removed:
            logger.info("schedule_reloaded", targets=len(wanted), added=len(added), removed=len(removed))
        return list(wanted)

    def set_enabled(self, target_id: str, enabled: bool) -> bool:
        """Enable or disable a target. Returns False if it does not exist."""
        target = self.store.get(target_id)
        if target is None:
            return False

        target.enabled = enabled
        self.store.set(target_id, target)

        if self.scheduler is not None:
            if enabled:
                self.scheduler.schedule(target_id, target.interval_seconds)
            else:
                self.scheduler.cancel(target_id)

        return True

    def toggle_all(self) -> bool:
        """Pause everything if anything runs, otherwise resume everything.

        Returns:
            The new enabled state
        """
        targets = self.store.list_all()
        enabled = not any(target.enabled for target in targets.values())

        for target_id, target in targets.items():
            target.enabled = enabled
            self.store.set(target_id, target)

        self.reload_schedule()
        return enabled

    def delete_target(self, target_id: str) -> None:
        """Remove a target with its cache entries, guard flag and trigger."""
        self.store.delete(target_id)
        self.state.forget(target_id)

        if self.scheduler is not None:
            self.scheduler.cancel(target_id)
