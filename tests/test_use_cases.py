"""Tests for use cases."""

import asyncio
from typing import Optional
from unittest.mock import AsyncMock, Mock

import pytest
import yaml

from webpage_monitor.core import (
    AlertCache,
    CheckOutcome,
    DispatchReport,
    Fetcher,
    MonitorState,
    SelectorRule,
    Target,
    TargetStore,
    WebhookStatus,
    hash_content,
)
from webpage_monitor.use_cases import MonitorService, NotificationDispatcher

COUNCIL = "City council approves new park budget"
LIBRARY = "Local library extends weekend opening hours"
STORM = "Storm warning issued for coastal towns tonight"


def page(*items: str) -> str:
    rows = "".join(f"<li>{item}</li>" for item in items)
    return f"<html><head><script>var x = 1;</script></head><body><ul>{rows}</ul></body></html>"


class InMemoryStore(TargetStore):
    """Keeps serialized records so mutations only land through set()."""

    def __init__(self) -> None:
        self.records: dict[str, dict] = {}
        self.writes = 0

    def get(self, target_id: str) -> Optional[Target]:
        record = self.records.get(target_id)
        return Target.from_dict(record) if record else None

    def set(self, target_id: str, target: Target) -> None:
        self.records[target_id] = target.to_dict()
        self.writes += 1

    def list_all(self) -> dict[str, Target]:
        return {target_id: Target.from_dict(record) for target_id, record in self.records.items()}

    def delete(self, target_id: str) -> None:
        self.records.pop(target_id, None)


class FakeFetcher(Fetcher):
    def __init__(self, body: Optional[str] = None) -> None:
        self.body = body
        self.calls = 0

    async def fetch(self, url: str) -> Optional[str]:
        self.calls += 1
        return self.body


def make_dispatcher() -> Mock:
    dispatcher = Mock()
    dispatcher.dispatch = AsyncMock(return_value=DispatchReport(local_alert=True))
    return dispatcher


def make_scheduler(intervals: Optional[dict[str, int]] = None) -> Mock:
    scheduler = Mock()
    scheduler.scheduled_intervals.return_value = dict(intervals or {})
    return scheduler


def make_service(
    store: Optional[InMemoryStore] = None,
    fetcher: Optional[Fetcher] = None,
    dispatcher: Optional[Mock] = None,
    state: Optional[MonitorState] = None,
    scheduler: Optional[Mock] = None,
    extractor: Optional[Mock] = None,
) -> MonitorService:
    return MonitorService(
        store=store or InMemoryStore(),
        fetcher=fetcher or FakeFetcher(),
        extractor=extractor or AsyncMock(),
        dispatcher=dispatcher or make_dispatcher(),
        state=state,
        scheduler=scheduler,
        check_all_delay=0,
    )


def add_target(store: InMemoryStore, target_id: str = "t1", **kwargs) -> Target:
    target = Target(id=target_id, url=f"https://example.com/{target_id}", **kwargs)
    store.set(target_id, target)
    return target


@pytest.mark.asyncio
async def test_first_check_records_baseline() -> None:
    """Test that the first successful check stores content without alerting."""
    store = InMemoryStore()
    add_target(store)
    dispatcher = make_dispatcher()
    service = make_service(store, FakeFetcher(page(COUNCIL, LIBRARY)), dispatcher)

    result = await service.check_target("t1")

    assert result.outcome == CheckOutcome.BASELINE
    dispatcher.dispatch.assert_not_called()

    target = store.get("t1")
    assert target.last_content == f"{COUNCIL}\n{LIBRARY}"
    assert target.last_check is not None
    assert target.last_change is None


@pytest.mark.asyncio
async def test_new_item_is_alerted() -> None:
    """Test that a new headline triggers exactly one dispatch."""
    store = InMemoryStore()
    add_target(store, last_content=f"{COUNCIL}\n{LIBRARY}")
    dispatcher = make_dispatcher()
    service = make_service(store, FakeFetcher(page(STORM, COUNCIL, LIBRARY)), dispatcher)

    result = await service.check_target("t1")

    assert result.outcome == CheckOutcome.CHANGED
    assert result.new_items == [STORM]
    assert result.dispatch.local_alert

    dispatched_target, dispatched_items = dispatcher.dispatch.call_args.args
    assert dispatched_target.id == "t1"
    assert dispatched_items == [STORM]

    target = store.get("t1")
    assert target.alert_history == [hash_content(STORM)]
    assert target.last_change is not None
    assert target.last_content.startswith(STORM)


@pytest.mark.asyncio
async def test_persists_before_dispatch() -> None:
    """Test that the alert history is stored before any notification goes out."""
    store = InMemoryStore()
    add_target(store, last_content=COUNCIL)

    async def check_stored(target: Target, items: list[str]) -> DispatchReport:
        assert hash_content(STORM) in store.get("t1").alert_history
        return DispatchReport()

    dispatcher = Mock()
    dispatcher.dispatch = AsyncMock(side_effect=check_stored)
    service = make_service(store, FakeFetcher(page(COUNCIL, STORM)), dispatcher)

    result = await service.check_target("t1")

    assert result.outcome == CheckOutcome.CHANGED
    dispatcher.dispatch.assert_awaited_once()


@pytest.mark.asyncio
async def test_reordered_items_are_not_new() -> None:
    """Test that moving items around is not a change."""
    store = InMemoryStore()
    add_target(store, last_content=f"{COUNCIL}\n{LIBRARY}")
    dispatcher = make_dispatcher()
    service = make_service(store, FakeFetcher(page(LIBRARY, COUNCIL)), dispatcher)

    result = await service.check_target("t1")

    assert result.outcome == CheckOutcome.UNCHANGED
    dispatcher.dispatch.assert_not_called()
    assert store.get("t1").last_content == f"{LIBRARY}\n{COUNCIL}"


@pytest.mark.asyncio
async def test_reappearing_item_alerts_once() -> None:
    """Test that an item which disappears and comes back is not alerted twice."""
    store = InMemoryStore()
    add_target(store, last_content=COUNCIL)
    fetcher = FakeFetcher()
    dispatcher = make_dispatcher()
    service = make_service(store, fetcher, dispatcher)

    fetcher.body = page(COUNCIL, STORM)
    assert (await service.check_target("t1")).outcome == CheckOutcome.CHANGED

    fetcher.body = page(COUNCIL)
    assert (await service.check_target("t1")).outcome == CheckOutcome.UNCHANGED

    fetcher.body = page(COUNCIL, STORM)
    result = await service.check_target("t1")

    assert result.outcome == CheckOutcome.ALREADY_ALERTED
    assert dispatcher.dispatch.await_count == 1
    assert store.get("t1").last_content == f"{COUNCIL}\n{STORM}"


@pytest.mark.asyncio
async def test_history_survives_restart() -> None:
    """Test that a fresh process seeds its cache from the stored history."""
    store = InMemoryStore()
    add_target(store, last_content=COUNCIL, alert_history=[hash_content(STORM)])
    dispatcher = make_dispatcher()
    service = make_service(store, FakeFetcher(page(COUNCIL, STORM)), dispatcher, state=MonitorState())

    result = await service.check_target("t1")

    assert result.outcome == CheckOutcome.ALREADY_ALERTED
    dispatcher.dispatch.assert_not_called()


@pytest.mark.asyncio
async def test_duplicates_within_one_page_alert_once() -> None:
    """Test that the same new line repeated on a page is reported once."""
    store = InMemoryStore()
    add_target(store, last_content=COUNCIL)
    service = make_service(store, FakeFetcher(page(COUNCIL, STORM, STORM.upper())))

    result = await service.check_target("t1")

    assert result.new_items == [STORM]
    assert store.get("t1").alert_history == [hash_content(STORM)]


@pytest.mark.asyncio
async def test_overlapping_check_is_dropped() -> None:
    """Test that a second check for a busy target returns immediately."""
    store = InMemoryStore()
    add_target(store)

    class BlockingFetcher(Fetcher):
        def __init__(self) -> None:
            self.started = asyncio.Event()
            self.release = asyncio.Event()

        async def fetch(self, url: str) -> Optional[str]:
            self.started.set()
            await self.release.wait()
            return page(COUNCIL)

    fetcher = BlockingFetcher()
    service = make_service(store, fetcher)

    first = asyncio.create_task(service.check_target("t1"))
    await fetcher.started.wait()

    second = await service.check_now("t1")
    assert second.outcome == CheckOutcome.BUSY

    fetcher.release.set()
    assert (await first).outcome == CheckOutcome.BASELINE
    assert not service.state.guard.is_held("t1")


@pytest.mark.asyncio
async def test_target_deleted_mid_check_stays_deleted() -> None:
    """Test that a check finishing after its target was deleted writes nothing."""
    store = InMemoryStore()
    add_target(store, last_content=COUNCIL)

    class BlockingFetcher(Fetcher):
        def __init__(self) -> None:
            self.started = asyncio.Event()
            self.release = asyncio.Event()

        async def fetch(self, url: str) -> Optional[str]:
            self.started.set()
            await self.release.wait()
            return page(COUNCIL, STORM)

    fetcher = BlockingFetcher()
    dispatcher = make_dispatcher()
    service = make_service(store, fetcher, dispatcher)

    check = asyncio.create_task(service.check_target("t1"))
    await fetcher.started.wait()

    service.delete_target("t1")
    fetcher.release.set()
    result = await check

    assert result.outcome == CheckOutcome.SKIPPED
    assert "t1" not in store.records
    assert not service.state.alert_cache.is_initialized("t1")
    dispatcher.dispatch.assert_not_called()


@pytest.mark.asyncio
async def test_history_follows_configured_size() -> None:
    """Test that a history size above the default is persisted in full."""
    store = InMemoryStore()
    history = [str(i) for i in range(120)]
    add_target(store, last_content=COUNCIL, alert_history=history)
    state = MonitorState(alert_cache=AlertCache(history_size=150))
    service = make_service(store, FakeFetcher(page(COUNCIL, STORM)), state=state)

    result = await service.check_target("t1")

    assert result.outcome == CheckOutcome.CHANGED
    assert store.get("t1").alert_history == history + [hash_content(STORM)]


@pytest.mark.asyncio
async def test_unexpected_error_releases_guard() -> None:
    """Test that a crash mid-check is reported and the target stays checkable."""
    store = InMemoryStore()
    add_target(store)
    fetcher = AsyncMock()
    fetcher.fetch.side_effect = RuntimeError("boom")
    service = make_service(store, fetcher)

    result = await service.check_target("t1")

    assert result.outcome == CheckOutcome.FAULT
    assert result.error == "RuntimeError: boom"
    assert not service.state.guard.is_held("t1")


@pytest.mark.asyncio
async def test_missing_and_disabled_targets_are_skipped() -> None:
    """Test that nothing is fetched for unknown or paused targets."""
    store = InMemoryStore()
    add_target(store, enabled=False)
    fetcher = FakeFetcher(page(COUNCIL))
    service = make_service(store, fetcher)

    assert (await service.check_target("t1")).outcome == CheckOutcome.SKIPPED
    assert (await service.check_target("nope")).outcome == CheckOutcome.SKIPPED
    assert fetcher.calls == 0


@pytest.mark.asyncio
async def test_fetch_failure_changes_nothing() -> None:
    """Test that a failed fetch leaves the stored target untouched."""
    store = InMemoryStore()
    add_target(store, last_content=COUNCIL)
    writes = store.writes
    service = make_service(store, FakeFetcher(None))

    result = await service.check_target("t1")

    assert result.outcome == CheckOutcome.FETCH_FAILED
    assert store.writes == writes
    assert store.get("t1").last_check is None


@pytest.mark.asyncio
async def test_selector_rules_use_extractor() -> None:
    """Test that targets with rules go through the extractor."""
    store = InMemoryStore()
    add_target(store, rules=[SelectorRule("li.headline")])
    extractor = AsyncMock()
    extractor.extract.return_value = LIBRARY
    service = make_service(store, FakeFetcher(page(COUNCIL)), extractor=extractor)

    await service.check_target("t1")

    extractor.extract.assert_awaited_once()
    assert store.get("t1").last_content == LIBRARY


@pytest.mark.asyncio
async def test_extractor_failure_falls_back_to_page_text() -> None:
    """Test that an extractor error still yields the page text."""
    store = InMemoryStore()
    add_target(store, rules=[SelectorRule("li.headline")])
    extractor = AsyncMock()
    extractor.extract.side_effect = ValueError("bad selector")
    service = make_service(store, FakeFetcher(page(COUNCIL)), extractor=extractor)

    result = await service.check_target("t1")

    assert result.outcome == CheckOutcome.BASELINE
    assert store.get("t1").last_content == COUNCIL


@pytest.mark.asyncio
async def test_check_all_only_enabled() -> None:
    """Test that check_all runs every enabled target once."""
    store = InMemoryStore()
    add_target(store, "t1")
    add_target(store, "t2", enabled=False)
    add_target(store, "t3")
    service = make_service(store, FakeFetcher(page(COUNCIL)))

    results = await service.check_all()

    assert [r.target_id for r in results] == ["t1", "t3"]
    assert all(r.outcome == CheckOutcome.BASELINE for r in results)


def test_reload_schedule() -> None:
    """Test that only enabled targets are scheduled."""
    store = InMemoryStore()
    add_target(store, "t1", interval_seconds=30)
    add_target(store, "t2", enabled=False)
    scheduler = make_scheduler()
    service = make_service(store, scheduler=scheduler)

    assert service.reload_schedule() == ["t1"]

    scheduler.schedule.assert_called_once_with("t1", 30)
    scheduler.cancel.assert_not_called()


def test_reload_schedule_picks_up_edits() -> None:
    """Test that a reload applies targets changed since the last one."""
    store = InMemoryStore()
    add_target(store, "kept", interval_seconds=60)
    add_target(store, "added", interval_seconds=30)
    add_target(store, "paused", enabled=False)
    add_target(store, "slower", interval_seconds=120)
    scheduler = make_scheduler({"kept": 60, "paused": 60, "slower": 60, "deleted": 60})
    service = make_service(store, scheduler=scheduler)
    service.state.alert_cache.insert("deleted", "123")

    assert sorted(service.reload_schedule()) == ["added", "kept", "slower"]

    assert sorted(c.args for c in scheduler.schedule.call_args_list) == [("added", 30), ("slower", 120)]
    assert sorted(c.args for c in scheduler.cancel.call_args_list) == [("deleted",), ("paused",)]
    assert not service.state.alert_cache.is_initialized("deleted")


def test_reload_schedule_keeps_triggers_when_store_breaks() -> None:
    """Test that a failing store read leaves the schedule alone."""
    store = Mock()
    store.list_all.side_effect = yaml.YAMLError("bad document")
    scheduler = make_scheduler({"t1": 60})
    service = make_service(store, scheduler=scheduler)

    assert service.reload_schedule() == ["t1"]
    scheduler.cancel.assert_not_called()
    scheduler.schedule.assert_not_called()


@pytest.mark.asyncio
async def test_check_all_survives_store_failure() -> None:
    """Test that a broken store yields no results instead of an exception."""
    store = Mock()
    store.list_all.side_effect = AttributeError("'str' object has no attribute 'get'")
    service = make_service(store)

    assert await service.check_all() == []


def test_reload_schedule_without_scheduler() -> None:
    """Test that reloading is a no-op when nothing schedules checks."""
    store = InMemoryStore()
    add_target(store)

    assert make_service(store).reload_schedule() == []


def test_set_enabled() -> None:
    """Test pausing and resuming one target."""
    store = InMemoryStore()
    add_target(store, interval_seconds=45)
    scheduler = make_scheduler()
    service = make_service(store, scheduler=scheduler)

    assert service.set_enabled("t1", False)
    assert not store.get("t1").enabled
    scheduler.cancel.assert_called_once_with("t1")

    assert service.set_enabled("t1", True)
    scheduler.schedule.assert_called_once_with("t1", 45)

    assert not service.set_enabled("missing", True)


def test_toggle_all() -> None:
    """Test that toggling pauses everything when anything runs."""
    store = InMemoryStore()
    add_target(store, "t1")
    add_target(store, "t2", enabled=False)
    service = make_service(store, scheduler=make_scheduler())

    assert service.toggle_all() is False
    assert not any(t.enabled for t in store.list_all().values())

    assert service.toggle_all() is True
    assert all(t.enabled for t in store.list_all().values())


def test_delete_target_clears_state() -> None:
    """Test that deleting removes the record, cache entries and trigger."""
    store = InMemoryStore()
    add_target(store)
    scheduler = make_scheduler()
    service = make_service(store, scheduler=scheduler)
    service.state.alert_cache.insert("t1", "123")

    service.delete_target("t1")

    assert store.get("t1") is None
    assert not service.state.alert_cache.is_initialized("t1")
    scheduler.cancel.assert_called_once_with("t1")


@pytest.mark.asyncio
async def test_dispatcher_channels() -> None:
    """Test local alert, sound and webhook delivery."""
    presenter = Mock()
    notifier = AsyncMock()
    notifier.send.return_value = WebhookStatus.SENT
    dispatcher = NotificationDispatcher(presenter, notifier)
    target = Target(
        id="t1",
        url="https://example.com",
        name="Example",
        webhook_url="https://discord.com/api/webhooks/1/x",
    )

    report = await dispatcher.dispatch(target, [STORM, COUNCIL])

    assert report == DispatchReport(local_alert=True, sound=True, webhook=WebhookStatus.SENT)
    presenter.show_local_alert.assert_called_once_with(
        "Example was updated", f"{STORM} {COUNCIL}"[:100]
    )
    presenter.play_sound.assert_called_once()
    notifier.send.assert_awaited_once_with(target, f"{STORM}\n{COUNCIL}")


@pytest.mark.asyncio
async def test_dispatcher_respects_target_settings() -> None:
    """Test that disabled channels are not used."""
    presenter = Mock()
    notifier = AsyncMock()
    dispatcher = NotificationDispatcher(presenter, notifier)
    target = Target(id="t1", url="https://example.com", popup_enabled=False)

    report = await dispatcher.dispatch(target, [STORM])

    assert report == DispatchReport()
    presenter.show_local_alert.assert_not_called()
    notifier.send.assert_not_called()


@pytest.mark.asyncio
async def test_dispatcher_survives_presenter_failure() -> None:
    """Test that a broken local channel does not stop the webhook."""
    presenter = Mock()
    presenter.show_local_alert.side_effect = OSError("no display")
    notifier = AsyncMock()
    notifier.send.return_value = WebhookStatus.SENT
    dispatcher = NotificationDispatcher(presenter, notifier)
    target = Target(id="t1", url="https://example.com", webhook_url="https://discord.com/api/webhooks/1/x")

    report = await dispatcher.dispatch(target, [STORM])

    assert not report.local_alert
    assert report.webhook == WebhookStatus.SENT
