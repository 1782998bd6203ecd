"""CLI entry point for webpage monitor."""

import asyncio
import signal
import time
from pathlib import Path
from typing import Optional

import typer

from webpage_monitor.adapters.extraction import SoupExtractor
from webpage_monitor.adapters.fetch import HttpFetcher
from webpage_monitor.adapters.notifications import ConsoleAlertPresenter, WebhookNotifier
from webpage_monitor.adapters.scheduling import AsyncioScheduler
from webpage_monitor.adapters.storage import YamlTargetStore, export_targets, import_targets
from webpage_monitor.config import Settings, get_settings
from webpage_monitor.core import (
    AlertCache,
    CheckOutcome,
    CheckResult,
    EndpointThrottle,
    ExtractKind,
    MonitorState,
    Scheduler,
    SelectorRule,
    Target,
    WebhookStatus,
)
from webpage_monitor.logger import setup_logging
from webpage_monitor.use_cases import MonitorService, NotificationDispatcher

app = typer.Typer(help="Watch web pages and get notified about new content.")

ConfigOption = typer.Option(Path("config.yaml"), "--config", "-c", help="Path to config.yaml")

OUTCOME_EMOJI = {
    CheckOutcome.CHANGED: "📢",
    CheckOutcome.BASELINE: "📌",
    CheckOutcome.UNCHANGED: "✓",
    CheckOutcome.ALREADY_ALERTED: "✓",
    CheckOutcome.BUSY: "⏳",
    CheckOutcome.SKIPPED: "•",
    CheckOutcome.FETCH_FAILED: "⚠️ ",
    CheckOutcome.FAULT: "❌",
}


def parse_rule(value: str) -> SelectorRule:
    """Parse ``SELECTOR[@KIND]`` where KIND is text, html or attr:NAME."""
    selector, _, kind = value.rpartition("@")
    if not selector:
        return SelectorRule(selector=value)

    if kind.startswith("attr:"):
        return SelectorRule(selector=selector, kind=ExtractKind.ATTR, attribute=kind[len("attr:"):])

    try:
        return SelectorRule(selector=selector, kind=ExtractKind(kind))
    except ValueError:
        # '@' was part of the selector itself
        return SelectorRule(selector=value)


def build_service(settings: Settings, scheduler: Optional[Scheduler] = None) -> MonitorService:
    """Wire the default adapters into a MonitorService."""
    state = MonitorState(
        alert_cache=AlertCache(history_size=settings.detection.history_size),
        throttle=EndpointThrottle(min_interval=settings.webhook.min_interval),
    )

    dispatcher = NotificationDispatcher(
        presenter=ConsoleAlertPresenter(),
        notification_service=WebhookNotifier(state.throttle, settings.webhook),
    )

    return MonitorService(
        store=YamlTargetStore(settings.store_path),
        fetcher=HttpFetcher(timeout=settings.fetch.timeout, user_agents=settings.fetch.user_agents),
        extractor=SoupExtractor(),
        dispatcher=dispatcher,
        state=state,
        scheduler=scheduler,
        detection=settings.detection,
        check_all_delay=settings.scheduler.check_all_delay,
    )


def _load(config: Path) -> Settings:
    settings = get_settings(config)
    setup_logging(settings.logging.level, settings.logging.format)
    return settings


def _print_result(result: CheckResult, name: str = "") -> None:
    emoji = OUTCOME_EMOJI.get(result.outcome, "•")
    label = name or result.target_id
    print(f"{emoji} {label}: {result.outcome.value}")

    for item in result.new_items:
        print(f"  └─ {item[:100]}")
    if result.dispatch and result.dispatch.webhook != WebhookStatus.NOT_CONFIGURED:
        print(f"  └─ webhook: {result.dispatch.webhook.value}")
    if result.error:
        print(f"  └─ {result.error}")


@app.command()
def run(config: Path = ConfigOption) -> None:
    """Check all enabled targets on their intervals until interrupted."""
    settings = _load(config)

    try:
        asyncio.run(_serve(settings))
    except KeyboardInterrupt:
        print("\n👋 Stopped")


async def _serve(settings: Settings) -> None:
    scheduler = AsyncioScheduler(
        jitter=settings.scheduler.jitter,
        initial_delay=settings.scheduler.initial_check_delay,
    )
    service = build_service(settings, scheduler)
    scheduler.handler = service.check_target

    async def reload_targets() -> None:
        service.reload_schedule()

    print("\n" + "=" * 70)
    print("👀 WEBPAGE MONITOR")
    print("=" * 70)

    scheduled = service.reload_schedule()
    targets = service.store.list_all()

    print(f"\n📡 Targets ({len(scheduled)} enabled of {len(targets)}):")
    for target_id in scheduled:
        target = targets[target_id]
        print(f"  • {target.name} every {target.interval_seconds}s - {target.url}")

    if not scheduled:
        print("  (nothing to watch, add a target with `webpage-monitor add`)")

    # Edits made with other commands are picked up on the next reload
    scheduler.schedule_reload(reload_targets, settings.scheduler.reload_interval)
    if hasattr(signal, "SIGHUP"):
        asyncio.get_running_loop().add_signal_handler(signal.SIGHUP, service.reload_schedule)

    print(f"\n🔄 Reloading targets every {settings.scheduler.reload_interval:g}s (or on SIGHUP)")

    scheduler.start()
    try:
        await asyncio.Event().wait()
    finally:
        scheduler.shutdown()


@app.command()
def check(target_id: str, config: Path = ConfigOption) -> None:
    """Check one target now."""
    settings = _load(config)
    service = build_service(settings)

    result = asyncio.run(service.check_now(target_id))
    _print_result(result)

    if result.outcome == CheckOutcome.SKIPPED:
        raise typer.Exit(code=1)


@app.command("check-all")
def check_all(config: Path = ConfigOption) -> None:
    """Check every enabled target once."""
    settings = _load(config)
    service = build_service(settings)
    targets = service.store.list_all()

    results = asyncio.run(service.check_all())
    for result in results:
        target = targets.get(result.target_id)
        _print_result(result, target.name if target else "")

    changed = sum(1 for r in results if r.changed)
    print(f"\n✓ Checked {len(results)} target(s), {changed} changed")


@app.command("list")
def list_targets(config: Path = ConfigOption) -> None:
    """List configured targets."""
    settings = _load(config)
    targets = YamlTargetStore(settings.store_path).list_all()

    if not targets:
        print("No targets configured")
        return

    for target_id, target in targets.items():
        status = f"every {target.interval_seconds}s" if target.enabled else "disabled"
        print(f"[{target_id}] {target.name} ({status})")
        print(f"  └─ {target.url}")
        print(f"  └─ last check: {target.last_check or 'never'}, last change: {target.last_change or 'never'}")


@app.command()
def add(
    url: str,
    name: str = typer.Option("", help="Display name (defaults to the host)"),
    selector: list[str] = typer.Option(
        [], "--selector", "-s", help="CSS selector, optionally SELECTOR@html or SELECTOR@attr:NAME"
    ),
    interval: int = typer.Option(60, help="Seconds between checks"),
    webhook: Optional[str] = typer.Option(None, help="Discord or Slack webhook URL"),
    no_popup: bool = typer.Option(False, "--no-popup", help="Disable local alerts"),
    no_audio: bool = typer.Option(False, "--no-audio", help="Disable alert sound"),
    target_id: Optional[str] = typer.Option(None, "--id", help="Target id (defaults to a timestamp)"),
    config: Path = ConfigOption,
) -> None:
    """Add a target to watch."""
    settings = _load(config)
    store = YamlTargetStore(settings.store_path)

    try:
        target = Target(
            id=target_id or str(int(time.time() * 1000)),
            url=url,
            name=name,
            rules=[parse_rule(value) for value in selector],
            interval_seconds=interval,
            webhook_url=webhook,
            popup_enabled=not no_popup,
            audio_enabled=not no_audio,
        )
    except ValueError as e:
        print(f"❌ {e}")
        raise typer.Exit(code=1)

    store.set(target.id, target)
    print(f"✓ Added [{target.id}] {target.name}")


@app.command()
def remove(target_id: str, config: Path = ConfigOption) -> None:
    """Delete a target."""
    settings = _load(config)
    service = build_service(settings)

    if service.store.get(target_id) is None:
        print(f"❌ No target {target_id}")
        raise typer.Exit(code=1)

    service.delete_target(target_id)
    print(f"✓ Removed {target_id}")


def _set_enabled(target_id: str, enabled: bool, config: Path) -> None:
    settings = _load(config)
    service = build_service(settings)

    if not service.set_enabled(target_id, enabled):
        print(f"❌ No target {target_id}")
        raise typer.Exit(code=1)

    print(f"✓ {target_id} {'enabled' if enabled else 'disabled'}")


@app.command()
def enable(target_id: str, config: Path = ConfigOption) -> None:
    """Resume checks for a target."""
    _set_enabled(target_id, True, config)


@app.command()
def disable(target_id: str, config: Path = ConfigOption) -> None:
    """Pause checks for a target."""
    _set_enabled(target_id, False, config)


@app.command("toggle-all")
def toggle_all(config: Path = ConfigOption) -> None:
    """Pause all targets if any is running, otherwise resume all."""
    settings = _load(config)
    service = build_service(settings)

    if not service.store.list_all():
        print("No targets to toggle")
        return

    enabled = service.toggle_all()
    print("✓ All targets resumed" if enabled else "✓ All targets paused")


@app.command("export")
def export_command(output: Path, config: Path = ConfigOption) -> None:
    """Write all targets to a JSON backup."""
    settings = _load(config)
    count = export_targets(YamlTargetStore(settings.store_path), output)
    print(f"✓ Exported {count} target(s) to {output}")


@app.command("import")
def import_command(backup: Path, config: Path = ConfigOption) -> None:
    """Merge targets from a JSON backup."""
    settings = _load(config)

    try:
        imported = import_targets(YamlTargetStore(settings.store_path), backup)
    except (OSError, ValueError) as e:
        print(f"❌ Could not import {backup}: {e}")
        raise typer.Exit(code=1)

    print(f"✓ Imported {len(imported)} target(s)")


if __name__ == "__main__":
    app()
