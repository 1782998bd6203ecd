"""Scheduling adapters."""

from webpage_monitor.adapters.scheduling.asyncio_scheduler import AsyncioScheduler

__all__ = ["AsyncioScheduler"]
