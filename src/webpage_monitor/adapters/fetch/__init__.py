"""Page fetching adapters."""

from webpage_monitor.adapters.fetch.http_fetcher import HttpFetcher

__all__ = ["HttpFetcher"]
