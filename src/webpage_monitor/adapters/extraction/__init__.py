"""Content extraction adapters."""

from webpage_monitor.adapters.extraction.soup_extractor import SoupExtractor, simplify_selector

__all__ = ["SoupExtractor", "simplify_selector"]
