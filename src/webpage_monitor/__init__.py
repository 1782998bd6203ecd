"""Watch web pages and notify about genuinely new content."""

__version__ = "0.1.0"
