"""Turn extracted page text into comparable content items."""

import re

from bs4 import BeautifulSoup


MIN_ITEM_LENGTH = 10

_TIME_RE = re.compile(r"\b\d{1,2}:\d{2}\s*(AM|PM|am|pm)?\b")
_AD_MARKER_RE = re.compile(r"\b(Advertisement|Sponsored|Ad)\b", re.IGNORECASE)
_WHITESPACE_RE = re.compile(r"\s+")
_LINE_BREAK_RE = re.compile(r"[\n\r]+")

_BLOCK_BREAK = "\ue000"

# Elements that start a new line; everything else is joined inline
BLOCK_TAGS = [
    "address", "article", "aside", "blockquote", "br", "dd", "div", "dl",
    "dt", "footer", "form", "h1", "h2", "h3", "h4", "h5", "h6", "header",
    "hr", "li", "main", "nav", "ol", "p", "pre", "section", "table", "tr", "ul",
]


def collapse_whitespace(text: str) -> str:
    return _WHITESPACE_RE.sub(" ", text).strip()


def strip_markup(html: str) -> str:
    """Drop script/style blocks and tags, one block element per line.

    Inline elements such as ``<b>`` or ``<a>`` are replaced by a space, so a
    sentence with inline markup stays on one line.
    """
    soup = BeautifulSoup(html, "html.parser")

    for element in soup(["script", "style", "noscript"]):
        element.decompose()

    for element in soup.find_all(BLOCK_TAGS):
        element.insert_before(_BLOCK_BREAK)
        element.insert_after(_BLOCK_BREAK)

    # Line breaks in the source are plain whitespace
    text = soup.get_text(" ")
    lines = (collapse_whitespace(line) for line in text.split(_BLOCK_BREAK))
    return "\n".join(line for line in lines if line)


def normalize_content(
    text: str,
    *,
    markup: bool = False,
    min_length: int = MIN_ITEM_LENGTH,
) -> list[str]:
    """Split text into normalized items.

    Args:
        text: Extracted text, or raw HTML when ``markup`` is set
        markup: Strip tags and script/style blocks before splitting
        min_length: Items of this length or shorter are dropped

    Returns:
        Items in document order; empty when nothing survives
    """
    if not text:
        return []

    if markup:
        text = strip_markup(text)

    items = []
    for line in _LINE_BREAK_RE.split(text):
        line = line.strip()
        if len(line) <= min_length:
            continue

        line = _TIME_RE.sub("", line)
        line = _AD_MARKER_RE.sub("", line)
        line = collapse_whitespace(line)

        if len(line) > min_length:
            items.append(line)

    return items
