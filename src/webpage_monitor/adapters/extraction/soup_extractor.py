"""CSS selector extraction with BeautifulSoup."""

import re

import structlog
from bs4 import BeautifulSoup, Tag

from webpage_monitor.core import ExtractKind, Extractor, SelectorRule

logger = structlog.get_logger(__name__)

_QUOTED_ATTRIBUTE_RE = re.compile(r"\[[^\]]*[\"'][^\]]*\]")
_NTH_CHILD_RE = re.compile(r":nth-child\([^)]*\)")
_FIRST_LAST_CHILD_RE = re.compile(r":first-child|:last-child")
_COMBINATOR_RE = re.compile(r"\s*>\s*|\s+")
_TAG_RE = re.compile(r"<[^>]+>")
_WHITESPACE_RE = re.compile(r"\s+")

# Cap for tag-only selectors in the regex fallback
_MAX_TAG_MATCHES = 10


def simplify_selector(selector: str) -> str:
    """Reduce a brittle selector to its last two simple parts.

    Drops quoted attribute filters and child-position pseudo classes, which
    are the parts most likely to stop matching after a page redesign.
    """
    simplified = _QUOTED_ATTRIBUTE_RE.sub("", selector)
    simplified = _NTH_CHILD_RE.sub("", simplified)
    simplified = _FIRST_LAST_CHILD_RE.sub("", simplified)

    parts = [part for part in _COMBINATOR_RE.split(simplified) if part]
    if parts:
        return " ".join(parts[-2:])
    return selector


def _clean_text(html: str) -> str:
    return _WHITESPACE_RE.sub(" ", _TAG_RE.sub(" ", html)).strip()


def extract_by_selector_basic(html: str, selector: str) -> str:
    """Regex extraction for ``#id``, ``.class`` and ``tag`` selectors."""
    if selector.startswith("#"):
        element_id = re.split(r"[.\s\[]", selector[1:])[0]
        match = re.search(
            rf"id=[\"']{re.escape(element_id)}[\"'][^>]*>([\s\S]*?)<",
            html,
            re.IGNORECASE,
        )
        if match:
            return _clean_text(match.group(1))

    class_match = re.search(r"\.([a-zA-Z0-9_-]+)", selector)
    if class_match:
        class_name = re.escape(class_match.group(1))
        matches = re.findall(
            rf"class=[\"'][^\"']*{class_name}[^\"']*[\"'][^>]*>([\s\S]*?)</",
            html,
            re.IGNORECASE,
        )
        if matches:
            return "\n".join(_clean_text(m) for m in matches)

    tag_match = re.match(r"^([a-zA-Z0-9]+)", selector)
    if tag_match:
        tag = tag_match.group(1)
        matches = re.findall(rf"<{tag}[^>]*>([\s\S]*?)</{tag}>", html, re.IGNORECASE)
        if matches:
            return "\n".join(_clean_text(m) for m in matches[:_MAX_TAG_MATCHES])

    return ""


def extract_basic(html: str, rules: list[SelectorRule]) -> str:
    """Best-effort extraction used when HTML parsing fails."""
    parts = []
    for rule in rules:
        extracted = extract_by_selector_basic(html, rule.selector)
        if extracted:
            parts.append(extracted)
    return "\n".join(parts)


class SoupExtractor(Extractor):
    """Extract text for selector rules from an HTML document."""

    async def extract(self, raw_body: str, rules: list[SelectorRule]) -> str:
        try:
            soup = BeautifulSoup(raw_body, "html.parser")
            parts: list[str] = []

            for rule in rules:
                for element in self._select(soup, rule.selector):
                    content = self._element_content(element, rule)
                    if content:
                        parts.append(content)

            return "\n".join(parts)
        except Exception as e:
            logger.warning("extraction_failed_using_fallback", error=str(e))
            return extract_basic(raw_body, rules)

    def _select(self, soup: BeautifulSoup, selector: str) -> list[Tag]:
        """Select elements, retrying with a simplified selector."""
        try:
            elements = soup.select(selector)
        except Exception as e:
            logger.debug("selector_invalid", selector=selector, error=str(e))
            elements = []

        if elements:
            return elements

        simplified = simplify_selector(selector)
        if simplified == selector:
            return []

        try:
            elements = soup.select(simplified)
        except Exception as e:
            logger.debug("selector_invalid", selector=simplified, error=str(e))
            return []

        logger.debug(
            "selector_simplified",
            selector=selector,
            simplified=simplified,
            matches=len(elements),
        )
        return elements

    def _element_content(self, element: Tag, rule: SelectorRule) -> str:
        if rule.kind == ExtractKind.HTML:
            return element.decode_contents()

        if rule.kind == ExtractKind.ATTR and rule.attribute:
            value = element.get(rule.attribute)
            if isinstance(value, list):
                # bs4 returns multi-valued attributes such as class as lists
                return " ".join(value)
            return value or ""

        return element.get_text().strip()
