"""Detect genuinely new items between two snapshots of a page."""


DEFAULT_SIMILARITY_THRESHOLD = 0.8
DEFAULT_MIN_WORD_LENGTH = 4


def _significant_words(text: str, min_word_length: int) -> set[str]:
    return {word for word in text.split() if len(word) >= min_word_length}


def similarity(
    first: str, second: str, *, min_word_length: int = DEFAULT_MIN_WORD_LENGTH
) -> float:
    """Approximate similarity of two strings in [0, 1].

    Shared significant words over the size of the larger word set. Strings whose
    lengths differ by more than a factor of two score 0.
    """
    if not first or not second:
        return 0.0
    if first == second:
        return 1.0

    longer, shorter = (first, second) if len(first) > len(second) else (second, first)

    if len(longer) > len(shorter) * 2:
        return 0.0

    shorter_words = _significant_words(shorter, min_word_length)
    longer_words = _significant_words(longer, min_word_length)

    if not shorter_words:
        return 0.0

    matches = len(shorter_words & longer_words)
    return matches / max(len(shorter_words), len(longer_words))


def find_new_items(
    previous: list[str],
    current: list[str],
    *,
    threshold: float = DEFAULT_SIMILARITY_THRESHOLD,
    min_word_length: int = DEFAULT_MIN_WORD_LENGTH,
) -> list[str]:
    """Return items of ``current`` that have no exact or near match in ``previous``.

    An empty ``previous`` means there is no baseline yet, so nothing is new.
    Reordering alone never produces new items.
    """
    if not previous:
        return []

    previous_lower = [item.lower() for item in previous]
    previous_set = set(previous_lower)

    new_items = []
    for item in current:
        normalized = item.lower()

        if normalized in previous_set:
            continue

        if any(
            similarity(normalized, old, min_word_length=min_word_length) > threshold
            for old in previous_lower
        ):
            continue

        new_items.append(item)

    return new_items
