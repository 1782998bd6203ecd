"""Per-target memory of items that were already alerted on."""

from webpage_monitor.core.entities import HISTORY_SIZE
from webpage_monitor.core.normalizer import collapse_whitespace


def hash_content(text: str) -> str:
    """Deterministic 32-bit hash of the lower-cased, whitespace-collapsed text."""
    if not text:
        return "0"

    normalized = collapse_whitespace(text.lower())

    # Iterate UTF-16 code units, as JavaScript strings do
    encoded = normalized.encode("utf-16-le")

    value = 0
    for index in range(0, len(encoded), 2):
        unit = int.from_bytes(encoded[index:index + 2], "little")
        value = (value * 31 + unit) & 0xFFFFFFFF

    # Signed 32-bit, so histories written by the browser extension still match
    if value >= 0x80000000:
        value -= 0x100000000
    return str(value)


class AlertCache:
    """Track hashes of alerted items per target.

    The in-memory set is seeded once per process from the persisted alert
    history and only grows afterwards. ``snapshot`` returns the bounded tail
    that gets persisted.
    """

    def __init__(self, history_size: int = HISTORY_SIZE) -> None:
        self.history_size = history_size
        # dict keeps insertion order, values unused
        self._hashes: dict[str, dict[str, None]] = {}

    def initialize(self, target_id: str, persisted_hashes: list[str]) -> None:
        """Seed from persisted history; no-op once the target is known."""
        if target_id in self._hashes:
            return
        self._hashes[target_id] = dict.fromkeys(persisted_hashes or [])

    def is_initialized(self, target_id: str) -> bool:
        return target_id in self._hashes

    def contains(self, target_id: str, content_hash: str) -> bool:
        return content_hash in self._hashes.get(target_id, {})

    def insert(self, target_id: str, content_hash: str) -> None:
        self._hashes.setdefault(target_id, {})[content_hash] = None

    def snapshot(self, target_id: str) -> list[str]:
        """Most recently inserted hashes, oldest first."""
        hashes = list(self._hashes.get(target_id, {}))
        return hashes[-self.history_size:]

    def forget(self, target_id: str) -> None:
        self._hashes.pop(target_id, None)
