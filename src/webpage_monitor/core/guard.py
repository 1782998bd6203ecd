"""Single-flight guard for per-target checks."""


class CheckGuard:
    """Mark targets as being checked so overlapping checks are dropped.

    ``try_acquire`` never suspends, so on a single event loop the
    test-and-set cannot interleave with another coroutine.
    """

    def __init__(self) -> None:
        self._in_flight: set[str] = set()

    def try_acquire(self, target_id: str) -> bool:
        if target_id in self._in_flight:
            return False
        self._in_flight.add(target_id)
        return True

    def release(self, target_id: str) -> None:
        self._in_flight.discard(target_id)

    def is_held(self, target_id: str) -> bool:
        return target_id in self._in_flight

    def forget(self, target_id: str) -> None:
        self.release(target_id)
