import threading

from chatcore.schemas import Usage


class UsageAccumulator:
    """
    Running usage total owned by one model or one provider.

    add_usage is safe to call from concurrent calls and threads; the lock is
    only held for the merge itself, never across an await.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._total = Usage.empty()
        self._calls = 0

    def add_usage(self, usage: Usage) -> None:
        with self._lock:
            self._total = self._total + usage
            self._calls += 1

    @property
    def total(self) -> Usage:
        with self._lock:
            return self._total

    @property
    def calls(self) -> int:
        with self._lock:
            return self._calls

    def reset(self) -> None:
        with self._lock:
            self._total = Usage.empty()
            self._calls = 0
