import logging
import time
from collections import OrderedDict
from typing import Callable

from db.config import settings

logger = logging.getLogger(__name__)


class LookupGuard:
    """
    Process-local memory of recent failed lookups.

    Keeps at most ``max_entries`` keys, evicting the oldest attempt first, and
    forgets an attempt once it is older than ``ttl_seconds``. Losing this state
    on restart only costs a redundant provider call.
    """

    def __init__(
        self,
        ttl_seconds: float = settings.lookup_guard_ttl_seconds,
        max_entries: int = settings.lookup_guard_max_entries,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock
        self._attempts: OrderedDict[str, float] = OrderedDict()

    def __len__(self) -> int:
        return len(self._attempts)

    def has_recent_attempt(self, key: str) -> bool:
        timestamp = self._attempts.get(key)
        if timestamp is None:
            return False
        if self._clock() - timestamp >= self.ttl_seconds:
            del self._attempts[key]
            return False
        return True

    def record_attempt(self, key: str) -> None:
        self._attempts[key] = self._clock()
        self._attempts.move_to_end(key)
        while len(self._attempts) > self.max_entries:
            evicted_key, _ = self._attempts.popitem(last=False)
            logger.debug(f"Evicted lookup attempt {evicted_key}")

    def clear(self, key: str | None = None) -> None:
        if key is None:
            self._attempts.clear()
        else:
            self._attempts.pop(key, None)
