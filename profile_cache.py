import threading
import time
from typing import Callable, Generic, Optional, TypeVar

T = TypeVar("T")


class ProfileCache(Generic[T]):
    """Time-boxed read-through cache for profile lookups, keyed by user id.

    Entries expire ``ttl_secs`` after they are stored; writers call
    :meth:`invalidate` after changing a profile so the next read goes to the
    database.
    """

    def __init__(
        self, ttl_secs: float, clock: Callable[[], float] = time.monotonic
    ) -> None:
        self.ttl_secs = ttl_secs
        self._clock = clock
        self._entries: dict[int, tuple[float, T]] = {}
        self._lock = threading.Lock()

    def get(self, user_id: int) -> Optional[T]:
        with self._lock:
            entry = self._entries.get(user_id)
            if entry is None:
                return None
            expires_at, value = entry
            if self._clock() >= expires_at:
                del self._entries[user_id]
                return None
            return value

    def set(self, user_id: int, value: T) -> None:
        with self._lock:
            self._entries[user_id] = (self._clock() + self.ttl_secs, value)

    def invalidate(self, user_id: int) -> None:
        with self._lock:
            self._entries.pop(user_id, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
