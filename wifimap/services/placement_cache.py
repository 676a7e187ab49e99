"""In-memory cache for placement results."""

from collections import OrderedDict
from contextlib import contextmanager
from typing import Optional
import hashlib
import logging
import threading

from wifimap.core.config import settings
from wifimap.schemas.optimization import RouterPlacementResult

logger = logging.getLogger(__name__)


class ReadWriteLock:
    """Many concurrent readers or one writer."""

    def __init__(self):
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writing = False

    @contextmanager
    def read(self):
        with self._cond:
            while self._writing:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write(self):
        with self._cond:
            while self._writing or self._readers:
                self._cond.wait()
            self._writing = True
        try:
            yield
        finally:
            with self._cond:
                self._writing = False
                self._cond.notify_all()


class PlacementCache:
    """
    Bounded cache of primary placement results keyed by input hash.

    Two callers missing on the same key both compute; the last write wins.
    Once full, the oldest entry is evicted.
    """

    def __init__(self, max_entries: Optional[int] = None):
        self.max_entries = max(1, max_entries or settings.PLACEMENT_CACHE_SIZE)
        self._entries: "OrderedDict[str, RouterPlacementResult]" = OrderedDict()
        self._lock = ReadWriteLock()
        self.hits = 0
        self.misses = 0

    @staticmethod
    def make_key(*parts: str) -> str:
        digest = hashlib.sha256()
        for part in parts:
            digest.update(part.encode("utf-8"))
            digest.update(b"\x00")
        return digest.hexdigest()

    def get(self, key: str) -> Optional[RouterPlacementResult]:
        with self._lock.read():
            result = self._entries.get(key)
        if result is None:
            self.misses += 1
        else:
            self.hits += 1
        return result

    def put(self, key: str, result: RouterPlacementResult):
        with self._lock.write():
            self._entries[key] = result
            self._entries.move_to_end(key)
            while len(self._entries) > self.max_entries:
                evicted, _ = self._entries.popitem(last=False)
                logger.debug(f"Evicted placement cache entry {evicted[:12]}")

    def clear(self):
        with self._lock.write():
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock.read():
            return len(self._entries)

    def __contains__(self, key: str) -> bool:
        with self._lock.read():
            return key in self._entries
