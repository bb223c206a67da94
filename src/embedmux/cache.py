"""Per-document memoization of derived artifacts.

``DocumentCache`` maps a document uri to the value derived from one version
of that document (a region index, a projected sub-document, a parsed tree).
An entry is replaced, never updated, when the version or language id of the
requested document differs from the cached one.

Eviction is split into two independent policies:

* ``LruEviction`` runs on insert and drops the least recently used entries
  beyond ``max_entries``.
* ``AgeSweep`` runs periodically and drops entries created more than
  ``interval`` seconds ago.

Thread Safety:
    Lookups and inserts happen on the request thread; the sweep runs on a
    daemon timer thread. Both go through one lock around the entry map.
"""

from __future__ import annotations

import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable, Generic, TypeVar

from embedmux.log import get_logger
from embedmux.text_document import TextDocument

T = TypeVar("T")

DEFAULT_MAX_ENTRIES = 10
DEFAULT_CLEANUP_INTERVAL = 60.0

logger = get_logger(__name__)


@dataclass(frozen=True)
class CacheEntry(Generic[T]):
    language_id: str
    version: int
    timestamp: float
    value: T


class LruEviction:
    def __init__(self, max_entries: int = DEFAULT_MAX_ENTRIES) -> None:
        self.max_entries = max_entries

    def apply(self, entries: OrderedDict[str, CacheEntry]) -> list[str]:
        evicted: list[str] = []
        while len(entries) > self.max_entries:
            key, _ = entries.popitem(last=False)
            evicted.append(key)
        return evicted


class AgeSweep:
    def __init__(self, interval: float = DEFAULT_CLEANUP_INTERVAL) -> None:
        self.interval = interval

    def apply(self, entries: OrderedDict[str, CacheEntry], now: float) -> list[str]:
        cutoff = now - self.interval
        expired = [key for key, entry in entries.items() if entry.timestamp < cutoff]
        for key in expired:
            del entries[key]
        return expired


class DocumentCache(Generic[T]):
    def __init__(
        self,
        parse: Callable[[TextDocument], T],
        max_entries: int = DEFAULT_MAX_ENTRIES,
        cleanup_interval: float = DEFAULT_CLEANUP_INTERVAL,
        *,
        clock: Callable[[], float] = time.monotonic,
        autostart: bool = True,
    ) -> None:
        self._parse = parse
        self._entries: OrderedDict[str, CacheEntry[T]] = OrderedDict()
        self._lock = threading.Lock()
        self._clock = clock
        self.lru = LruEviction(max_entries)
        self.age_sweep = AgeSweep(cleanup_interval)
        self._timer: threading.Timer | None = None
        self._disposed = False
        if autostart:
            self._schedule_sweep()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, uri: object) -> bool:
        with self._lock:
            return uri in self._entries

    def get(self, document: TextDocument) -> T:
        with self._lock:
            entry = self._entries.get(document.uri)
            if (
                entry is not None
                and entry.version == document.version
                and entry.language_id == document.language_id
            ):
                self._entries.move_to_end(document.uri)
                return entry.value
        # parse outside the lock; parse functions may consult other caches
        value = self._parse(document)
        with self._lock:
            self._entries[document.uri] = CacheEntry(
                language_id=document.language_id,
                version=document.version,
                timestamp=self._clock(),
                value=value,
            )
            self._entries.move_to_end(document.uri)
            self.lru.apply(self._entries)
        return value

    def delete(self, document: TextDocument) -> None:
        with self._lock:
            self._entries.pop(document.uri, None)

    def sweep(self) -> list[str]:
        with self._lock:
            expired = self.age_sweep.apply(self._entries, self._clock())
        if expired:
            logger.debug("swept %d expired cache entries", len(expired))
        return expired

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def dispose(self) -> None:
        self._disposed = True
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        with self._lock:
            self._entries.clear()

    def _schedule_sweep(self) -> None:
        if self._disposed:
            return
        timer = threading.Timer(self.age_sweep.interval, self._run_sweep)
        timer.daemon = True
        self._timer = timer
        timer.start()

    def _run_sweep(self) -> None:
        self.sweep()
        self._schedule_sweep()
