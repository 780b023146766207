# Copyright Rand Arete @ Ananke 2025
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# ==============================================================================
"""In-memory response cache with per-file change invalidation.

Each served path owns one slot that moves through three states:

    ABSENT --request--> PENDING --built--> CACHED --file changed--> ABSENT
                           |
                           +--build failed--> ABSENT

While a slot is PENDING it holds a Future. Concurrent requests for the same
path wait on that Future instead of reading and rewriting the file again.

A CACHED slot carries a one-shot FileWatch armed before the file was read.
The watch compares the file's stat signature on every lookup of its path,
and on every watchdog event for the file when the cache has a FileObserver.
The first time the signature differs the watch disarms itself and drops the
entry, so the next request rebuilds it from disk.

Thread Safety:
    ResponseCache is safe to share between request threads. Builds run
    outside the lock.
"""

from __future__ import annotations

import hashlib
import logging
import os
import threading
from concurrent.futures import Future
from dataclasses import dataclass
from enum import Enum, auto
from typing import Callable, Dict, Optional, Set, Tuple

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

logger = logging.getLogger(__name__)

JAVASCRIPT_CONTENT_TYPE = "application/javascript; charset=utf-8"
JSON_CONTENT_TYPE = "application/json; charset=utf-8"


def compute_etag(content: str) -> str:
    """Quoted SHA-1 hex digest of the UTF-8 content."""
    return '"' + hashlib.sha1(content.encode("utf-8")).hexdigest() + '"'


@dataclass(frozen=True)
class CachedResponse:
    """A cached, rewritten module.

    Attributes:
        content: Rewritten source text
        etag: Quoted content hash
        content_type: Value of the content-type header
    """

    content: str
    etag: str
    content_type: str = JAVASCRIPT_CONTENT_TYPE

    @classmethod
    def for_content(
        cls,
        content: str,
        content_type: str = JAVASCRIPT_CONTENT_TYPE,
    ) -> CachedResponse:
        return cls(content=content, etag=compute_etag(content), content_type=content_type)

    @property
    def body(self) -> bytes:
        return self.content.encode("utf-8")

    @property
    def headers(self) -> Dict[str, str]:
        return {"content-type": self.content_type, "etag": self.etag}


StatSignature = Tuple[int, int, int]


class FileWatch:
    """One-shot change watch on a single file.

    The watch fires at most once: the first check that sees a different
    stat signature (or a missing file) disarms it and calls on_change.
    Checks run on lookup and, when a FileObserver is given, whenever the
    operating system reports an event for the file.
    """

    def __init__(
        self,
        path: str,
        on_change: Optional[Callable[[FileWatch], None]] = None,
        observer: Optional[FileObserver] = None,
    ) -> None:
        self.path = os.path.abspath(path)
        self._on_change = on_change
        self._observer = observer
        self._lock = threading.Lock()
        self._signature = self.signature(self.path)
        self._armed = True
        if observer is not None:
            observer.add(self)

    @staticmethod
    def signature(path: str) -> Optional[StatSignature]:
        try:
            st = os.stat(path)
        except FileNotFoundError:
            return None
        return (st.st_mtime_ns, st.st_size, st.st_ino)

    @property
    def armed(self) -> bool:
        return self._armed

    def check(self) -> bool:
        """Fire if the file changed since the watch was armed.

        Returns:
            True if the watch fired on this call
        """
        with self._lock:
            if not self._armed:
                return False
            if self.signature(self.path) == self._signature:
                return False
            self._armed = False
        self._detach()
        if self._on_change is not None:
            self._on_change(self)
        return True

    def close(self) -> None:
        with self._lock:
            self._armed = False
        self._detach()

    def _detach(self) -> None:
        if self._observer is not None:
            self._observer.discard(self)


class FileObserver(FileSystemEventHandler):
    """Checks FileWatch objects when watchdog reports file system events.

    Each watched file's directory is scheduled once, non-recursively, on a
    single watchdog Observer and stays scheduled until the observer stops.
    Events only trigger a check; a watch still fires only if the file's
    stat signature changed, so reads of the file are ignored.

    Usage:
        observer = FileObserver()
        observer.start()
        cache = ResponseCache(observer=observer)
        ...
        observer.stop()
    """

    def __init__(self, observer: Optional[Observer] = None) -> None:
        super().__init__()
        self._observer = observer if observer is not None else Observer()
        self._watches: Dict[str, Set[FileWatch]] = {}
        self._scheduled: Set[str] = set()
        self._lock = threading.Lock()

    def start(self) -> None:
        self._observer.start()

    def stop(self) -> None:
        self._observer.stop()
        if self._observer.is_alive():
            self._observer.join()

    def add(self, watch: FileWatch) -> None:
        directory = os.path.dirname(watch.path)
        with self._lock:
            self._watches.setdefault(watch.path, set()).add(watch)
            if directory in self._scheduled or not os.path.isdir(directory):
                return
            self._scheduled.add(directory)
        # Outside our lock: the observer thread holds its own while dispatching
        self._observer.schedule(self, directory, recursive=False)
        logger.debug(f"Watching {directory}")

    def discard(self, watch: FileWatch) -> None:
        with self._lock:
            watches = self._watches.get(watch.path)
            if watches is None:
                return
            watches.discard(watch)
            if not watches:
                del self._watches[watch.path]

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            return
        paths = [event.src_path, getattr(event, "dest_path", "")]
        with self._lock:
            watches = [
                watch
                for path in paths
                if path
                for watch in self._watches.get(os.path.abspath(os.fsdecode(path)), ())
            ]
        for watch in watches:
            watch.check()


class SlotState(Enum):
    """State of one cache slot."""

    ABSENT = auto()
    PENDING = auto()
    CACHED = auto()


@dataclass
class _Slot:
    state: SlotState
    future: Future
    watch: Optional[FileWatch] = None


@dataclass
class CacheStats:
    """Counters for the response cache.

    Attributes:
        hits: Lookups answered from a CACHED slot
        misses: Lookups that started a build
        coalesced: Lookups that waited on another request's build
        invalidations: Entries dropped because their file changed
        failures: Builds that raised
    """

    hits: int = 0
    misses: int = 0
    coalesced: int = 0
    invalidations: int = 0
    failures: int = 0

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses + self.coalesced
        if total == 0:
            return 0.0
        return self.hits / total


Builder = Callable[[str], CachedResponse]


class ResponseCache:
    """Process-scoped cache of rewritten modules keyed by request path.

    Usage:
        cache = ResponseCache(observer=FileObserver())
        entry = cache.get_or_build("/src/app.js", "/srv/src/app.js", build)

    The cache is unbounded; entries live until their file changes or the
    cache is cleared.
    """

    def __init__(self, observer: Optional[FileObserver] = None) -> None:
        self._slots: Dict[str, _Slot] = {}
        self._lock = threading.RLock()
        self._observer = observer
        self.stats = CacheStats()

    def __len__(self) -> int:
        with self._lock:
            return sum(1 for slot in self._slots.values() if slot.state == SlotState.CACHED)

    def __contains__(self, key: str) -> bool:
        return self.state(key) == SlotState.CACHED

    def state(self, key: str) -> SlotState:
        """Current state of a slot, after checking its watch."""
        with self._lock:
            slot = self._current(key)
            return slot.state if slot else SlotState.ABSENT

    def get_or_build(self, key: str, path: str, build: Builder) -> CachedResponse:
        """Return the entry for key, building it from path on a miss.

        Args:
            key: Request path the entry is served under
            path: File the entry is built from and watched
            build: Reads and rewrites path into a CachedResponse

        Returns:
            The cached or freshly built entry

        Raises:
            Whatever build raises; the slot is left ABSENT
        """
        with self._lock:
            slot = self._current(key)
            if slot is None:
                slot = _Slot(state=SlotState.PENDING, future=Future())
                self._slots[key] = slot
                self.stats.misses += 1
                owner = True
            else:
                if slot.state == SlotState.CACHED:
                    self.stats.hits += 1
                    logger.debug(f"Cache hit: {key}")
                else:
                    self.stats.coalesced += 1
                    logger.debug(f"Waiting on in-flight build: {key}")
                owner = False

        if not owner:
            return slot.future.result()

        # Armed before reading so a change during the build is not missed
        watch = FileWatch(
            path,
            on_change=lambda w: self._drop(key, w),
            observer=self._observer,
        )
        try:
            entry = build(path)
        except Exception as e:
            watch.close()
            with self._lock:
                self.stats.failures += 1
                if self._slots.get(key) is slot:
                    del self._slots[key]
            slot.future.set_exception(e)
            raise

        with self._lock:
            slot.watch = watch
            slot.state = SlotState.CACHED
            if not watch.armed and self._slots.get(key) is slot:
                # Fired by an event while the file was being read
                del self._slots[key]
                self.stats.invalidations += 1
        slot.future.set_result(entry)
        return entry

    def invalidate(self, key: str) -> bool:
        """Drop an entry. Returns True if one was cached."""
        with self._lock:
            slot = self._slots.get(key)
            if slot is None or slot.state != SlotState.CACHED:
                return False
            del self._slots[key]
            slot.watch.close()
            return True

    def check_watches(self) -> int:
        """Check every armed watch. Returns the number that fired."""
        with self._lock:
            watches = [slot.watch for slot in self._slots.values() if slot.watch]
            return sum(1 for watch in watches if watch.check())

    def clear(self) -> None:
        with self._lock:
            for slot in self._slots.values():
                if slot.watch:
                    slot.watch.close()
            self._slots.clear()

    def _current(self, key: str) -> Optional[_Slot]:
        slot = self._slots.get(key)
        if slot is not None and slot.watch is not None:
            slot.watch.check()
            slot = self._slots.get(key)
        return slot

    def _drop(self, key: str, watch: FileWatch) -> None:
        with self._lock:
            slot = self._slots.get(key)
            if slot is not None and slot.watch is watch:
                del self._slots[key]
                self.stats.invalidations += 1
                logger.info(f"{watch.path} changed, dropped cached {key}")
