"""Keyed resource cache with request coalescing and freshness policies."""

from __future__ import annotations

import dataclasses
from concurrent.futures import Future
from dataclasses import dataclass
from enum import Enum
import logging
import threading
import time
from typing import Callable, Dict, Hashable, List, Optional

logger = logging.getLogger(__name__)

CacheKey = Hashable
Producer = Callable[[CacheKey], object]
Listener = Callable[[CacheKey], None]


class EntryStatus(str, Enum):
    FETCHING = "fetching"
    READY = "ready"
    FAILED = "failed"


@dataclass(frozen=True)
class FreshnessPolicy:
    """Freshness and retention windows for cache entries.

    Attributes
    ----------
    stale_after
        Seconds after which a ready value is refetched on the next request.
        ``None`` keeps values fresh for the life of the cache.
    retention
        Seconds an unreferenced entry is kept before :meth:`ResourceCache.collect`
        may evict it. ``None`` disables eviction.
    """

    stale_after: Optional[float] = None
    retention: Optional[float] = None


@dataclass
class CacheEntry:
    """State of a single cache key.

    Attributes
    ----------
    key
        Cache key.
    value
        Last stored value, kept visible while a refresh is fetching.
    status
        Fetch status.
    last_updated
        Clock value when ``value`` or ``error`` was last stored.
    error
        Error of the last failed fetch.
    generation
        Generation of the most recent fetch or write for the key.
    policy
        Freshness policy applied to the entry.
    observers
        Number of loaders currently referencing the key.
    released_at
        Clock value when ``observers`` last dropped to zero.
    future
        Pending outcome of the in-flight fetch.
    """

    key: CacheKey
    value: Optional[object] = None
    status: EntryStatus = EntryStatus.FETCHING
    last_updated: float = 0.0
    error: Optional[BaseException] = None
    generation: int = 0
    policy: FreshnessPolicy = FreshnessPolicy()
    observers: int = 0
    released_at: Optional[float] = None
    future: Optional[Future] = None

    @property
    def has_value(self) -> bool:
        return self.value is not None


def _resolved(value: object = None, error: Optional[BaseException] = None) -> Future:
    future: Future = Future()
    if error is not None:
        future.set_exception(error)
    else:
        future.set_result(value)
    return future


class ResourceCache:
    """Process-wide key/value cache shared by the loaders.

    At most one fetch runs per key. Every fetch is tagged with a per-key
    generation and only the outcome of the current generation is stored, so a
    superseded fetch resolving late never overwrites a newer result.

    Attributes
    ----------
    _entries
        Cache entries keyed by cache key.
    _generations
        Last generation issued per key; survives eviction so generations stay
        monotonic.
    _policy
        Default freshness policy.
    _submit
        Executor submit function running producers. Producers run inline when
        omitted.
    _clock
        Monotonic clock used for freshness and retention.
    """

    def __init__(
        self,
        policy: Optional[FreshnessPolicy] = None,
        submit: Optional[Callable[..., object]] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the cache.

        Parameters
        ----------
        policy
            Default freshness policy for entries without their own.
        submit
            Optional executor submission function, e.g. ``Worker.submit``.
        clock
            Clock returning seconds.

        Returns
        -------
        None
            This method does not return a value.
        """

        self._lock = threading.Lock()
        self._entries: Dict[CacheKey, CacheEntry] = {}
        self._generations: Dict[CacheKey, int] = {}
        self._listeners: List[Listener] = []
        self._policy = policy or FreshnessPolicy()
        self._submit = submit
        self._clock = clock

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: CacheKey) -> bool:
        with self._lock:
            return key in self._entries

    def add_listener(self, listener: Listener) -> None:
        """Register a callback invoked with the key after each stored change.

        Parameters
        ----------
        listener
            Callable taking the changed key.
        """
        with self._lock:
            self._listeners.append(listener)

    def get(self, key: CacheKey) -> Optional[CacheEntry]:
        """Return a snapshot of the entry for ``key``.

        Parameters
        ----------
        key
            Cache key.

        Returns
        -------
        CacheEntry or None
            Copy of the entry, or ``None`` when the key is not cached.
        """

        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            return dataclasses.replace(entry)

    def is_stale(self, entry: CacheEntry) -> bool:
        """Return whether a ready entry has outlived its staleness window.

        Parameters
        ----------
        entry
            Entry to check.

        Returns
        -------
        bool
            ``True`` when the entry should be refetched.
        """

        stale_after = entry.policy.stale_after
        if stale_after is None:
            return False
        return self._clock() - entry.last_updated >= stale_after

    def fetch_if_needed(
        self,
        key: CacheKey,
        producer: Producer,
        policy: Optional[FreshnessPolicy] = None,
        force: bool = False,
    ) -> Future:
        """Return the value for ``key``, fetching it when required.

        Parameters
        ----------
        key
            Cache key.
        producer
            Callable producing the value for ``key``. Runs on the configured
            executor.
        policy
            Freshness policy for the entry; defaults to the cache policy.
        force
            Start a new fetch generation even if a value is fresh or a fetch
            is already in flight.

        Returns
        -------
        concurrent.futures.Future
            Future resolving to the value. Fresh values and stored failures
            are returned as already-resolved futures; concurrent callers for a
            fetching key share one future.
        """

        self.collect()
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and not force:
                if entry.status is EntryStatus.FETCHING and entry.future is not None:
                    return entry.future
                if entry.status is EntryStatus.READY and not self.is_stale(entry):
                    return _resolved(entry.value)
                if entry.status is EntryStatus.FAILED:
                    return _resolved(error=entry.error)
            generation = self._generations.get(key, 0) + 1
            self._generations[key] = generation
            future: Future = Future()
            if entry is None:
                entry = CacheEntry(key=key, released_at=self._clock())
                self._entries[key] = entry
            entry.status = EntryStatus.FETCHING
            entry.generation = generation
            entry.future = future
            entry.policy = policy or self._policy
        logger.debug("Fetching key=%s generation=%d", key, generation)
        self._notify(key)
        if self._submit is None:
            self._run(key, producer, generation, future)
        else:
            try:
                self._submit(self._run, key, producer, generation, future)
            except RuntimeError as exc:
                logger.exception("Failed to schedule fetch for key=%s", key)
                self._settle(key, generation, future, error=exc)
        return future

    def set_data(
        self, key: CacheKey, value: object, policy: Optional[FreshnessPolicy] = None
    ) -> None:
        """Store ``value`` for ``key`` as a ready entry.

        Any fetch in flight for the key is superseded.

        Parameters
        ----------
        key
            Cache key.
        value
            Value to store.
        policy
            Freshness policy for the entry.
        """

        with self._lock:
            generation = self._generations.get(key, 0) + 1
            self._generations[key] = generation
            entry = self._entries.get(key)
            if entry is None:
                entry = CacheEntry(key=key, released_at=self._clock())
                self._entries[key] = entry
            entry.value = value
            entry.error = None
            entry.status = EntryStatus.READY
            entry.generation = generation
            entry.future = None
            entry.last_updated = self._clock()
            entry.policy = policy or self._policy
        self._notify(key)

    def observe(self, key: CacheKey) -> None:
        """Mark ``key`` as referenced by a loader."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return
            entry.observers += 1
            entry.released_at = None

    def release(self, key: CacheKey) -> None:
        """Drop one reference to ``key`` and start its retention window."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None or entry.observers <= 0:
                return
            entry.observers -= 1
            if entry.observers == 0:
                entry.released_at = self._clock()

    def collect(self) -> List[CacheKey]:
        """Evict unreferenced entries whose retention window has elapsed.

        Returns
        -------
        list
            Evicted keys.
        """

        now = self._clock()
        evicted = []
        with self._lock:
            for key, entry in list(self._entries.items()):
                if entry.observers > 0 or entry.status is EntryStatus.FETCHING:
                    continue
                retention = entry.policy.retention
                if retention is None or entry.released_at is None:
                    continue
                if now - entry.released_at >= retention:
                    del self._entries[key]
                    evicted.append(key)
        if evicted:
            logger.debug("Evicted %d cache entries", len(evicted))
        return evicted

    def remove(self, key: CacheKey) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def _run(self, key: CacheKey, producer: Producer, generation: int, future: Future) -> None:
        try:
            value = producer(key)
        except Exception as exc:
            logger.debug("Fetch failed key=%s generation=%d: %s", key, generation, exc)
            self._settle(key, generation, future, error=exc)
            return
        self._settle(key, generation, future, value=value)

    def _settle(
        self,
        key: CacheKey,
        generation: int,
        future: Future,
        value: object = None,
        error: Optional[BaseException] = None,
    ) -> None:
        stored = False
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and entry.generation == generation:
                if error is None:
                    entry.value = value
                    entry.error = None
                    entry.status = EntryStatus.READY
                else:
                    entry.error = error
                    entry.status = EntryStatus.FAILED
                entry.last_updated = self._clock()
                entry.future = None
                stored = True
        if not stored:
            logger.debug("Discarded superseded fetch key=%s generation=%d", key, generation)
        if not future.done():
            if error is None:
                future.set_result(value)
            else:
                future.set_exception(error)
        if stored:
            self._notify(key)

    def _notify(self, key: CacheKey) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(key)
            except Exception:
                logger.exception("Cache listener failed for key=%s", key)


def create_cache(submit: Optional[Callable[..., object]] = None) -> ResourceCache:
    """Create the process-wide cache.

    Parameters
    ----------
    submit
        Executor submission function for producers.

    Returns
    -------
    ResourceCache
        Cache with an unbounded default policy; loaders pass their own.
    """

    return ResourceCache(FreshnessPolicy(), submit=submit)
