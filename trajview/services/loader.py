"""Shared plumbing for cache-backed loaders."""

from __future__ import annotations

from abc import ABC, abstractmethod
from concurrent.futures import Future
import logging
import threading
from typing import Hashable, Optional

from trajview.model.state import DISABLED, LoadResult
from trajview.services.cache import CacheEntry, EntryStatus, FreshnessPolicy, ResourceCache

logger = logging.getLogger(__name__)


def result_from_entry(entry: Optional[CacheEntry]) -> LoadResult:
    """Convert a cache entry snapshot into a loader result.

    Parameters
    ----------
    entry
        Entry snapshot from :meth:`ResourceCache.get`.

    Returns
    -------
    LoadResult
        Value, loading flags and error for the entry.
    """

    if entry is None:
        return DISABLED
    fetching = entry.status is EntryStatus.FETCHING
    return LoadResult(
        value=entry.value,
        is_loading=fetching and not entry.has_value,
        is_fetching=fetching,
        error=entry.error if entry.status is EntryStatus.FAILED else None,
        generation=entry.generation,
    )


class CachedLoader(ABC):
    """Loader reading one cache key at a time.

    The loader keeps its current key referenced in the cache and releases the
    previous one when the key changes, which starts the retention window of
    the old entry. A failed entry is fetched again when the loader switches
    to it; while the key stays current the stored error is served.

    Attributes
    ----------
    _cache
        Shared resource cache.
    _policy
        Freshness policy for this loader's entries.
    _key
        Key currently referenced.
    """

    policy: FreshnessPolicy = FreshnessPolicy()

    def __init__(self, cache: ResourceCache, policy: Optional[FreshnessPolicy] = None) -> None:
        self._cache = cache
        self._policy = policy or self.policy
        self._key: Optional[Hashable] = None
        self._key_lock = threading.Lock()

    @property
    def key(self) -> Optional[Hashable]:
        return self._key

    @abstractmethod
    def _produce(self, key: Hashable) -> object:
        """Fetch the value for ``key``; runs on the cache executor."""

    def _request(self, key: Hashable, force: bool = False) -> Future:
        future = self._cache.fetch_if_needed(key, self._produce, policy=self._policy, force=force)
        self._track(key)
        return future

    def _read(self, key: Optional[Hashable], force: bool = False) -> LoadResult:
        if key is None:
            self._track(None)
            return DISABLED
        if not force and key != self._key:
            entry = self._cache.get(key)
            force = entry is not None and entry.status is EntryStatus.FAILED
        self._request(key, force=force)
        return result_from_entry(self._cache.get(key))

    def _track(self, key: Optional[Hashable]) -> None:
        with self._key_lock:
            previous = self._key
            if previous == key:
                return
            self._key = key
        if previous is not None:
            self._cache.release(previous)
        if key is not None:
            self._cache.observe(key)

    def close(self) -> None:
        """Release the current key."""
        self._track(None)
