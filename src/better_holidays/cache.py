"""
Bounded least-recently-used caches and a memoization wrapper.

The holiday engine keeps two of them: one for the raw dates a rule produces in a given
year and one for fully resolved (locale, year) holiday sets.
"""

from __future__ import annotations

import logging
from collections import OrderedDict
from functools import wraps
from typing import Any, Callable, Dict, Hashable, Iterator, List, Optional

logger = logging.getLogger(__name__)

DEFAULT_CAPACITY = 1000
DATE_CACHE_CAPACITY = 10000
HOLIDAY_CACHE_CAPACITY = 5000

_MISSING = object()


class LRUCache:
    """
    Fixed-capacity mapping that evicts the least-recently-used entry on overflow.

    Both ``get`` (on a hit) and ``set`` count as an access and move the key to the
    most-recently-used end. ``has`` does not.

    Parameters
    ----------
    capacity: int, default DEFAULT_CAPACITY
        Maximum number of entries kept. Must be >= 1.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY):
        if int(capacity) < 1:
            raise ValueError(f"capacity must be >= 1, got {capacity!r}")
        self._capacity = int(capacity)
        self._data: "OrderedDict[Hashable, Any]" = OrderedDict()
        self._hits = 0
        self._misses = 0

    @property
    def capacity(self) -> int:
        return self._capacity

    def __len__(self) -> int:
        return len(self._data)

    def __contains__(self, key: Hashable) -> bool:
        return key in self._data

    def __iter__(self) -> Iterator[Hashable]:
        return iter(list(self._data.keys()))

    def get(self, key: Hashable, default: Any = None) -> Any:
        value = self._data.get(key, _MISSING)
        if value is _MISSING:
            self._misses += 1
            return default
        self._data.move_to_end(key)
        self._hits += 1
        return value

    def set(self, key: Hashable, value: Any) -> None:
        if key in self._data:
            self._data.move_to_end(key)
        self._data[key] = value
        while len(self._data) > self._capacity:
            evicted, _ = self._data.popitem(last=False)
            logger.debug("LRU eviction of key %r", evicted)

    def has(self, key: Hashable) -> bool:
        return key in self._data

    def delete(self, key: Hashable) -> bool:
        """Remove ``key``. Returns True if it was present."""
        return self._data.pop(key, _MISSING) is not _MISSING

    def delete_where(self, predicate: Callable[[Hashable], bool]) -> int:
        """Remove every key for which ``predicate(key)`` is true and return how many were removed."""
        doomed = [k for k in self._data if predicate(k)]
        for k in doomed:
            del self._data[k]
        return len(doomed)

    def clear(self) -> None:
        self._data.clear()
        self._hits = 0
        self._misses = 0

    def keys(self) -> List[Hashable]:
        """Keys from least to most recently used."""
        return list(self._data.keys())

    def stats(self) -> Dict[str, float]:
        total = self._hits + self._misses
        return {
            "size": len(self._data),
            "capacity": self._capacity,
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": (self._hits / total) if total else 0.0,
        }

    def __repr__(self) -> str:
        return f"LRUCache(size={len(self._data)}, capacity={self._capacity})"


def _typed_key(args: tuple, kwargs: dict) -> tuple:
    """Default memoize key. Types are part of it so that ``1``, ``1.0`` and ``True`` stay apart."""
    key = tuple((type(a), a) for a in args)
    if kwargs:
        key += tuple((k, type(v), v) for k, v in sorted(kwargs.items()))
    return key


def memoize(fn: Optional[Callable] = None,
            key_fn: Optional[Callable[..., Hashable]] = None,
            *,
            capacity: int = DEFAULT_CAPACITY) -> Callable:
    """
    Wrap a pure function so repeated calls with equivalent keys reuse the first result.

    Can be used bare (``@memoize``), with options (``@memoize(capacity=64)``) or called
    directly (``memoize(fn, key_fn)``).

    Parameters
    ----------
    fn: Callable, optional
        The function to wrap.
    key_fn: Callable, optional
        Builds the cache key from the call arguments. Defaults to the typed arguments,
        which requires hashable arguments.
    capacity: int, default DEFAULT_CAPACITY
        Capacity of the backing ``LRUCache``.

    Returns
    -------
    Callable
        The wrapper, exposing ``.cache`` and ``.cache_clear()``.
    """
    def decorate(func: Callable) -> Callable:
        cache = LRUCache(capacity)

        @wraps(func)
        def wrapper(*args, **kwargs):
            if key_fn is not None:
                key = key_fn(*args, **kwargs)
            else:
                key = _typed_key(args, kwargs)
            value = cache.get(key, _MISSING)
            if value is _MISSING:
                value = func(*args, **kwargs)
                cache.set(key, value)
            return value

        wrapper.cache = cache
        wrapper.cache_clear = cache.clear
        return wrapper

    if fn is None:
        return decorate
    return decorate(fn)


# =========================
# Presets
# =========================
def date_cache_key(locale: str, rule_id: str, year: int) -> tuple:
    return ("date", locale, rule_id, int(year))


def holiday_cache_key(locale: str, year: int) -> tuple:
    return ("holidays", locale, int(year))


def create_date_cache(capacity: int = DATE_CACHE_CAPACITY) -> LRUCache:
    """LRU for per-rule raw dates, keyed with ``date_cache_key``."""
    return LRUCache(capacity)


def create_holiday_cache(capacity: int = HOLIDAY_CACHE_CAPACITY) -> LRUCache:
    """LRU for resolved holiday sets, keyed with ``holiday_cache_key``."""
    return LRUCache(capacity)
