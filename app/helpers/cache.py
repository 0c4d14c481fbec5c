import asyncio
from collections import OrderedDict
from collections.abc import Hashable
from functools import wraps
from typing import Any


class _LruStore:
    """
    Bounded mapping, evicting the least recently used key when full.
    """

    _entries: OrderedDict[Hashable, Any]
    _maxsize: int

    def __init__(self, maxsize: int):
        self._entries = OrderedDict()
        self._maxsize = maxsize

    def __contains__(self, key: Hashable) -> bool:
        return key in self._entries

    def get(self, key: Hashable) -> Any:
        self._entries.move_to_end(key)
        return self._entries[key]

    def put(self, key: Hashable, value: Any) -> None:
        self._entries[key] = value
        self._entries.move_to_end(key)
        if len(self._entries) > self._maxsize:
            self._entries.popitem(last=False)

    def discard(self, key: Hashable, value: Any) -> None:
        """
        Remove a key, only if it still holds the given value.
        """
        if self._entries.get(key) is value:
            del self._entries[key]

    def clear(self) -> None:
        self._entries.clear()


def lru_acache(maxsize: int = 128):
    """
    Caches an async function's return value each time it is called.

    Values are scoped to the running event loop, objects bound to a loop (e.g. HTTP sessions) are never shared across loops. Concurrent calls with the same arguments share a single execution. Failures are not cached. If the maxsize is reached, the least recently used value is removed.
    """

    def decorator(func):
        store = _LruStore(maxsize)

        @wraps(func)
        async def wrapper(*args, **kwargs):
            key = (
                id(asyncio.get_running_loop()),
                args,
                frozenset(kwargs.items()),
            )
            if key in store:
                task = store.get(key)
            else:
                task = asyncio.ensure_future(func(*args, **kwargs))
                store.put(key, task)

                def _forget_failure(done: asyncio.Future) -> None:
                    if done.cancelled() or done.exception():
                        store.discard(key, done)

                task.add_done_callback(_forget_failure)

            # A cancelled caller must not cancel the call other callers are waiting for
            return await asyncio.shield(task)

        wrapper.cache_clear = store.clear  # pyright: ignore
        return wrapper

    return decorator


def lru_cache(maxsize: int = 128):
    """
    Caches a sync function's return value each time it is called.

    If the maxsize is reached, the least recently used value is removed.
    """

    def decorator(func):
        store = _LruStore(maxsize)

        @wraps(func)
        def wrapper(*args, **kwargs):
            key = (
                args,
                frozenset(kwargs.items()),
            )
            if key in store:
                return store.get(key)

            value = func(*args, **kwargs)
            store.put(key, value)
            return value

        wrapper.cache_clear = store.clear  # pyright: ignore
        return wrapper

    return decorator
