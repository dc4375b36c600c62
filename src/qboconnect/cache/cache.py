"""Value-plus-expiry cache layered over a key-value store.

The backing :class:`~qboconnect.store.KeyValueStore` has no expiry of its
own, so :class:`ExpiringCache` stores two entries: the value under ``key``
and an absolute UNIX timestamp under ``key + "_exp"``. Unlike a TTL cache
that silently drops stale entries, a stale value is still returned -- the
caller decides whether to refetch and may fall back to the stale value if
the refetch fails.

See Also:
    :class:`~qboconnect.auth.discovery.Discovery` -- caches the OpenID
    discovery document for one week.
"""

from __future__ import annotations

import time
from typing import Any, Callable, Optional

from qboconnect.exceptions import ConfigError
from qboconnect.store.base import KeyValueStore

HOUR_IN_SECONDS = 60 * 60
WEEK_IN_SECONDS = 7 * 24 * HOUR_IN_SECONDS

_EXPIRY_SUFFIX = "_exp"


class ExpiringCache:
    """A single cached value with an expiry timestamp.

    Args:
        store: Backing key-value store.
        key: Entry name. Must be non-empty.
        ttl: Lifetime in seconds applied by :meth:`set`.
        clock: Returns the current UNIX time; injectable for tests.

    Example::

        cache = ExpiringCache(MemoryStore(), "discovery", ttl=WEEK_IN_SECONDS)
        cache.get()               # (None, False) -- never set
        cache.set({"a": 1})
        cache.get()               # ({"a": 1}, False)
    """

    def __init__(
        self,
        store: KeyValueStore,
        key: str,
        ttl: float = HOUR_IN_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if not key:
            raise ConfigError("ExpiringCache key is required")
        self._store = store
        self._key = key
        self._ttl = ttl
        self._clock = clock

    @property
    def key(self) -> str:
        return self._key

    @property
    def expiry_key(self) -> str:
        return self._key + _EXPIRY_SUFFIX

    @property
    def ttl(self) -> float:
        return self._ttl

    def get(self) -> tuple[Optional[Any], bool]:
        """Return ``(value, is_expired)``.

        A value that was never stored yields ``(None, False)``: absent is not
        the same as expired, but callers must still treat ``None`` as "needs
        fetch". A stored value without an expiry entry never expires.
        """
        missing = object()
        value = self._store.get(self._key, missing)
        if value is missing:
            return None, False

        expiry = self._store.get(self.expiry_key)
        is_expired = expiry is not None and float(expiry) < self._clock()
        return value, is_expired

    def set(self, value: Any) -> None:
        """Store *value* with an expiry of ``now + ttl``."""
        self._store.set(self.expiry_key, self._clock() + self._ttl)
        self._store.set(self._key, value)

    def delete(self) -> bool:
        """Remove the value and its expiry entry.

        Returns:
            ``True`` if a value was removed.
        """
        self._store.delete(self.expiry_key)
        return self._store.delete(self._key)

    def expires_at(self) -> Optional[float]:
        """The stored expiry timestamp, or ``None``."""
        expiry = self._store.get(self.expiry_key)
        return float(expiry) if expiry is not None else None
