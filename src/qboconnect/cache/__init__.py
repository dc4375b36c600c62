"""Expiring value cache for qboconnect.

This package provides :class:`ExpiringCache`, which pairs a value with an
absolute expiry timestamp inside any
:class:`~qboconnect.store.KeyValueStore`. It is consumed by
:class:`~qboconnect.auth.discovery.Discovery` to keep the provider's
discovery document for one week.
"""

from qboconnect.cache.cache import HOUR_IN_SECONDS, WEEK_IN_SECONDS, ExpiringCache

__all__ = ["ExpiringCache", "HOUR_IN_SECONDS", "WEEK_IN_SECONDS"]
