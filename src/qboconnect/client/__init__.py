"""Accounting API client module for qboconnect.

Provides a blocking QuickBooks Online client that records HTTP failures
instead of raising, the 401-triggered refresh-and-retry wrapper, and the
create/update/delete facade registry.

Classes and functions:
    :class:`DataService` -- QBO v3 REST client backed by :class:`httpx.Client`.
    :func:`call_with_auto_refresh` -- refresh the token and retry once on 401.
    :class:`FacadeRegistry` -- ``(Operation, EntityKind)`` handler registry.

Example::

    from qboconnect.client import DataService, call_with_auto_refresh

    service = DataService(token, realm_id)
    company = call_with_auto_refresh(service, service.get_company_info, refresh=connect.refresh_token)
"""

from qboconnect.client.data_service import DataService, api_base_url
from qboconnect.client.facade import (
    FacadeRegistry,
    Operation,
    create_default_registry,
    resolve_method_name,
)
from qboconnect.client.refresh import call_with_auto_refresh

__all__ = [
    "DataService",
    "FacadeRegistry",
    "Operation",
    "api_base_url",
    "call_with_auto_refresh",
    "create_default_registry",
    "resolve_method_name",
]
