"""Explicit registry of create/update/delete handlers per accounting entity.

Older integrations routed calls such as ``create_customer`` by building a
class name from the method string at runtime. Here the name is parsed once
into an ``(Operation, EntityKind)`` key and looked up in a
:class:`FacadeRegistry` of plain handler functions; unknown names fail
loudly with :class:`~qboconnect.exceptions.InvalidUsageError`.

Example::

    registry = create_default_registry()
    operation, kind = resolve_method_name("create_customer")
    customer = registry.dispatch(operation, kind, service, {"DisplayName": "Acme"})
"""

from __future__ import annotations

import enum
import re
from typing import Any, Callable, Optional

from qboconnect.client.data_service import DataService
from qboconnect.exceptions import InvalidUsageError
from qboconnect.models import EntityKind

Payload = dict[str, Any]
Handler = Callable[[DataService, Payload], Optional[dict[str, Any]]]


class Operation(str, enum.Enum):
    """Write operations exposed by the facade."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


_METHOD_NAME = re.compile(r"^(create|update|delete)_([a-z][a-z_]*)$")


def _kind_from_snake(name: str) -> Optional[EntityKind]:
    """Map ``sales_receipt`` (or ``salesreceipt``) to :attr:`EntityKind.SALES_RECEIPT`."""
    wanted = name.replace("_", "")
    for kind in EntityKind:
        if kind.resource == wanted:
            return kind
    return None


def resolve_method_name(method_name: str) -> tuple[Operation, EntityKind]:
    """Parse a ``<operation>_<entity>`` method name into a registry key.

    Raises:
        InvalidUsageError: If the name does not follow the convention or
            names an unknown entity.
    """
    match = _METHOD_NAME.match(method_name.strip().lower())
    if match is None:
        raise InvalidUsageError(
            f"Invalid method name '{method_name}'. Expected create_<entity>, "
            "update_<entity> or delete_<entity>."
        )
    kind = _kind_from_snake(match.group(2))
    if kind is None:
        known = ", ".join(k.resource for k in EntityKind)
        raise InvalidUsageError(f"Unknown entity '{match.group(2)}'. Known entities: {known}")
    return Operation(match.group(1)), kind


class FacadeRegistry:
    """Maps ``(Operation, EntityKind)`` to a handler function."""

    def __init__(self) -> None:
        self._handlers: dict[tuple[Operation, EntityKind], Handler] = {}

    def register(self, operation: Operation, kind: EntityKind, handler: Handler) -> None:
        """Register *handler*, replacing any previous one for the same key."""
        self._handlers[(operation, kind)] = handler

    def get_handler(self, operation: Operation, kind: EntityKind) -> Handler:
        handler = self._handlers.get((operation, kind))
        if handler is None:
            raise InvalidUsageError(
                f"No handler registered for {operation.value} {kind.value}"
            )
        return handler

    def dispatch(
        self,
        operation: Operation,
        kind: EntityKind,
        service: DataService,
        payload: Payload,
    ) -> Optional[dict[str, Any]]:
        """Run the registered handler against *service*."""
        return self.get_handler(operation, kind)(service, payload)

    def keys(self) -> list[tuple[Operation, EntityKind]]:
        return sorted(self._handlers, key=lambda k: (k[1].value, k[0].value))


def _require_identity(kind: EntityKind, payload: Payload) -> None:
    missing = [field for field in ("Id", "SyncToken") if field not in payload]
    if missing:
        raise InvalidUsageError(f"{kind.value} payload requires {', '.join(missing)}")


def _creator(kind: EntityKind) -> Handler:
    def create(service: DataService, payload: Payload) -> Optional[dict[str, Any]]:
        return service.add(kind, payload)

    return create


def _updater(kind: EntityKind) -> Handler:
    def update(service: DataService, payload: Payload) -> Optional[dict[str, Any]]:
        _require_identity(kind, payload)
        return service.update(kind, payload)

    return update


def _deleter(kind: EntityKind) -> Handler:
    def delete(service: DataService, payload: Payload) -> Optional[dict[str, Any]]:
        _require_identity(kind, payload)
        return service.delete(kind, {"Id": payload["Id"], "SyncToken": payload["SyncToken"]})

    return delete


def create_default_registry() -> FacadeRegistry:
    """Create a :class:`FacadeRegistry` with create, update and delete for every entity."""
    registry = FacadeRegistry()
    for kind in EntityKind:
        registry.register(Operation.CREATE, kind, _creator(kind))
        registry.register(Operation.UPDATE, kind, _updater(kind))
        registry.register(Operation.DELETE, kind, _deleter(kind))
    return registry
