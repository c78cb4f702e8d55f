"""Request information carried in a per-request context mapping."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional

NAMESPACE_KEY = "namespace"
USER_AGENT_KEY = "user-agent"


class _ContextKey:
    """Private key type, so no other module can collide with it."""

    def __repr__(self) -> str:
        return "<request information key>"


_RESOURCE_KEY = _ContextKey()

Context = Mapping[Any, Any]


@dataclass(frozen=True)
class RequestInformation:
    """The resource and method of a request for a single event."""

    resource: str
    method: str


@dataclass(frozen=True)
class RequestListInformation:
    """The method of a request for a list of events."""

    method: str


def _with_value(ctx: Optional[Context], key: Any, value: Any) -> dict[Any, Any]:
    derived = dict(ctx or {})
    derived[key] = value
    return derived


def with_request_information(
    ctx: Optional[Context], resource: str, method: str
) -> dict[Any, Any]:
    """Return a copy of ``ctx`` carrying the resource and method of the request."""
    return _with_value(ctx, _RESOURCE_KEY, RequestInformation(resource, method))


def with_request_list_information(ctx: Optional[Context], method: str) -> dict[Any, Any]:
    """Return a copy of ``ctx`` carrying the method of a list request."""
    return _with_value(ctx, _RESOURCE_KEY, RequestListInformation(method))


def request_information_from(ctx: Optional[Context]) -> Optional[RequestInformation]:
    """Return the single-event request information of ``ctx``, or None."""
    value = (ctx or {}).get(_RESOURCE_KEY)
    return value if isinstance(value, RequestInformation) else None


def request_list_information_from(ctx: Optional[Context]) -> Optional[RequestListInformation]:
    """Return the list request information of ``ctx``, or None."""
    value = (ctx or {}).get(_RESOURCE_KEY)
    return value if isinstance(value, RequestListInformation) else None