"""REST storage that routes event requests to an events provider."""

from __future__ import annotations

from typing import Any, Mapping, Optional, Union

from sdadapter.event_types import Event, EventList
from sdadapter.events_context import (
    NAMESPACE_KEY,
    request_information_from,
    request_list_information_from,
)
from sdadapter.events_provider import EventsProvider


class RequestError(Exception):
    """Raised when a request cannot be served."""


class MethodNotAllowedError(RequestError):
    """Raised when a request uses a method the path does not allow."""


class EventsREST:
    """Storage and lister of events, backed by an events provider."""

    def __init__(self, provider: EventsProvider) -> None:
        self.provider = provider

    def new(self) -> Event:
        """Return an empty event."""
        return Event()

    def new_list(self) -> EventList:
        """Return an empty event list."""
        return EventList()

    def list(self, ctx: Optional[Mapping[Any, Any]]) -> Union[Event, EventList]:
        """Serve the request described by ``ctx``."""
        ctx = ctx or {}
        namespace = ctx.get(NAMESPACE_KEY) or ""
        if not namespace:
            return self.provider.list_all_events()

        single = request_information_from(ctx)
        listing = request_list_information_from(ctx)
        single_method = single.method if single else ""
        list_method = listing.method if listing else ""

        if not list_method and not single_method:
            raise RequestError("Unable to serve the request: forgiven method")
        if listing is not None:
            return self._list_events(namespace, list_method)
        if single is not None:
            return self._single_event(namespace, single.resource, single_method)
        raise RequestError("Unable to serve the request")

    def _single_event(self, namespace: str, name: str, method: str) -> Event:
        if method == "GET":
            return self.provider.get_namespaced_events_by_name(namespace, name)
        raise MethodNotAllowedError(f"Method {method} not allowed")

    def _list_events(self, namespace: str, method: str) -> Union[Event, EventList]:
        if method == "GET":
            return self.provider.list_all_events_by_namespace(namespace)
        if method == "POST":
            return self.provider.create_new_event(namespace)
        raise MethodNotAllowedError(f"Method {method} not allowed")