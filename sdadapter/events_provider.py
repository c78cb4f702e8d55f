"""Interface of an events provider and the API resources it serves."""

from __future__ import annotations

import abc
from dataclasses import dataclass

from sdadapter.event_types import Event, EventList, GroupResource


@dataclass(frozen=True)
class EventInfo:
    """Information relevant to an event."""

    group_resource: GroupResource
    namespaced: bool
    event: str


class EventsProvider(abc.ABC):
    """Source of events served by the events API."""

    @abc.abstractmethod
    def get_namespaced_events_by_name(self, namespace: str, event_name: str) -> Event:
        """Return the event with the given namespace and name."""

    @abc.abstractmethod
    def list_all_events_by_namespace(self, namespace: str) -> EventList:
        """Return all events of the given namespace."""

    @abc.abstractmethod
    def list_all_events(self) -> EventList:
        """Return all events."""

    @abc.abstractmethod
    def create_new_event(self, namespace: str) -> Event:
        """Create a new event in the given namespace."""


@dataclass(frozen=True)
class APIResource:
    """A path served by the events API, with its kind and verbs."""

    name: str
    namespaced: bool
    kind: str
    verbs: tuple[str, ...]


class EventsResourceLister:
    """Lists the API paths supported for an events provider."""

    def __init__(self, provider: EventsProvider) -> None:
        self.provider = provider

    def list_api_resources(self) -> list[APIResource]:
        """Return the supported API paths."""
        return [
            APIResource(
                name="namespaces/{namespace}/events/{eventName}",
                namespaced=True,
                kind="Event",
                verbs=("get",),
            ),
            APIResource(
                name="namespaces/{namespace}/events",
                namespaced=True,
                kind="EventList",
                verbs=("get", "post"),
            ),
            APIResource(
                name="events",
                namespaced=True,
                kind="EventList",
                verbs=("get",),
            ),
        ]