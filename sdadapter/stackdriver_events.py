"""Events provider that reads cluster events from Stackdriver Logging."""

from __future__ import annotations

import re
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Iterable, Mapping, Optional, Union

import requests

from sdadapter.event_types import Event, EventList
from sdadapter.events_provider import EventsProvider
from sdadapter.gce_metadata import MetadataError

LOGGING_ENDPOINT = "https://logging.googleapis.com/v2/"
REQUEST_TIMEOUT_SECONDS = 30.0
DEFAULT_WINDOW = timedelta(hours=1)

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_ZERO_TIME = datetime(1, 1, 1, tzinfo=timezone.utc)
_FRACTION = re.compile(r"\.(\d+)")

ProjectId = Union[str, Callable[[], str]]


class EventNotFoundError(LookupError):
    """Raised when no event matches a query."""

    code = 404


class StackdriverError(RuntimeError):
    """Raised when Stackdriver cannot be queried or its answer cannot be read."""


class LoggingEntriesClient:
    """Lists log entries through the Stackdriver Logging REST interface."""

    def __init__(
        self,
        session: Optional[Any] = None,
        endpoint: str = LOGGING_ENDPOINT,
        token_source: Optional[Callable[[], str]] = None,
        timeout: float = REQUEST_TIMEOUT_SECONDS,
    ) -> None:
        self.session = session if session is not None else requests.Session()
        self.endpoint = endpoint if endpoint.endswith("/") else endpoint + "/"
        self.token_source = token_source
        self.timeout = timeout

    def list(self, request: Mapping[str, Any]) -> dict[str, Any]:
        """Send one ``entries:list`` request and return the decoded response."""
        headers = {}
        if self.token_source is not None:
            try:
                headers["Authorization"] = f"Bearer {self.token_source()}"
            except MetadataError as exc:
                raise StackdriverError(f"cannot obtain access token: {exc}") from exc
        try:
            response = self.session.post(
                f"{self.endpoint}entries:list",
                json=dict(request),
                headers=headers,
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise StackdriverError(str(exc)) from exc
        if response.status_code != 200:
            raise StackdriverError(f"entries:list returned status {response.status_code}")
        try:
            data = response.json()
        except ValueError as exc:
            raise StackdriverError(f"malformed response: {exc}") from exc
        if not isinstance(data, dict):
            raise StackdriverError("malformed response: expected an object")
        return data


def standard_filter(project_id: str) -> str:
    """Return the filter selecting the event log entries of a project."""
    return (
        f'(logName = "projects/{project_id}/logs/events" AND jsonPayload.kind = "Event")'
    )


def _parse_timestamp(value: Any) -> datetime:
    if value is None or value == "":
        return _ZERO_TIME
    if not isinstance(value, str):
        raise ValueError(f"expected a time string, got {value!r}")
    normal = value.strip()
    if normal[-1:] in ("Z", "z"):
        normal = normal[:-1] + "+00:00"
    normal = _FRACTION.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), normal)
    try:
        parsed = datetime.fromisoformat(normal)
    except ValueError:
        raise ValueError(f"invalid time {value!r}") from None
    if parsed.tzinfo is None:
        raise ValueError(f"time {value!r} carries no zone")
    return parsed.astimezone(timezone.utc)


def _format_time(value: datetime) -> str:
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def translate_to_event_list(
    entries: Iterable[Mapping[str, Any]],
    events: EventList,
    index: dict[str, int],
    max_length: int,
) -> tuple[EventList, dict[str, int]]:
    """Fold log entries into ``events``, merging entries of the same event.

    ``index`` maps event names to their position in ``events.items``; both are
    updated in place and returned.
    """
    for entry in entries:
        try:
            event = Event.from_dict(entry.get("jsonPayload") or {})
        except (TypeError, ValueError) as exc:
            raise StackdriverError(f"Failed to parse event : {exc}") from exc
        try:
            timestamp = _parse_timestamp(entry.get("timestamp"))
        except ValueError as exc:
            raise StackdriverError(f"Failed to parse timestamp : {exc}") from exc

        position = index.get(event.name)
        if position is not None:
            item = events.items[position]
            if item.first_timestamp is None or item.first_timestamp > timestamp:
                item.first_timestamp = timestamp
            if item.last_timestamp is None or item.last_timestamp < timestamp:
                item.last_timestamp = timestamp
            item.count += 1
        else:
            event.count = 1
            event.first_timestamp = timestamp
            event.last_timestamp = timestamp
            events.items.append(event)
            index[event.name] = len(events.items) - 1
        if len(events.items) >= max_length:
            break
    return events, index


class StackdriverEventsProvider(EventsProvider):
    """Serves events recorded in the project's ``events`` log."""

    def __init__(
        self,
        entries: Any,
        project_id: ProjectId,
        max_retrieved_events: int = 100,
        since_millis: int = -1,
    ) -> None:
        self.entries = entries
        self.project_id = project_id
        self.max_retrieved_events = max_retrieved_events
        self.since_millis = since_millis

    def _project(self) -> str:
        if not callable(self.project_id):
            return self.project_id
        try:
            return self.project_id()
        except (MetadataError, requests.RequestException) as exc:
            raise StackdriverError(f"Cannot retrieve projectID. {exc}") from exc

    def get_namespaced_events_by_name(self, namespace: str, event_name: str) -> Event:
        """Return the event with the given namespace and name."""
        query = (
            f"({standard_filter(self._project())} AND "
            f'jsonPayload.metadata.namespace = "{namespace}" AND '
            f'jsonPayload.metadata.name = "{event_name}")'
        )
        found = self._get_events(query)
        if not found.items:
            raise EventNotFoundError("Event not found")
        return found.items[0]

    def list_all_events_by_namespace(self, namespace: str) -> EventList:
        """Return the events of the given namespace."""
        query = (
            f"({standard_filter(self._project())} AND "
            f'jsonPayload.metadata.namespace = "{namespace}")'
        )
        return self._get_events(query)

    def list_all_events(self) -> EventList:
        """Return all events."""
        return self._get_events(standard_filter(self._project()))

    def create_new_event(self, namespace: str) -> Event:
        """Creating events is not supported by this provider; always raises."""
        raise StackdriverError("Creating events is not supported")

    def _time_limit(self) -> datetime:
        if self.since_millis < 0:
            return datetime.now(timezone.utc) - DEFAULT_WINDOW
        return _EPOCH + timedelta(milliseconds=self.since_millis)

    def _get_events(self, query: str) -> EventList:
        resource_names = [f"projects/{self._project()}"]
        time_filter = (
            f"({query} AND jsonPayload.metadata.creationTimestamp >= "
            f'"{_format_time(self._time_limit())}")'
        )
        events = EventList()
        index: dict[str, int] = {}
        page_token: Optional[str] = None
        while True:
            request: dict[str, Any] = {
                "resourceNames": list(resource_names),
                "filter": time_filter,
                "orderBy": "timestamp desc",
            }
            if page_token is not None:
                request["pageToken"] = page_token
            try:
                response = self.entries.list(request)
            except StackdriverError as exc:
                raise StackdriverError(f"Failed request to Stackdriver: {exc}") from exc
            try:
                translate_to_event_list(
                    response.get("entries") or [], events, index, self.max_retrieved_events
                )
            except StackdriverError as exc:
                raise StackdriverError(
                    f"Failed to translate the response from Stackdriver: {exc}"
                ) from exc
            page_token = response.get("nextPageToken") or ""
            if not page_token or len(events.items) >= self.max_retrieved_events:
                break
        return events