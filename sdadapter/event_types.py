"""API group of the events adapter and the event objects it serves."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Mapping, Optional

GROUP_NAME = "v1events"


@dataclass(frozen=True)
class GroupVersion:
    """An API group together with a version."""

    group: str
    version: str

    def __str__(self) -> str:
        if self.group:
            return f"{self.group}/{self.version}"
        return self.version


@dataclass(frozen=True)
class GroupResource:
    """A resource qualified by its API group."""

    group: str
    resource: str

    def __str__(self) -> str:
        return f"{self.resource}.{self.group}" if self.group else self.resource


@dataclass(frozen=True)
class GroupKind:
    """A kind qualified by its API group."""

    group: str
    kind: str

    def __str__(self) -> str:
        return f"{self.kind}.{self.group}" if self.group else self.kind


SCHEME_GROUP_VERSION = GroupVersion(GROUP_NAME, "v1alpha1")


def resource(name: str) -> GroupResource:
    """Qualify a resource name with the events group."""
    return GroupResource(SCHEME_GROUP_VERSION.group, name)


def kind(name: str) -> GroupKind:
    """Qualify a kind name with the events group."""
    return GroupKind(SCHEME_GROUP_VERSION.group, name)


_FRACTION = re.compile(r"\.(\d+)")


def _parse_time(text: Any, where: str) -> datetime:
    if not isinstance(text, str):
        raise TypeError(f"{where}: expected a time string, got {text!r}")
    normal = text.strip()
    if normal[-1:] in ("Z", "z"):
        normal = normal[:-1] + "+00:00"
    normal = _FRACTION.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), normal)
    try:
        value = datetime.fromisoformat(normal)
    except ValueError:
        raise ValueError(f"{where}: invalid time {text!r}") from None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _format_time(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _object(data: Mapping[str, Any], key: str) -> dict[str, Any]:
    value = data.get(key)
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise TypeError(f"Event.{key}: expected an object, got {value!r}")
    return dict(value)


def _string(data: Mapping[str, Any], key: str) -> str:
    value = data.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise TypeError(f"Event.{key}: expected a string, got {value!r}")
    return value


def _optional_time(data: Mapping[str, Any], key: str) -> Optional[datetime]:
    value = data.get(key)
    return None if value is None else _parse_time(value, f"Event.{key}")


@dataclass
class Event:
    """A cluster event as served by the events API."""

    metadata: dict[str, Any] = field(default_factory=dict)
    involved_object: dict[str, Any] = field(default_factory=dict)
    reason: str = ""
    message: str = ""
    source: dict[str, Any] = field(default_factory=dict)
    first_timestamp: Optional[datetime] = None
    last_timestamp: Optional[datetime] = None
    count: int = 0
    type: str = ""

    @property
    def name(self) -> str:
        """The event's object name."""
        return str(self.metadata.get("name") or "")

    @property
    def namespace(self) -> str:
        """The event's namespace."""
        return str(self.metadata.get("namespace") or "")

    @classmethod
    def from_dict(cls, data: Any) -> "Event":
        """Build an event from its decoded JSON form; unknown keys are ignored."""
        if not isinstance(data, Mapping):
            raise TypeError(f"Event: expected an object, got {type(data).__name__}")
        count = data.get("count")
        if count is None:
            count = 0
        if isinstance(count, bool) or not isinstance(count, int):
            raise TypeError(f"Event.count: expected an integer, got {count!r}")
        return cls(
            metadata=_object(data, "metadata"),
            involved_object=_object(data, "involvedObject"),
            reason=_string(data, "reason"),
            message=_string(data, "message"),
            source=_object(data, "source"),
            first_timestamp=_optional_time(data, "firstTimestamp"),
            last_timestamp=_optional_time(data, "lastTimestamp"),
            count=count,
            type=_string(data, "type"),
        )

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON-ready form of the event."""
        result: dict[str, Any] = {
            "kind": "Event",
            "apiVersion": "v1",
            "metadata": dict(self.metadata),
            "involvedObject": dict(self.involved_object),
        }
        if self.reason:
            result["reason"] = self.reason
        if self.message:
            result["message"] = self.message
        result["source"] = dict(self.source)
        result["firstTimestamp"] = _format_time(self.first_timestamp)
        result["lastTimestamp"] = _format_time(self.last_timestamp)
        if self.count:
            result["count"] = self.count
        if self.type:
            result["type"] = self.type
        return result


@dataclass
class EventList:
    """A list of events."""

    items: list[Event] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON-ready form of the list."""
        return {
            "kind": "EventList",
            "apiVersion": "v1",
            "metadata": dict(self.metadata),
            "items": [item.to_dict() for item in self.items],
        }


KNOWN_TYPES: dict[str, type] = {"Event": Event, "EventList": EventList}