from datetime import datetime, timezone

import pytest

from sdadapter.event_types import (
    GROUP_NAME,
    KNOWN_TYPES,
    SCHEME_GROUP_VERSION,
    Event,
    EventList,
    GroupKind,
    GroupResource,
    GroupVersion,
    kind,
    resource,
)


def _payload():
    return {
        "metadata": {"name": "ev1", "namespace": "default"},
        "involvedObject": {"kind": "Pod", "name": "pod1"},
        "reason": "Started",
        "message": "Started container",
        "source": {"component": "kubelet"},
        "firstTimestamp": "2017-01-02T13:01:00Z",
        "lastTimestamp": "2017-01-02T13:02:00Z",
        "count": 3,
        "type": "Normal",
        "unknownField": 1,
    }


def test_scheme_group_version_string():
    expected = GroupVersion(GROUP_NAME, "v1alpha1")
    assert SCHEME_GROUP_VERSION == expected
    assert str(expected) == "v1events/v1alpha1"


def test_group_version_without_group_is_version_only():
    assert str(GroupVersion("", "v1")) == "v1"


def test_resource_and_kind_are_group_qualified():
    assert resource("events") == GroupResource(GROUP_NAME, "events")
    assert kind("Event") == GroupKind(GROUP_NAME, "Event")
    assert str(GroupResource("", "events")) == "events"


def test_event_from_dict():
    event = Event.from_dict(_payload())
    assert event.name == "ev1"
    assert event.namespace == "default"
    assert event.count == 3
    assert event.first_timestamp == datetime(2017, 1, 2, 13, 1, tzinfo=timezone.utc)
    assert event.last_timestamp == datetime(2017, 1, 2, 13, 2, tzinfo=timezone.utc)
    assert event.involved_object == {"kind": "Pod", "name": "pod1"}


def test_event_round_trip():
    event = Event.from_dict(_payload())
    assert Event.from_dict(event.to_dict()) == event


def test_event_to_dict_fields():
    data = Event.from_dict(_payload()).to_dict()
    assert data["kind"] == "Event"
    assert data["firstTimestamp"] == "2017-01-02T13:01:00Z"
    assert "unknownField" not in data


def test_empty_event_to_dict_omits_empty_fields():
    data = Event().to_dict()
    assert data["firstTimestamp"] is None
    assert "count" not in data and "reason" not in data
    assert Event.from_dict(data) == Event()


def test_event_from_dict_rejects_non_object():
    with pytest.raises(TypeError):
        Event.from_dict(["not", "an", "object"])


def test_event_from_dict_rejects_bad_count():
    with pytest.raises(TypeError):
        Event.from_dict({"count": "3"})


def test_event_from_dict_rejects_bad_time():
    with pytest.raises(ValueError):
        Event.from_dict({"firstTimestamp": "yesterday"})


def test_event_list_to_dict():
    events = EventList(items=[Event.from_dict(_payload()), Event()])
    data = events.to_dict()
    assert data["kind"] == "EventList"
    assert len(data["items"]) == 2
    assert data["items"][0]["metadata"]["name"] == "ev1"


def test_known_types():
    assert KNOWN_TYPES["Event"]().to_dict() == Event().to_dict()
    assert KNOWN_TYPES["EventList"]().to_dict()["kind"] == EventList().to_dict()["kind"]
    assert KNOWN_TYPES["EventList"]().to_dict()["kind"] == "EventList"