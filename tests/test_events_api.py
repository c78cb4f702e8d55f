import json

import pytest

from sdadapter.event_types import Event, EventList
from sdadapter.events_api import EventsAPI
from sdadapter.events_provider import EventsProvider

PREFIX = "/apis"
GROUP = "v1events/v1alpha1"
BASE = PREFIX + "/" + GROUP


class NotFoundError(Exception):
    code = 404

    def __init__(self, event, namespace):
        super().__init__(f"Event {event} not found in namespace {namespace}")


class FakeProvider(EventsProvider):
    def __init__(self):
        self.calls = []

    def get_namespaced_events_by_name(self, namespace, event_name):
        self.calls.append(("get", namespace, event_name))
        if namespace == "default" and event_name == "existing_event":
            return Event(metadata={"name": "existing_event", "namespace": "default"})
        if namespace == "default" and event_name == "not_existing_event":
            raise NotFoundError(event_name, namespace)
        if namespace == "foo" and event_name == "foo":
            raise NotFoundError(event_name, namespace)
        raise RuntimeError(f"Namespace : {namespace}, event name: {event_name}")

    def list_all_events_by_namespace(self, namespace):
        self.calls.append(("list_ns", namespace))
        return EventList(items=[Event(metadata={"name": "a", "namespace": namespace})])

    def list_all_events(self):
        self.calls.append(("list_all",))
        return EventList()

    def create_new_event(self, namespace):
        self.calls.append(("create", namespace))
        return Event(metadata={"namespace": namespace})


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def api(provider):
    return EventsAPI(provider, PREFIX)


CASES = {
    "GET list of events": ("GET", BASE + "/namespaces/foo/events", 200),
    "GET list of events wrong path": ("GET", BASE + "/namespaces/default/foo", 404),
    "GET event by name": ("GET", BASE + "/namespaces/default/events/existing_event", 200),
    "GET not existing event by name": (
        "GET",
        BASE + "/namespaces/default/events/not_existing_event",
        404,
    ),
    "GET not existing event and namespace": ("GET", BASE + "/namespaces/foo/events/foo", 404),
    "GET event by name wrong path": ("GET", BASE + "/namespaces/default/eve/foo", 404),
    "GET event with too long path": ("GET", BASE + "/namespaces/default/events/foo/foo", 404),
    "GET event only with namespace": ("GET", BASE + "/namespaces/default", 404),
    "GET event with any namespaces": ("GET", BASE + "/events/foo", 404),
    "GET no namespace": ("GET", BASE + "/foo/default/events/foo", 404),
    "GET wrong prefix": ("GET", "//apis/v1foo/v1alpha1/", 404),
    "GET list all events": ("GET", BASE + "/events", 200),
    "GET list all events with typo": ("GET", BASE + "/foo", 404),
    "POST create a new event": ("POST", BASE + "/namespaces/default/events", 200),
    "POST create a new event without namespace": ("POST", BASE + "/events", 405),
    "POST create a new event giving name": ("POST", BASE + "/namespaces/default/events/foo", 405),
    "POST prefix": ("POST", BASE, 405),
    "POST no namespace": ("POST", BASE + "/foo/default/events", 404),
    "POST no events": ("POST", BASE + "/namespaces/default/foo", 404),
    "POST wrong prefix": ("POST", "//apis/v1foo/v1alpha1/", 404),
}


@pytest.mark.parametrize("method,path,expected", list(CASES.values()), ids=list(CASES))
def test_events_api_status(api, method, path, expected):
    status, _ = api.dispatch(method, path)
    assert status == expected


def test_get_event_by_name_returns_event(api, provider):
    status, payload = api.dispatch("GET", BASE + "/namespaces/default/events/existing_event")
    assert status == 200
    assert payload["kind"] == "Event"
    assert payload["metadata"]["name"] == "existing_event"
    assert provider.calls == [("get", "default", "existing_event")]


def test_not_found_carries_status_object(api):
    status, payload = api.dispatch("GET", BASE + "/namespaces/foo/events/foo")
    assert status == 404
    assert payload["kind"] == "Status"
    assert payload["code"] == 404
    assert "foo" in payload["message"]


def test_generic_provider_error_is_internal(api):
    status, payload = api.dispatch("GET", BASE + "/namespaces/bar/events/baz")
    assert status == 500
    assert payload["message"] == "Namespace : bar, event name: baz"


def test_list_by_namespace_sets_self_link(api, provider):
    path = BASE + "/namespaces/foo/events"
    status, payload = api.dispatch("GET", path)
    assert status == 200
    assert payload["kind"] == "EventList"
    assert payload["metadata"]["selfLink"] == path
    assert [item["metadata"]["namespace"] for item in payload["items"]] == ["foo"]
    assert provider.calls == [("list_ns", "foo")]


def test_list_all_events_calls_provider(api, provider):
    status, payload = api.dispatch("GET", BASE + "/events")
    assert status == 200
    assert payload["items"] == []
    assert provider.calls == [("list_all",)]


def test_post_creates_event(api, provider):
    status, payload = api.dispatch("POST", BASE + "/namespaces/default/events")
    assert status == 200
    assert payload["kind"] == "Event"
    assert provider.calls == [("create", "default")]


def test_supported_resources(api):
    status, payload = api.dispatch("GET", BASE)
    assert status == 200
    assert payload["kind"] == "APIResourceList"
    assert payload["groupVersion"] == GROUP
    assert [r["name"] for r in payload["resources"]] == [
        "namespaces/{namespace}/events/{eventName}",
        "namespaces/{namespace}/events",
        "events",
    ]
    assert payload["resources"][1]["verbs"] == ["get", "post"]


def test_api_group(api):
    status, payload = api.dispatch("GET", PREFIX + "/v1events")
    assert status == 200
    assert payload["kind"] == "APIGroup"
    assert payload["versions"] == [{"groupVersion": GROUP, "version": "v1alpha1"}]
    assert payload["preferredVersion"]["version"] == "v1alpha1"


def test_wsgi_call(api):
    captured = {}

    def start_response(status, headers):
        captured["status"] = status
        captured["headers"] = dict(headers)

    environ = {
        "REQUEST_METHOD": "GET",
        "PATH_INFO": BASE + "/namespaces/default/events/existing_event",
        "HTTP_USER_AGENT": "tester",
    }
    body = b"".join(api(environ, start_response))
    assert captured["status"] == "200 OK"
    assert captured["headers"]["Content-Type"] == "application/json"
    assert json.loads(body)["metadata"]["name"] == "existing_event"


def test_wsgi_method_not_allowed_lists_allowed_methods(api):
    captured = {}

    def start_response(status, headers):
        captured["status"] = status
        captured["headers"] = dict(headers)

    environ = {"REQUEST_METHOD": "DELETE", "PATH_INFO": BASE + "/namespaces/default/events"}
    body = b"".join(api(environ, start_response))
    assert captured["status"] == "405 Method Not Allowed"
    assert captured["headers"]["Allow"] == "GET, POST"
    assert json.loads(body)["code"] == 405