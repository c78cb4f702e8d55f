"""WSGI application serving the events API group."""

from __future__ import annotations

import json
import logging
import posixpath
from dataclasses import dataclass, field
from http import HTTPStatus
from typing import Any, Callable, Iterable, Optional, Union
from urllib.parse import quote_plus

from sdadapter.event_types import SCHEME_GROUP_VERSION, Event, EventList, GroupVersion
from sdadapter.events_context import (
    NAMESPACE_KEY,
    USER_AGENT_KEY,
    with_request_information,
    with_request_list_information,
)
from sdadapter.events_provider import EventsProvider, EventsResourceLister
from sdadapter.events_registry import EventsREST
from sdadapter.naming import RootScopeNaming, ScopeNaming

logger = logging.getLogger(__name__)

API_GROUP_PREFIX = "/apis"
EVENTS_LIST_PATH = "events"
CONTENT_TYPE = "application/json"

Payload = dict[str, Any]


@dataclass
class _Request:
    """The parts of a request the namers read."""

    path: str
    raw_path: str = ""
    path_params: dict[str, str] = field(default_factory=dict)


def _segments(path: str) -> list[str]:
    trimmed = path.strip("/")
    return trimmed.split("/") if trimmed else []


def _status(code: int, message: str) -> Payload:
    return {
        "kind": "Status",
        "apiVersion": "v1",
        "metadata": {},
        "status": "Failure",
        "message": message,
        "reason": HTTPStatus(code).phrase.replace(" ", ""),
        "code": code,
    }


def _error_code(exc: Exception) -> int:
    code = getattr(exc, "code", None)
    if isinstance(code, int) and not isinstance(code, bool) and 400 <= code < 600:
        return code
    if isinstance(exc, LookupError):
        return HTTPStatus.NOT_FOUND
    return HTTPStatus.INTERNAL_SERVER_ERROR


class EventsAPI:
    """Serves events from a provider under ``<prefix>/v1events/v1alpha1``."""

    def __init__(self, provider: EventsProvider, prefix: str = API_GROUP_PREFIX) -> None:
        self.provider = provider
        self.prefix = "/" + prefix.strip("/") if prefix.strip("/") else ""
        self.group_version: GroupVersion = SCHEME_GROUP_VERSION
        self.storage = EventsREST(provider)
        self.lister = EventsResourceLister(provider)
        self.root = posixpath.join(
            self.prefix or "/", self.group_version.group, self.group_version.version
        )
        self._group_segments = _segments(posixpath.join(self.prefix or "/", self.group_version.group))
        self._root_segments = _segments(self.root)

        list_prefix = posixpath.join(self.root, "namespaces") + "/"
        self._namespaced_namer = ScopeNaming(
            item_path=lambda name, namespace: f"{list_prefix}{quote_plus(namespace)}/events"
        )
        self._root_namer = RootScopeNaming(self.root + "/", EVENTS_LIST_PATH)

    def __call__(
        self, environ: dict[str, Any], start_response: Callable[..., Any]
    ) -> Iterable[bytes]:
        """Handle one WSGI request."""
        method = str(environ.get("REQUEST_METHOD", "GET")).upper()
        path = environ.get("PATH_INFO", "") or "/"
        user_agent = environ.get("HTTP_USER_AGENT", "")
        status, payload = self._handle(method, path, user_agent)
        body = json.dumps(payload).encode("utf-8")
        headers = [("Content-Type", CONTENT_TYPE), ("Content-Length", str(len(body)))]
        if status == HTTPStatus.METHOD_NOT_ALLOWED:
            headers.append(("Allow", ", ".join(sorted(self._allowed(path)))))
        start_response(f"{int(status)} {HTTPStatus(status).phrase}", headers)
        return [body]

    def dispatch(self, method: str, path: str) -> tuple[int, Payload]:
        """Serve ``method`` on ``path``; return the status code and the JSON payload."""
        return self._handle(method.upper(), path, "")

    def _route(self, path: str) -> Optional[tuple[frozenset[str], Callable[[str, str], Any]]]:
        tokens = _segments(path)
        if tokens == self._group_segments:
            return frozenset({"GET"}), lambda method, agent: self._api_group()
        if tokens[: len(self._root_segments)] != self._root_segments:
            return None
        match tokens[len(self._root_segments):]:
            case []:
                return frozenset({"GET"}), lambda method, agent: self._resource_list()
            case ["events"]:
                return frozenset({"GET"}), lambda method, agent: self._list_all(path, agent)
            case ["namespaces", namespace, "events"] if namespace:
                return frozenset({"GET", "POST"}), lambda method, agent: self._list_namespaced(
                    path, namespace, method, agent
                )
            case ["namespaces", namespace, "events", name] if namespace and name:
                return frozenset({"GET"}), lambda method, agent: self._single(
                    namespace, name, agent
                )
        return None

    def _allowed(self, path: str) -> frozenset[str]:
        route = self._route(path)
        return route[0] if route else frozenset()

    def _handle(self, method: str, path: str, user_agent: str) -> tuple[int, Payload]:
        route = self._route(path)
        if route is None:
            return HTTPStatus.NOT_FOUND, _status(HTTPStatus.NOT_FOUND, "page not found")
        allowed, handler = route
        if method not in allowed:
            return HTTPStatus.METHOD_NOT_ALLOWED, _status(
                HTTPStatus.METHOD_NOT_ALLOWED, f"method {method} not allowed"
            )
        try:
            return HTTPStatus.OK, handler(method, user_agent)
        except Exception as exc:  # errors of the provider become API status objects
            code = _error_code(exc)
            if code >= 500:
                logger.error("request %s %s failed: %s", method, path, exc)
            return code, _status(code, str(exc))

    def _api_group(self) -> Payload:
        version = {
            "groupVersion": str(self.group_version),
            "version": self.group_version.version,
        }
        return {
            "kind": "APIGroup",
            "apiVersion": "v1",
            "name": str(self.group_version),
            "versions": [version],
            "preferredVersion": dict(version),
        }

    def _resource_list(self) -> Payload:
        return {
            "kind": "APIResourceList",
            "apiVersion": "v1",
            "groupVersion": str(self.group_version),
            "resources": [
                {
                    "name": res.name,
                    "namespaced": res.namespaced,
                    "kind": res.kind,
                    "verbs": list(res.verbs),
                }
                for res in self.lister.list_api_resources()
            ],
        }

    @staticmethod
    def _context(agent: str, namespace: str = "") -> dict[Any, Any]:
        ctx: dict[Any, Any] = {USER_AGENT_KEY: agent}
        if namespace:
            ctx[NAMESPACE_KEY] = namespace
        return ctx

    @staticmethod
    def _render(result: Union[Event, EventList], namer: Any, request: _Request) -> Payload:
        payload = result.to_dict()
        if isinstance(result, EventList):
            payload["metadata"]["selfLink"] = namer.generate_list_link(request)
        return payload

    def _list_all(self, path: str, agent: str) -> Payload:
        ctx = with_request_list_information(self._context(agent), "GET")
        return self._render(self.storage.list(ctx), self._root_namer, _Request(path=path))

    def _list_namespaced(self, path: str, namespace: str, method: str, agent: str) -> Payload:
        ctx = with_request_list_information(self._context(agent, namespace), method)
        request = _Request(path=path, path_params={"namespace": namespace})
        return self._render(self.storage.list(ctx), self._namespaced_namer, request)

    def _single(self, namespace: str, name: str, agent: str) -> Payload:
        ctx = with_request_information(self._context(agent, namespace), name, "GET")
        return self.storage.list(ctx).to_dict()