"""Naming of event objects and lists from requests and object metadata.

A request is any object with a ``path_params`` mapping, and optionally a
``raw_path`` (the path exactly as received) and a ``path`` (the decoded path).
A linker is any object with ``name(obj)`` and ``namespace(obj)`` methods.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Mapping
from urllib.parse import quote, quote_plus

_PATH_SAFE = "/!$&'()*+,;=:@-._~"

_JSON_TYPES = {
    "bool": "boolean",
    "*bool": "boolean",
    "uint8": "integer",
    "*uint8": "integer",
    "int": "integer",
    "*int": "integer",
    "int32": "integer",
    "*int32": "integer",
    "int64": "integer",
    "*int64": "integer",
    "uint32": "integer",
    "*uint32": "integer",
    "uint64": "integer",
    "*uint64": "integer",
    "float64": "number",
    "*float64": "number",
    "float32": "number",
    "*float32": "number",
    "metav1.Time": "string",
    "*metav1.Time": "string",
    "byte": "string",
    "*byte": "string",
    "v1.DeletionPropagation": "string",
    "*v1.DeletionPropagation": "string",
    "[]string": "string",
    "[]*string": "string",
    "[]int32": "integer",
    "[]*int32": "integer",
}


class BadRequestError(Exception):
    """Raised when a request lacks information it must carry."""

    code = 400


def _empty_name() -> BadRequestError:
    return BadRequestError("name must be provided")


def type_to_json(type_name: str) -> str:
    """Return the JSON type name for a field type name; unknown names pass through."""
    return _JSON_TYPES.get(type_name, type_name)


def _metadata_value(obj: Any, key: str) -> str:
    if isinstance(obj, Mapping):
        metadata = obj.get("metadata") or {}
        return str(metadata.get(key) or "")
    value = getattr(obj, key, None)
    if value is None:
        raise TypeError(f"{type(obj).__name__} object carries no {key}")
    return str(value)


class _MetadataLinker:
    """Reads name and namespace from an object or its ``metadata`` mapping."""

    def name(self, obj: Any) -> str:
        return _metadata_value(obj, "name")

    def namespace(self, obj: Any) -> str:
        return _metadata_value(obj, "namespace")


def _path_param(request: Any, key: str) -> str:
    return str((getattr(request, "path_params", None) or {}).get(key) or "")


def _list_link(request: Any) -> str:
    raw = getattr(request, "raw_path", "") or ""
    if raw:
        return raw
    return quote(getattr(request, "path", "") or "", safe=_PATH_SAFE)


@dataclass
class ScopeNaming:
    """Naming for namespace-scoped event paths."""

    item_path: Callable[[str, str], str]
    linker: Any = field(default_factory=_MetadataLinker)
    all_namespaces: bool = False
    argument_name: str = "namespace"

    def namespace(self, request: Any) -> str:
        """Return the namespace from the request path."""
        if self.all_namespaces:
            return ""
        namespace = _path_param(request, self.argument_name)
        if not namespace:
            raise ValueError("no namespace parameter found on request")
        return namespace

    def name(self, request: Any) -> tuple[str, str]:
        """Return the namespace and name from the request path."""
        try:
            namespace = self.namespace(request)
        except ValueError:
            namespace = ""
        name = _path_param(request, "name")
        if not name:
            raise _empty_name()
        return namespace, name

    def generate_link(self, request: Any, obj: Any) -> str:
        """Return the canonical path of ``obj``."""
        namespace, name = self.object_name(obj)
        if not namespace and not name:
            namespace, name = self.name(request)
        if not name:
            raise _empty_name()
        return self.item_path(name, namespace)

    def generate_list_link(self, request: Any) -> str:
        """Return the canonical path of the requested list."""
        return _list_link(request)

    def object_name(self, obj: Any) -> tuple[str, str]:
        """Return the namespace and name set on ``obj``."""
        name = self.linker.name(obj)
        namespace = self.linker.namespace(obj)
        return namespace, name


@dataclass
class RootScopeNaming:
    """Naming for paths that ignore namespaces."""

    path_prefix: str
    path_suffix: str
    linker: Any = field(default_factory=_MetadataLinker)

    def namespace(self, request: Any) -> str:
        """Root scoped objects have no namespace."""
        return ""

    def name(self, request: Any) -> tuple[str, str]:
        """Return an empty namespace and the name from the request path."""
        name = _path_param(request, "name")
        if not name:
            raise _empty_name()
        return "", name

    def generate_link(self, request: Any, obj: Any) -> str:
        """Return the canonical path of ``obj``."""
        _, name = self.object_name(obj)
        if not name:
            _, name = self.name(request)
        return self.path_prefix + quote_plus(name) + self.path_suffix

    def generate_list_link(self, request: Any) -> str:
        """Return the canonical path of the requested list."""
        return _list_link(request)

    def object_name(self, obj: Any) -> tuple[str, str]:
        """Return an empty namespace and the name set on ``obj``."""
        name = self.linker.name(obj)
        if not name:
            raise _empty_name()
        return "", name