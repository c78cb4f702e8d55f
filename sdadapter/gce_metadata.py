"""Client for the compute instance metadata server."""

from __future__ import annotations

import os
from typing import Any, Optional

import requests

DEFAULT_METADATA_HOST = "169.254.169.254"
METADATA_HOST_ENV = "GCE_METADATA_HOST"
METADATA_FLAVOR_HEADER = {"Metadata-Flavor": "Google"}


class MetadataError(Exception):
    """Raised when a metadata value cannot be retrieved."""


class MetadataClient:
    """Reads values from the instance metadata server."""

    def __init__(
        self,
        host: Optional[str] = None,
        session: Optional[Any] = None,
        timeout: float = 5.0,
    ) -> None:
        self.host = host or os.environ.get(METADATA_HOST_ENV) or DEFAULT_METADATA_HOST
        self.session = session if session is not None else requests.Session()
        self.timeout = timeout

    def get(self, path: str) -> str:
        """Return the raw value stored under ``path``."""
        url = f"http://{self.host}/computeMetadata/v1/{path.lstrip('/')}"
        try:
            response = self.session.get(
                url, headers=dict(METADATA_FLAVOR_HEADER), timeout=self.timeout
            )
        except requests.RequestException as exc:
            raise MetadataError(f"metadata request for {path!r} failed: {exc}") from exc
        if response.status_code == 404:
            raise MetadataError(f"metadata {path!r} not defined")
        if response.status_code != 200:
            raise MetadataError(
                f"metadata request for {path!r} returned status {response.status_code}"
            )
        return response.text

    def project_id(self) -> str:
        """Return the project identifier of this instance."""
        return self.get("project/project-id").strip()

    def zone(self) -> str:
        """Return the zone name of this instance."""
        value = self.get("instance/zone").strip()
        return value.rsplit("/", 1)[-1]

    def instance_attribute(self, name: str) -> str:
        """Return a custom instance attribute, untrimmed."""
        return self.get(f"instance/attributes/{name}")

    def access_token(self) -> str:
        """Return an access token of the default service account."""
        path = "instance/service-accounts/default/token"
        try:
            payload = self.session.get(
                f"http://{self.host}/computeMetadata/v1/{path}",
                headers=dict(METADATA_FLAVOR_HEADER),
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise MetadataError(f"token request failed: {exc}") from exc
        if payload.status_code != 200:
            raise MetadataError(f"token request returned status {payload.status_code}")
        try:
            data = payload.json()
            token = data["access_token"]
        except (ValueError, KeyError, TypeError) as exc:
            raise MetadataError(f"malformed token response: {exc}") from exc
        if not isinstance(token, str) or not token:
            raise MetadataError("token response carries no access token")
        return token