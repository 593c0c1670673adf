"""
Thin HTTP clients for the Contentful Management and Delivery APIs.

Only the calls the sync pipeline needs are implemented: reading and writing a
single entry through the Management API, and querying entries (with linked
entries included) through the Delivery API. Each client owns an ``httpx.Client``
unless one is injected, which keeps them testable with ``httpx.MockTransport``.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

logger = logging.getLogger(__name__)

MANAGEMENT_CONTENT_TYPE = "application/vnd.contentful.management.v1+json"


class ContentfulError(RuntimeError):
    """Raised when a Contentful API call fails."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code

    @property
    def is_not_found(self) -> bool:
        return self.status_code == 404

    @property
    def is_version_conflict(self) -> bool:
        return self.status_code == 409


def _raise_for_status(response: httpx.Response, action: str) -> None:
    if response.is_success:
        return
    try:
        payload = response.json()
        detail = payload.get("message") or payload.get("sys", {}).get("id") or response.text
    except ValueError:
        detail = response.text
    raise ContentfulError(f"{action} failed with HTTP {response.status_code}: {detail}", response.status_code)


class _BaseClient:
    def __init__(self, base_url: str, timeout: float, http_client: httpx.Client | None) -> None:
        self._base_url = base_url.rstrip("/")
        self._client = http_client or httpx.Client(timeout=timeout)
        self._owns_client = http_client is None

    def _request(self, method: str, path: str, action: str, **kwargs: Any) -> Dict[str, Any]:
        url = f"{self._base_url}{path}"
        logger.debug(f"Contentful {method} {url}")
        try:
            response = self._client.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            raise ContentfulError(f"{action} failed: {exc}") from exc
        _raise_for_status(response, action)
        return response.json()

    def close(self) -> None:
        if self._owns_client:
            self._client.close()


class ContentfulManagementClient(_BaseClient):
    """Reads and updates entries through the Content Management API."""

    def __init__(
        self,
        access_token: str,
        *,
        base_url: str = "https://api.contentful.com",
        timeout: float = 15.0,
        http_client: httpx.Client | None = None,
    ) -> None:
        super().__init__(base_url, timeout, http_client)
        self._access_token = access_token

    def _headers(self, **extra: str) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self._access_token}", "Content-Type": MANAGEMENT_CONTENT_TYPE, **extra}

    @staticmethod
    def _entry_path(space_id: str, environment: str, entry_id: str) -> str:
        return f"/spaces/{space_id}/environments/{environment}/entries/{entry_id}"

    def get_entry(self, space_id: str, environment: str, entry_id: str) -> Dict[str, Any]:
        return self._request(
            "GET",
            self._entry_path(space_id, environment, entry_id),
            f"Loading entry {entry_id}",
            headers=self._headers(),
        )

    def update_entry(self, space_id: str, environment: str, entry: Dict[str, Any]) -> Dict[str, Any]:
        """
        Persist an entry's fields.

        The entry's current ``sys.version`` is sent as ``X-Contentful-Version``;
        Contentful answers 409 when someone else saved the entry in between.
        """
        sys = entry["sys"]
        return self._request(
            "PUT",
            self._entry_path(space_id, environment, sys["id"]),
            f"Updating entry {sys['id']}",
            headers=self._headers(**{"X-Contentful-Version": str(sys["version"])}),
            json={"fields": entry.get("fields", {})},
        )


class ContentfulDeliveryClient(_BaseClient):
    """
    Queries published content through the Content Delivery API.

    Entries linked from another space are only readable with that space's own
    token, passed as ``linked_space_token``.
    """

    def __init__(
        self,
        access_token: str,
        *,
        primary_space: str = "",
        linked_space_token: str = "",
        base_url: str = "https://cdn.contentful.com",
        timeout: float = 15.0,
        http_client: httpx.Client | None = None,
    ) -> None:
        super().__init__(base_url, timeout, http_client)
        self._access_token = access_token
        self.primary_space = primary_space
        self._linked_space_token = linked_space_token

    def token_for(self, space_id: str) -> str:
        if space_id == self.primary_space or not self._linked_space_token:
            return self._access_token
        return self._linked_space_token

    def get_entries(
        self,
        space_id: str,
        environment: str,
        query: Dict[str, Any],
        *,
        token: Optional[str] = None,
    ) -> Dict[str, Any]:
        return self._request(
            "GET",
            f"/spaces/{space_id}/environments/{environment}/entries",
            f"Querying entries in {space_id}/{environment}",
            headers={"Authorization": f"Bearer {token or self.token_for(space_id)}"},
            params=query,
        )

    def get_entry(
        self,
        space_id: str,
        environment: str,
        entry_id: str,
        *,
        token: Optional[str] = None,
    ) -> Dict[str, Any]:
        return self._request(
            "GET",
            f"/spaces/{space_id}/environments/{environment}/entries/{entry_id}",
            f"Loading entry {entry_id} from {space_id}/{environment}",
            headers={"Authorization": f"Bearer {token or self.token_for(space_id)}"},
        )
