"""HTTP adapter for a topology management API.

Usage:
    from topswap.adapters import HttpManagedSystem

    async with HttpManagedSystem("http://search-admin:8080") as system:
        active = await system.snapshot_active("search-app", TopologyClass.QUERY)
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

import httpx

from topswap.config import get_settings
from topswap.errors import (
    ActivationError,
    ManagedSystemError,
    ProvisionError,
    RemovalError,
    StatusQueryError,
)
from topswap.models import ComponentSpec, Topology, TopologyClass, TopologyState


def _error_detail(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(data, dict) and "detail" in data:
        return str(data["detail"])
    return response.text


def _body(response: httpx.Response, action: str) -> Any:
    try:
        return response.json()
    except ValueError as exc:
        raise ManagedSystemError(f"{action}: response body is not JSON") from exc


class HttpManagedSystem:
    """Async HTTP client for the topology management API.

    Args:
        base_url: The base URL of the management API (default: settings.api_url)
        timeout: Request timeout in seconds (default: settings.api_timeout_seconds)
        transport: Optional httpx transport, e.g. ``httpx.MockTransport``.
    """

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        settings = get_settings()
        if base_url is None:
            base_url = settings.api_url
        if timeout is None:
            timeout = settings.api_timeout_seconds
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            transport=transport,
        )

    async def __aenter__(self) -> HttpManagedSystem:
        return self

    async def __aexit__(self, *args) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()

    # -------------------------------------------------------------------------
    # Topology lifecycle
    # -------------------------------------------------------------------------

    async def snapshot_active(
        self, application: str, topology_class: TopologyClass
    ) -> Topology | None:
        """Get the active topology of a class, or None if there is none.

        Raises:
            ManagedSystemError: If the application is unknown or the API fails.
        """
        try:
            response = await self._client.get(
                f"/v1/applications/{application}/topologies",
                params={"topology_class": topology_class.value, "state": "active"},
            )
        except httpx.HTTPError as exc:
            raise ManagedSystemError(f"Snapshot of '{application}' failed: {exc}") from exc

        if response.status_code == 404:
            raise ManagedSystemError(f"Application '{application}' not found")
        if response.is_error:
            raise ManagedSystemError(
                f"Snapshot of '{application}' failed: {_error_detail(response)}"
            )

        data = _body(response, f"Snapshot of '{application}'")
        try:
            topologies = data["topologies"]
            if not topologies:
                return None
            return Topology.model_validate(topologies[0])
        except (KeyError, TypeError, ValueError) as exc:
            raise ManagedSystemError(
                f"Snapshot of '{application}' returned a malformed body: {exc}"
            ) from exc

    async def provision(
        self,
        application: str,
        topology_class: TopologyClass,
        components: Sequence[ComponentSpec] = (),
    ) -> Topology:
        """Create a topology with its components.

        Raises:
            ProvisionError: If the API rejects the topology.
            ManagedSystemError: If the created topology cannot be read back.
        """
        payload = {
            "topology_class": topology_class.value,
            "components": [c.model_dump() for c in components],
        }
        try:
            response = await self._client.post(
                f"/v1/applications/{application}/topologies", json=payload
            )
        except httpx.HTTPError as exc:
            raise ProvisionError(f"Provisioning under '{application}' failed: {exc}") from exc

        if response.is_error:
            raise ProvisionError(
                f"Provisioning under '{application}' rejected: {_error_detail(response)}"
            )
        data = _body(response, f"Provisioning under '{application}'")
        try:
            return Topology.model_validate(data)
        except ValueError as exc:
            raise ManagedSystemError(
                f"Provisioning under '{application}' returned a malformed topology: {exc}"
            ) from exc

    async def activate(self, topology: Topology) -> dict[str, Any]:
        """Make a topology the active one of its class.

        Raises:
            ActivationError: If the API rejects the activation.
        """
        try:
            response = await self._client.post(f"/v1/topologies/{topology.id}/activate")
        except httpx.HTTPError as exc:
            raise ActivationError(f"Activation of '{topology.id}' failed: {exc}") from exc

        if response.is_error:
            raise ActivationError(
                f"Activation of '{topology.id}' rejected: {_error_detail(response)}"
            )
        # The activation already happened; the body is informational.
        try:
            return response.json() if response.content else {}
        except ValueError:
            return {}

    async def status(self, topology: Topology) -> TopologyState:
        """Get the current state of a topology.

        Raises:
            StatusQueryError: If the topology no longer resolves (404 or 410).
            ManagedSystemError: If the API cannot be reached or gives no usable
                answer; the state is then unknown.
        """
        try:
            response = await self._client.get(f"/v1/topologies/{topology.id}")
        except httpx.HTTPError as exc:
            raise ManagedSystemError(f"Status of '{topology.id}' failed: {exc}") from exc

        if response.status_code in (404, 410):
            raise StatusQueryError(
                f"Topology '{topology.id}' not found: {_error_detail(response)}"
            )
        if response.is_error:
            raise ManagedSystemError(
                f"Status of '{topology.id}' unavailable: {_error_detail(response)}"
            )

        data = _body(response, f"Status of '{topology.id}'")
        try:
            return TopologyState(data["state"])
        except (KeyError, TypeError, ValueError) as exc:
            raise ManagedSystemError(
                f"Status of '{topology.id}' returned a malformed body: {exc}"
            ) from exc

    async def remove(self, topology: Topology) -> None:
        """Destroy an inactive topology.

        Raises:
            RemovalError: If the API refuses to delete the topology.
        """
        try:
            response = await self._client.delete(f"/v1/topologies/{topology.id}")
        except httpx.HTTPError as exc:
            raise RemovalError(f"Removal of '{topology.id}' failed: {exc}") from exc

        if response.is_error:
            raise RemovalError(
                f"Removal of '{topology.id}' rejected: {_error_detail(response)}"
            )
