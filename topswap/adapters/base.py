"""Managed-system adapter protocol.

An adapter exposes the lifecycle of topologies in one managed system.
It is the only way the coordinator touches that system.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any, Protocol

from topswap.models import ComponentSpec, Topology, TopologyClass, TopologyState


class ManagedSystemAdapter(Protocol):
    async def snapshot_active(
        self, application: str, topology_class: TopologyClass
    ) -> Topology | None: ...

    async def provision(
        self,
        application: str,
        topology_class: TopologyClass,
        components: Sequence[ComponentSpec] = (),
    ) -> Topology: ...

    async def activate(self, topology: Topology) -> Any: ...

    async def status(self, topology: Topology) -> TopologyState: ...

    async def remove(self, topology: Topology) -> Any: ...
