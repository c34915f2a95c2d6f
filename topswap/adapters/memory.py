"""In-memory managed system.

Models the topology lifecycle of a real managed system: activating a topology
puts the previously active one of the same class into ``draining``, and the
system itself decides when a draining topology turns ``inactive``. Useful as a
reference backend and as a test double.
"""

from __future__ import annotations

from collections.abc import Sequence

from topswap.errors import ActivationError, ProvisionError, RemovalError, StatusQueryError
from topswap.logging import get_logger
from topswap.models import ComponentSpec, Topology, TopologyClass, TopologyState

logger = get_logger(__name__)


class InMemoryManagedSystem:
    """Managed system that keeps its topologies in a dict.

    Args:
        drain_checks: Number of status queries a draining topology answers
            with ``draining`` before it turns ``inactive``. ``None`` means it
            only drains through ``mark_inactive``.
    """

    def __init__(self, drain_checks: int | None = 0) -> None:
        self.drain_checks = drain_checks
        self.calls: list[tuple[str, str]] = []
        self._applications: set[str] = set()
        self._topologies: dict[str, Topology] = {}
        self._drain_remaining: dict[str, int] = {}
        self._sequence = 0

    # -------------------------------------------------------------------------
    # Inspection
    # -------------------------------------------------------------------------

    def create_application(self, name: str) -> None:
        """Register a parent application."""
        self._applications.add(name)

    def get(self, topology_id: str) -> Topology | None:
        """Get a copy of a topology, or None if it does not exist."""
        topology = self._topologies.get(topology_id)
        return topology.model_copy(deep=True) if topology else None

    def topologies(self, application: str) -> list[Topology]:
        """List copies of all topologies of an application."""
        return [
            t.model_copy(deep=True)
            for t in self._topologies.values()
            if t.application == application
        ]

    def mark_inactive(self, topology_id: str) -> None:
        """Finish draining a topology, as the managed system would."""
        topology = self._topologies[topology_id]
        if topology.state == TopologyState.DRAINING:
            topology.state = TopologyState.INACTIVE
            self._drain_remaining.pop(topology_id, None)

    # -------------------------------------------------------------------------
    # Adapter capabilities
    # -------------------------------------------------------------------------

    async def snapshot_active(
        self, application: str, topology_class: TopologyClass
    ) -> Topology | None:
        self.calls.append(("snapshot_active", application))
        for topology in self._topologies.values():
            if (
                topology.application == application
                and topology.topology_class == topology_class
                and topology.state == TopologyState.ACTIVE
            ):
                return topology.model_copy(deep=True)
        return None

    async def provision(
        self,
        application: str,
        topology_class: TopologyClass,
        components: Sequence[ComponentSpec] = (),
    ) -> Topology:
        self.calls.append(("provision", application))
        if application not in self._applications:
            raise ProvisionError(f"Application '{application}' not found")
        for component in components:
            if not component.server:
                raise ProvisionError(f"Component '{component.kind}' has no server")

        self._sequence += 1
        topology = Topology(
            id=f"{application}-{topology_class.value}-{self._sequence}",
            application=application,
            topology_class=topology_class,
            components=list(components),
        )
        self._topologies[topology.id] = topology
        logger.debug("memory_topology_created", topology_id=topology.id)
        return topology.model_copy(deep=True)

    async def activate(self, topology: Topology) -> Topology:
        self.calls.append(("activate", topology.id))
        current = self._topologies.get(topology.id)
        if current is None:
            raise ActivationError(f"Topology '{topology.id}' not found")
        if not current.components:
            raise ActivationError(f"Topology '{topology.id}' has no components bound")
        if current.state != TopologyState.PROVISIONING:
            raise ActivationError(
                f"Topology '{topology.id}' is {current.state.value}, expected provisioning"
            )

        for other in self._topologies.values():
            if (
                other.application == current.application
                and other.topology_class == current.topology_class
                and other.state == TopologyState.ACTIVE
            ):
                other.state = TopologyState.DRAINING
                if self.drain_checks is not None:
                    self._drain_remaining[other.id] = self.drain_checks
        current.state = TopologyState.ACTIVE
        return current.model_copy(deep=True)

    async def status(self, topology: Topology) -> TopologyState:
        self.calls.append(("status", topology.id))
        current = self._topologies.get(topology.id)
        if current is None:
            raise StatusQueryError(f"Topology '{topology.id}' not found")

        if current.state == TopologyState.DRAINING and topology.id in self._drain_remaining:
            if self._drain_remaining[topology.id] > 0:
                self._drain_remaining[topology.id] -= 1
            else:
                self.mark_inactive(topology.id)
        return current.state

    async def remove(self, topology: Topology) -> None:
        self.calls.append(("remove", topology.id))
        current = self._topologies.get(topology.id)
        if current is None:
            raise RemovalError(f"Topology '{topology.id}' not found")
        # A never-activated topology has served no traffic and may go too.
        if current.state in (TopologyState.ACTIVE, TopologyState.DRAINING):
            raise RemovalError(
                f"Topology '{topology.id}' is {current.state.value} and cannot be removed"
            )
        del self._topologies[topology.id]
        self._drain_remaining.pop(topology.id, None)
