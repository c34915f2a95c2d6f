"""topswap: blue/green topology swaps for managed systems."""

from topswap.coordinator import SwapCoordinator, swap, wait_for_inactive
from topswap.errors import (
    ActivationError,
    DrainTimeoutError,
    ManagedSystemError,
    ProvisionError,
    RemovalError,
    StatusQueryError,
    SwapError,
)
from topswap.models import (
    ComponentSpec,
    SwapOutcome,
    SwapResult,
    Topology,
    TopologyClass,
    TopologyState,
)

__version__ = "0.1.0"

__all__ = [
    "__version__",
    # Coordinator
    "SwapCoordinator",
    "swap",
    "wait_for_inactive",
    # Models
    "ComponentSpec",
    "SwapOutcome",
    "SwapResult",
    "Topology",
    "TopologyClass",
    "TopologyState",
    # Errors
    "ActivationError",
    "DrainTimeoutError",
    "ManagedSystemError",
    "ProvisionError",
    "RemovalError",
    "StatusQueryError",
    "SwapError",
]
