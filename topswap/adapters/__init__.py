"""Managed-system adapters."""

from topswap.adapters.base import ManagedSystemAdapter
from topswap.adapters.http import HttpManagedSystem
from topswap.adapters.memory import InMemoryManagedSystem

__all__ = [
    "HttpManagedSystem",
    "InMemoryManagedSystem",
    "ManagedSystemAdapter",
]
