#cluster_registry\container.py

"""Dependency injection container - wires settings, store and services together."""

from functools import lru_cache
from typing import Optional

from cluster_registry.infrastructure.filesystem.config import settings
from cluster_registry.infrastructure.filesystem.store import JsonFileStore
from cluster_registry.registry.service import ClusterRegistry
from cluster_registry.sweeper.sweeper import DeadNodeSweeper


# ============================================
# STORE
# ============================================

@lru_cache(maxsize=None)
def get_store() -> JsonFileStore:
    return JsonFileStore(settings.data_dir)


# ============================================
# SERVICES
# ============================================

@lru_cache(maxsize=None)
def get_registry() -> ClusterRegistry:
    """One registry per process; it owns the data directory."""
    return ClusterRegistry(store=get_store())


def build_sweeper(registry: Optional[ClusterRegistry] = None) -> DeadNodeSweeper:
    """Sweeper bound to the process registry; it must not get a registry of its own."""
    return DeadNodeSweeper(
        registry=registry or get_registry(),
        timeout_seconds=settings.dead_node_timeout_seconds,
        interval_seconds=settings.sweep_interval_seconds,
    )
