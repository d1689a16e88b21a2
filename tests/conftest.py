#tests\conftest.py

"""Pytest configuration and fixtures."""

import pytest
from datetime import datetime, timedelta, timezone

from cluster_registry.core.models import (
    NodeRecord,
    NodeResources,
    NodeRole,
    NodeStatus,
)
from cluster_registry.infrastructure.filesystem.store import JsonFileStore
from cluster_registry.registry.service import ClusterRegistry


class FakeClock:
    """Controllable wall clock."""

    def __init__(self, start: datetime):
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, seconds: float) -> datetime:
        self.current = self.current + timedelta(seconds=seconds)
        return self.current


@pytest.fixture
def data_dir(tmp_path):
    """Registry base directory."""
    return tmp_path / "cluster"


@pytest.fixture
def store(data_dir):
    return JsonFileStore(data_dir)


@pytest.fixture
def clock():
    return FakeClock(datetime(2024, 6, 1, 12, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def registry(store, clock):
    """Registry with a fixed clock."""
    return ClusterRegistry(store, clock=clock)


@pytest.fixture
def make_node(clock):
    """Factory for node records."""

    def _make_node(
        node_id="n1",
        roles=(NodeRole.WEB,),
        status=NodeStatus.ONLINE,
        last_seen=None,
        resources=None,
        **kwargs
    ):
        now = clock()
        return NodeRecord(
            id=node_id,
            ip=kwargs.pop("ip", "10.0.0.1"),
            hostname=kwargs.pop("hostname", f"{node_id}.cluster.local"),
            roles=list(roles),
            status=status,
            last_seen=last_seen or now,
            joined_at=kwargs.pop("joined_at", now),
            version=kwargs.pop("version", "1.0"),
            resources=resources,
            **kwargs
        )

    return _make_node


def make_resources(cpu=10, ram=20, disk=30, **kwargs) -> NodeResources:
    """Resource snapshot with the given utilization percentages."""
    return NodeResources(
        cpu_cores=kwargs.get("cpu_cores", 8),
        ram_mb=kwargs.get("ram_mb", 16384),
        disk_gb=kwargs.get("disk_gb", 500),
        used_cpu_percent=cpu,
        used_ram_percent=ram,
        used_disk_percent=disk,
        account_count=kwargs.get("account_count", 0),
        domain_count=kwargs.get("domain_count", 0),
    )


@pytest.fixture
def resources():
    return make_resources
