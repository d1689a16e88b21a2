"""Cluster node and placement models."""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional, Union

from cluster_registry.core.errors import RegistryValidationError

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class NodeRole(Enum):
    """Workload class a node may carry."""
    WEB = "web"
    DATA = "data"
    MAIL = "mail"
    DNS = "dns"
    BACKUP = "backup"
    ALL = "all"

    UNKNOWN = "unknown"

    @classmethod
    def from_value(cls, value: str) -> "NodeRole":
        """Map an on-disk string to a role, tolerating unknown tags."""
        try:
            return cls(value)
        except ValueError:
            logger.warning(f"Unknown node role {value!r}, treating as UNKNOWN")
            return cls.UNKNOWN


class NodeStatus(Enum):
    """Node operational status."""
    ONLINE = "online"
    OFFLINE = "offline"
    MAINTENANCE = "maintenance"
    DRAINING = "draining"

    UNKNOWN = "unknown"

    @classmethod
    def from_value(cls, value: str) -> "NodeStatus":
        """Map an on-disk string to a status, tolerating unknown values."""
        try:
            return cls(value)
        except ValueError:
            logger.warning(f"Unknown node status {value!r}, treating as UNKNOWN")
            return cls.UNKNOWN


@dataclass
class NodeResources:
    """Resource snapshot reported by a node. Always replaced as a whole."""
    cpu_cores: int = 0
    ram_mb: int = 0  # MB
    disk_gb: int = 0  # GB

    used_cpu_percent: int = 0
    used_ram_percent: int = 0
    used_disk_percent: int = 0

    account_count: int = 0
    domain_count: int = 0


@dataclass
class NodeRecord:
    """Cluster node (host participating in the cluster)."""
    id: str
    ip: str
    hostname: str

    roles: List[NodeRole] = field(default_factory=list)

    region: Optional[str] = None
    datacenter: Optional[str] = None

    status: NodeStatus = NodeStatus.ONLINE

    last_seen: datetime = field(default_factory=utcnow)
    joined_at: datetime = field(default_factory=utcnow)

    version: str = ""

    resources: Optional[NodeResources] = None
    labels: Optional[Dict[str, str]] = None

    # Unrecognised strings read from disk, written back unchanged
    unknown_roles: List[str] = field(default_factory=list, repr=False)
    raw_status: Optional[str] = field(default=None, repr=False)

    def has_role(self, role: NodeRole) -> bool:
        """
        Check role membership.

        A node carrying ALL matches every role, and a query for ALL
        matches every node.
        """
        if role == NodeRole.ALL:
            return True
        return role in self.roles or NodeRole.ALL in self.roles

    def role_values(self) -> List[str]:
        """
        Role strings as stored.

        Each UNKNOWN role takes the next string from unknown_roles, so tags
        this version does not recognise keep their value and position.
        """
        unknown = iter(self.unknown_roles)
        return [
            next(unknown, role.value) if role == NodeRole.UNKNOWN else role.value
            for role in self.roles
        ]

    def status_value(self) -> str:
        if self.status == NodeStatus.UNKNOWN and self.raw_status:
            return self.raw_status
        return self.status.value

    def is_online(self) -> bool:
        return self.status == NodeStatus.ONLINE

    def is_stale(self, cutoff: datetime) -> bool:
        """Online and not seen since cutoff."""
        return self.is_online() and self.last_seen < cutoff


@dataclass
class AccountPlacement:
    """Binding of a tenant account to a node."""
    account_id: int
    node_id: str
    placed_at: datetime = field(default_factory=utcnow)


@dataclass
class SweepResult:
    """Outcome of one dead-node sweep, by node id."""
    marked: List[str] = field(default_factory=list)
    revived: List[str] = field(default_factory=list)  # heartbeat arrived before demotion
    failed: List[str] = field(default_factory=list)


def parse_role(value: Union[NodeRole, str]) -> NodeRole:
    """Strict role lookup for caller input."""
    if isinstance(value, NodeRole):
        role = value
    else:
        try:
            role = NodeRole(value)
        except ValueError:
            role = NodeRole.UNKNOWN
    if role == NodeRole.UNKNOWN:
        raise RegistryValidationError(f"Invalid role: {value}")
    return role


def parse_status(value: Union[NodeStatus, str]) -> NodeStatus:
    """Strict status lookup for caller input."""
    if isinstance(value, NodeStatus):
        status = value
    else:
        try:
            status = NodeStatus(value)
        except ValueError:
            status = NodeStatus.UNKNOWN
    if status == NodeStatus.UNKNOWN:
        raise RegistryValidationError(f"Invalid status: {value}")
    return status
