"""Request/response schemas for the HTTP API."""

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from cluster_registry.core.models import (
    AccountPlacement,
    NodeRecord,
    NodeResources,
    NodeRole,
    NodeStatus,
)


class ResourcesBody(BaseModel):
    """Resource snapshot."""
    cpu_cores: int = Field(default=0, ge=0)
    ram_mb: int = Field(default=0, ge=0)
    disk_gb: int = Field(default=0, ge=0)
    used_cpu_percent: int = Field(default=0, ge=0, le=100)
    used_ram_percent: int = Field(default=0, ge=0, le=100)
    used_disk_percent: int = Field(default=0, ge=0, le=100)
    account_count: int = Field(default=0, ge=0)
    domain_count: int = Field(default=0, ge=0)

    def to_domain(self) -> NodeResources:
        return NodeResources(**self.model_dump())

    @classmethod
    def from_domain(cls, resources: NodeResources) -> "ResourcesBody":
        return cls(
            cpu_cores=resources.cpu_cores,
            ram_mb=resources.ram_mb,
            disk_gb=resources.disk_gb,
            used_cpu_percent=resources.used_cpu_percent,
            used_ram_percent=resources.used_ram_percent,
            used_disk_percent=resources.used_disk_percent,
            account_count=resources.account_count,
            domain_count=resources.domain_count,
        )


class RegisterNodeRequest(BaseModel):
    """Register (join) node request."""
    id: str = Field(..., min_length=1, max_length=255)
    ip: str = Field(..., min_length=1)
    hostname: str = Field(..., min_length=1, max_length=255)
    roles: List[str] = Field(default=["web"])
    region: Optional[str] = None
    datacenter: Optional[str] = None
    status: str = Field(default="online")
    version: str = ""
    resources: Optional[ResourcesBody] = None
    labels: Optional[Dict[str, str]] = None


class UpdateStatusRequest(BaseModel):
    status: str


class HeartbeatRequest(BaseModel):
    """Heartbeat body; resources are optional."""
    resources: Optional[ResourcesBody] = None


class NodeResponse(BaseModel):
    """Node response."""
    id: str
    ip: str
    hostname: str
    roles: List[str]
    region: Optional[str]
    datacenter: Optional[str]
    status: str
    last_seen: datetime
    joined_at: datetime
    version: str
    resources: Optional[ResourcesBody]
    labels: Optional[Dict[str, str]]

    @classmethod
    def from_domain(cls, node: NodeRecord) -> "NodeResponse":
        return cls(
            id=node.id,
            ip=node.ip,
            hostname=node.hostname,
            roles=node.role_values(),
            region=node.region,
            datacenter=node.datacenter,
            status=node.status_value(),
            last_seen=node.last_seen,
            joined_at=node.joined_at,
            version=node.version,
            resources=ResourcesBody.from_domain(node.resources) if node.resources else None,
            labels=node.labels,
        )


class DeadNodesResponse(BaseModel):
    dead_nodes: List[NodeResponse]
    count: int


class SweepResponse(BaseModel):
    marked: List[str]
    count: int


class SetPlacementRequest(BaseModel):
    node_id: str = Field(..., min_length=1)


class PlaceAccountRequest(BaseModel):
    account_id: int = Field(..., gt=0)
    role: str = Field(default="web")


class PlacementResponse(BaseModel):
    account_id: int
    node_id: str
    placed_at: datetime

    @classmethod
    def from_domain(cls, placement: AccountPlacement) -> "PlacementResponse":
        return cls(
            account_id=placement.account_id,
            node_id=placement.node_id,
            placed_at=placement.placed_at,
        )


class CandidateScore(BaseModel):
    node_id: str
    score: int


class BestNodeResponse(BaseModel):
    node_id: str
    score: int
    role: str
    candidates: List[CandidateScore] = []


def build_node(request: RegisterNodeRequest, roles: List[NodeRole], status: NodeStatus) -> NodeRecord:
    return NodeRecord(
        id=request.id,
        ip=request.ip,
        hostname=request.hostname,
        roles=roles,
        region=request.region,
        datacenter=request.datacenter,
        status=status,
        version=request.version,
        resources=request.resources.to_domain() if request.resources else None,
        labels=request.labels,
    )
