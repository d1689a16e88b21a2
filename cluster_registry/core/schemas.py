"""Pydantic schemas for the on-disk JSON documents."""

import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from cluster_registry.core.errors import RecordParseError
from cluster_registry.core.models import (
    AccountPlacement,
    NodeRecord,
    NodeResources,
    NodeRole,
    NodeStatus,
)


# Sub-microsecond digits (RFC3339Nano) are dropped before parsing
_FRACTION_RE = re.compile(r"(\.\d{6})\d+")


def _trim_fraction(value: Any) -> Any:
    if isinstance(value, str):
        return _FRACTION_RE.sub(r"\1", value, count=1)
    return value


# ============================================
# Documents
# ============================================

class ResourcesDocument(BaseModel):
    """`resources` sub-document of a node file."""

    cpu_cores: int = 0
    ram_mb: int = 0
    disk_gb: int = 0
    used_cpu_percent: int = 0
    used_ram_percent: int = 0
    used_disk_percent: int = 0
    account_count: int = 0
    domain_count: int = 0

    model_config = ConfigDict(extra="ignore")


class NodeDocument(BaseModel):
    """`nodes/<id>.json`. Unknown fields are ignored on read."""

    id: str = Field(..., min_length=1)
    ip: str
    hostname: str
    roles: List[str]
    region: Optional[str] = None
    datacenter: Optional[str] = None
    status: str
    last_seen: datetime
    joined_at: datetime
    version: str = ""
    resources: Optional[ResourcesDocument] = None
    labels: Optional[Dict[str, str]] = None

    model_config = ConfigDict(extra="ignore")

    @field_validator("last_seen", "joined_at", mode="before")
    @classmethod
    def trim_timestamps(cls, value: Any) -> Any:
        return _trim_fraction(value)


class PlacementDocument(BaseModel):
    """`placements/a-<account_id>.json`."""

    account_id: int = Field(..., gt=0)
    node_id: str
    placed_at: datetime

    model_config = ConfigDict(extra="ignore")

    @field_validator("placed_at", mode="before")
    @classmethod
    def trim_timestamp(cls, value: Any) -> Any:
        return _trim_fraction(value)


# ============================================
# Converters
# ============================================

def _as_utc(value: datetime) -> datetime:
    # Naive timestamps are taken to be UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def node_to_document(node: NodeRecord) -> NodeDocument:
    """Convert node domain model to its document."""
    resources = None
    if node.resources is not None:
        resources = ResourcesDocument(
            cpu_cores=node.resources.cpu_cores,
            ram_mb=node.resources.ram_mb,
            disk_gb=node.resources.disk_gb,
            used_cpu_percent=node.resources.used_cpu_percent,
            used_ram_percent=node.resources.used_ram_percent,
            used_disk_percent=node.resources.used_disk_percent,
            account_count=node.resources.account_count,
            domain_count=node.resources.domain_count,
        )

    return NodeDocument(
        id=node.id,
        ip=node.ip,
        hostname=node.hostname,
        roles=node.role_values(),
        region=node.region or None,
        datacenter=node.datacenter or None,
        status=node.status_value(),
        last_seen=_as_utc(node.last_seen),
        joined_at=_as_utc(node.joined_at),
        version=node.version,
        resources=resources,
        labels=dict(node.labels) if node.labels else None,
    )


def document_to_node(doc: NodeDocument) -> NodeRecord:
    """Convert document to node domain model."""
    resources = None
    if doc.resources is not None:
        resources = NodeResources(**doc.resources.model_dump())

    roles = [NodeRole.from_value(role) for role in doc.roles]
    status = NodeStatus.from_value(doc.status)

    return NodeRecord(
        id=doc.id,
        ip=doc.ip,
        hostname=doc.hostname,
        roles=roles,
        region=doc.region or None,
        datacenter=doc.datacenter or None,
        status=status,
        last_seen=_as_utc(doc.last_seen),
        joined_at=_as_utc(doc.joined_at),
        version=doc.version,
        resources=resources,
        labels=dict(doc.labels) if doc.labels else None,
        unknown_roles=[
            value for value, role in zip(doc.roles, roles) if role == NodeRole.UNKNOWN
        ],
        raw_status=doc.status if status == NodeStatus.UNKNOWN else None,
    )


def placement_to_document(placement: AccountPlacement) -> PlacementDocument:
    return PlacementDocument(
        account_id=placement.account_id,
        node_id=placement.node_id,
        placed_at=_as_utc(placement.placed_at),
    )


def document_to_placement(doc: PlacementDocument) -> AccountPlacement:
    return AccountPlacement(
        account_id=doc.account_id,
        node_id=doc.node_id,
        placed_at=_as_utc(doc.placed_at),
    )


# ============================================
# (De)serialization
# ============================================

def serialize_node(node: NodeRecord) -> str:
    """Two-space indented JSON; absent optional fields are omitted."""
    return node_to_document(node).model_dump_json(indent=2, exclude_none=True)


def parse_node(record: Dict[str, Any]) -> NodeRecord:
    """Validate a decoded JSON object as a node. Raises RecordParseError."""
    try:
        doc = NodeDocument.model_validate(record)
    except ValidationError as e:
        raise RecordParseError(f"Invalid node record: {e}") from e
    return document_to_node(doc)


def serialize_placement(placement: AccountPlacement) -> str:
    return placement_to_document(placement).model_dump_json(indent=2)


def parse_placement(record: Dict[str, Any]) -> AccountPlacement:
    try:
        doc = PlacementDocument.model_validate(record)
    except ValidationError as e:
        raise RecordParseError(f"Invalid placement record: {e}") from e
    return document_to_placement(doc)
