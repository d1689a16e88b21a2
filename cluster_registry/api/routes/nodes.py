# cluster_registry/api/routes/nodes.py
"""Node management API routes."""

from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, Query, status

from cluster_registry.api.dependencies import get_registry, to_http_error
from cluster_registry.api.schemas import (
    DeadNodesResponse,
    HeartbeatRequest,
    NodeResponse,
    RegisterNodeRequest,
    ResourcesBody,
    SweepResponse,
    UpdateStatusRequest,
    build_node,
)
from cluster_registry.core.errors import RegistryError
from cluster_registry.core.models import parse_role, parse_status
from cluster_registry.registry.service import ClusterRegistry

router = APIRouter(prefix="/nodes", tags=["nodes"])


@router.get("", response_model=List[NodeResponse])
def list_nodes(
    role: Optional[str] = None,
    registry: ClusterRegistry = Depends(get_registry),
):
    """List all nodes, optionally only those carrying a role."""
    try:
        nodes = registry.list_nodes_by_role(role) if role else registry.list_nodes()
    except RegistryError as e:
        raise to_http_error(e)

    return [NodeResponse.from_domain(node) for node in sorted(nodes, key=lambda n: n.id)]


@router.get("/online", response_model=List[NodeResponse])
def list_online_nodes(registry: ClusterRegistry = Depends(get_registry)):
    try:
        nodes = registry.list_online_nodes()
    except RegistryError as e:
        raise to_http_error(e)

    return [NodeResponse.from_domain(node) for node in sorted(nodes, key=lambda n: n.id)]


@router.get("/capabilities", response_model=Dict[str, List[str]])
def discover_capabilities(registry: ClusterRegistry = Depends(get_registry)):
    """Roles advertised by each node."""
    try:
        return registry.discover_capabilities()
    except RegistryError as e:
        raise to_http_error(e)


@router.get("/dead", response_model=DeadNodesResponse)
def get_dead_nodes(
    timeout_seconds: int = Query(default=60, gt=0),
    registry: ClusterRegistry = Depends(get_registry),
):
    """Online nodes silent for longer than timeout_seconds (read only)."""
    try:
        dead = registry.get_dead_nodes(timeout_seconds)
    except RegistryError as e:
        raise to_http_error(e)

    return DeadNodesResponse(
        dead_nodes=[NodeResponse.from_domain(node) for node in dead],
        count=len(dead),
    )


@router.post("/sweep", response_model=SweepResponse)
def sweep_dead_nodes(
    timeout_seconds: int = Query(default=60, gt=0),
    registry: ClusterRegistry = Depends(get_registry),
):
    """Mark dead nodes offline."""
    try:
        marked = registry.mark_dead_nodes(timeout_seconds)
    except RegistryError as e:
        raise to_http_error(e)

    return SweepResponse(marked=marked, count=len(marked))


@router.post("/register", response_model=NodeResponse, status_code=status.HTTP_201_CREATED)
def register_node(
    request: RegisterNodeRequest,
    registry: ClusterRegistry = Depends(get_registry),
):
    """
    Join a node to the cluster.

    Heartbeats are only accepted from registered nodes.
    """
    try:
        roles = [parse_role(role) for role in request.roles]
        node_status = parse_status(request.status)
        node = registry.register_node(build_node(request, roles, node_status))
    except RegistryError as e:
        raise to_http_error(e)

    return NodeResponse.from_domain(node)


@router.get("/{node_id}", response_model=NodeResponse)
def get_node(node_id: str, registry: ClusterRegistry = Depends(get_registry)):
    """Get node details."""
    try:
        node = registry.get_node(node_id)
    except RegistryError as e:
        raise to_http_error(e)

    return NodeResponse.from_domain(node)


@router.delete("/{node_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_node(node_id: str, registry: ClusterRegistry = Depends(get_registry)):
    try:
        registry.delete_node(node_id)
    except RegistryError as e:
        raise to_http_error(e)


@router.put("/{node_id}/status", response_model=NodeResponse)
def update_node_status(
    node_id: str,
    request: UpdateStatusRequest,
    registry: ClusterRegistry = Depends(get_registry),
):
    try:
        node = registry.update_node_status(node_id, request.status)
    except RegistryError as e:
        raise to_http_error(e)

    return NodeResponse.from_domain(node)


@router.put("/{node_id}/resources", response_model=NodeResponse)
def update_node_resources(
    node_id: str,
    request: ResourcesBody,
    registry: ClusterRegistry = Depends(get_registry),
):
    try:
        node = registry.update_node_resources(node_id, request.to_domain())
    except RegistryError as e:
        raise to_http_error(e)

    return NodeResponse.from_domain(node)


@router.post("/{node_id}/heartbeat", response_model=NodeResponse)
def process_heartbeat(
    node_id: str,
    request: Optional[HeartbeatRequest] = None,
    registry: ClusterRegistry = Depends(get_registry),
):
    """Heartbeat from a node; an unknown node gets 404."""
    resources = request.resources.to_domain() if request and request.resources else None
    try:
        node = registry.process_heartbeat(node_id, resources)
    except RegistryError as e:
        raise to_http_error(e)

    return NodeResponse.from_domain(node)
