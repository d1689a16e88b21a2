# cluster_registry/api/routes/placements.py
"""Account placement API routes."""

from typing import List

from fastapi import APIRouter, Depends, Query, status

from cluster_registry.api.dependencies import get_registry, to_http_error
from cluster_registry.api.schemas import (
    BestNodeResponse,
    CandidateScore,
    PlaceAccountRequest,
    PlacementResponse,
    SetPlacementRequest,
)
from cluster_registry.core.errors import RegistryError
from cluster_registry.registry.service import ClusterRegistry

router = APIRouter(prefix="/placements", tags=["placements"])


@router.get("", response_model=List[PlacementResponse])
def list_placements(registry: ClusterRegistry = Depends(get_registry)):
    try:
        placements = registry.list_placements()
    except RegistryError as e:
        raise to_http_error(e)

    return [
        PlacementResponse.from_domain(p)
        for p in sorted(placements, key=lambda p: p.account_id)
    ]


@router.get("/best", response_model=BestNodeResponse)
def get_best_node(
    role: str = Query(default="web"),
    registry: ClusterRegistry = Depends(get_registry),
):
    """Preview the node a new account would land on, with the full ranking. Nothing is written."""
    try:
        ranked = registry.rank_nodes_for_placement(role)
    except RegistryError as e:
        raise to_http_error(e)

    best, best_score = ranked[0]
    return BestNodeResponse(
        node_id=best.id,
        score=best_score,
        role=role,
        candidates=[CandidateScore(node_id=node.id, score=score) for node, score in ranked],
    )


@router.post("", response_model=PlacementResponse, status_code=status.HTTP_201_CREATED)
def place_account(
    request: PlaceAccountRequest,
    registry: ClusterRegistry = Depends(get_registry),
):
    """Choose a node for the account and record the binding."""
    try:
        placement = registry.place_account(request.account_id, request.role)
    except RegistryError as e:
        raise to_http_error(e)

    return PlacementResponse.from_domain(placement)


@router.get("/{account_id}", response_model=PlacementResponse)
def get_account_placement(account_id: int, registry: ClusterRegistry = Depends(get_registry)):
    try:
        placement = registry.get_account_placement(account_id)
    except RegistryError as e:
        raise to_http_error(e)

    return PlacementResponse.from_domain(placement)


@router.put("/{account_id}", response_model=PlacementResponse)
def set_account_placement(
    account_id: int,
    request: SetPlacementRequest,
    registry: ClusterRegistry = Depends(get_registry),
):
    """Bind an account to a specific node, replacing any earlier binding."""
    try:
        placement = registry.set_account_placement(account_id, request.node_id)
    except RegistryError as e:
        raise to_http_error(e)

    return PlacementResponse.from_domain(placement)
