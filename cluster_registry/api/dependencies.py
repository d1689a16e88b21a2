#cluster_registry\api\dependencies.py
from fastapi import HTTPException

from cluster_registry.container import get_registry as _container_registry
from cluster_registry.core.errors import (
    NoSuitableNode,
    NodeAlreadyExists,
    RecordNotFound,
    RegistryError,
    RegistryValidationError,
)
from cluster_registry.registry.service import ClusterRegistry


def get_registry() -> ClusterRegistry:
    return _container_registry()


def to_http_error(error: RegistryError) -> HTTPException:
    """Map registry errors onto HTTP status codes."""
    if isinstance(error, RecordNotFound):
        return HTTPException(status_code=404, detail=str(error))
    if isinstance(error, RegistryValidationError):
        return HTTPException(status_code=400, detail=str(error))
    if isinstance(error, (NodeAlreadyExists, NoSuitableNode)):
        return HTTPException(status_code=409, detail=str(error))
    return HTTPException(status_code=500, detail=str(error))
