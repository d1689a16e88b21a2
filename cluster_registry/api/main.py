import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from cluster_registry.api.dependencies import get_registry
from cluster_registry.api.routes.nodes import router as nodes_router
from cluster_registry.api.routes.placements import router as placements_router
from cluster_registry.container import build_sweeper
from cluster_registry.infrastructure.filesystem.config import settings

logging.basicConfig(
    level=settings.log_level.upper(),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Run the dead node sweeper on the same registry the routes use."""
    sweeper = None
    if settings.sweeper_enabled:
        registry_provider = app.dependency_overrides.get(get_registry, get_registry)
        sweeper = build_sweeper(registry_provider())
        sweeper.start_in_background()
    app.state.sweeper = sweeper

    yield

    if sweeper is not None:
        logger.info("Stopping Dead Node Sweeper...")
        sweeper.stop(timeout=settings.sweep_interval_seconds + 5)
    app.state.sweeper = None


app = FastAPI(title="Cluster Registry API", lifespan=lifespan)


@app.get("/health")
def health():
    return {"status": "ok"}


app.include_router(nodes_router)
app.include_router(placements_router)
