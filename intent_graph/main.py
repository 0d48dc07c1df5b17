"""
Intent Graph Service - FastAPI Application
Exposes the intent graph engine to the admin dashboards.

On startup the graph is rebuilt from INTENT_GRAPH_SIGNAL_LOG when set.
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI
from loguru import logger

from . import __version__
from .api.intent_graph import router as intent_graph_router
from .config import settings
from .ingestion.graph_builder import get_intent_graph_builder
from .ingestion.signal_log import SignalLogError, replay_signal_log


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler"""
    logger.info("=" * 50)
    logger.info("Starting Intent Graph Service")
    logger.info("=" * 50)

    if settings.SIGNAL_LOG:
        try:
            replay_signal_log(settings.SIGNAL_LOG, get_intent_graph_builder())
        except SignalLogError as e:
            logger.error(f"Signal log replay skipped: {e}")
    else:
        logger.info("No signal log configured, starting with an empty graph")

    yield

    logger.info("Intent Graph Service stopped")


def create_app() -> FastAPI:
    app = FastAPI(
        title="Intent Graph Service",
        description="Intent/journey graph analytics for the admin dashboards.",
        version=__version__,
        lifespan=lifespan,
    )
    app.include_router(intent_graph_router)

    @app.get("/health")
    async def health():
        builder = get_intent_graph_builder()
        return {
            "status": "healthy",
            "generation": builder.generation,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "intent_graph.main:app",
        host=settings.API_HOST,
        port=settings.API_PORT,
    )
