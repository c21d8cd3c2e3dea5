"""
FastAPI server for the mock interview pipeline.

This module provides the REST API application: the lifespan that connects the
data store and builds the pipeline services, middleware, rate limiting and the
health endpoint.
"""
import contextlib
import logging
from datetime import datetime

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from interview_pipeline import __version__
from interview_pipeline.core.stage_catalog import load_stage_catalog
from interview_pipeline.core.transition_engine import StageTransitionEngine
from interview_pipeline.routers import pipeline
from interview_pipeline.services.notification_dispatcher import create_notifier
from interview_pipeline.services.scoring_evaluator import GeminiScoringEvaluator
from interview_pipeline.services.session_store import MongoPipelineStore
from interview_pipeline.services.session_tracker import SessionTracker
from interview_pipeline.utils.config import SYSTEM_NAME, get_db_config, get_pipeline_config, get_server_config, log_config
from interview_pipeline.utils.db import connect_database
from interview_pipeline.utils.profiling import timer

# Set up logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)


@contextlib.asynccontextmanager
async def lifespan(app_instance: FastAPI):
    """
    Lifespan context manager for FastAPI app.

    This handles startup and shutdown events for the application.
    """
    log_config()
    db_config = get_db_config()

    # Connect to MongoDB and make sure the indexes exist
    with timer("database setup", log_level=logging.INFO):
        client, database = await connect_database(db_config["uri"], db_config["database"])
        store = MongoPipelineStore(database, db_config)
        await store.ensure_indexes()

    catalog = load_stage_catalog()
    notifier = create_notifier()

    app_instance.state.mongo_client = client
    app_instance.state.pipeline_store = store
    app_instance.state.stage_catalog = catalog
    app_instance.state.notifier = notifier
    app_instance.state.session_tracker = SessionTracker(store, catalog)
    app_instance.state.transition_engine = StageTransitionEngine(
        store,
        catalog,
        GeminiScoringEvaluator(),
        notifier=notifier,
        retry_limit=get_pipeline_config()["retry_limit"],
    )
    logger.info(f"{SYSTEM_NAME} initialized with {len(catalog)} stages")

    yield

    # Cleanup on shutdown
    await notifier.drain()
    client.close()
    logger.info("MongoDB connection closed")


app = FastAPI(
    title=f"{SYSTEM_NAME} API",
    description="""
    REST API for the mock interview pipeline.

    Candidates move through an ordered catalog of interview stages. Graded
    stages are scored by an AI evaluator and the pipeline advances, completes
    or fails the session based on each stage's passing score.
    """,
    version=__version__,
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    lifespan=lifespan
)

# Add rate limiter exception handler
app.state.limiter = pipeline.limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# Add CORS middleware to allow cross-origin requests
app.add_middleware(
    CORSMiddleware,
    allow_origins=get_server_config()["cors_origins"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(pipeline.router)


# Exception handler for general exceptions
@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception: {str(exc)}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": "An internal server error occurred. Please try again later."}
    )


@app.get("/api/health")
async def health_check(request: Request):
    """Check that the service and its data store are reachable."""
    client = getattr(request.app.state, "mongo_client", None)
    if client is None:
        raise HTTPException(status_code=500, detail="Service is unhealthy: database not initialized")
    try:
        await client.admin.command("ping")
    except Exception as e:
        logger.error(f"Health check failed: {e}")
        raise HTTPException(status_code=500, detail=f"Service is unhealthy: {str(e)}")

    return {
        "status": "healthy",
        "version": __version__,
        "stages": len(request.app.state.stage_catalog),
        "timestamp": datetime.now().isoformat(),
    }


def start_server(host: str = "0.0.0.0", port: int = 8000):
    """
    Start the FastAPI server.

    Args:
        host: Host to bind the server to
        port: Port to bind the server to
    """
    import uvicorn

    # Configure Uvicorn logging
    log_config = uvicorn.config.LOGGING_CONFIG
    log_config["formatters"]["access"]["fmt"] = "%(asctime)s - %(levelname)s - %(message)s"
    log_config["formatters"]["default"]["fmt"] = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"

    # Start the server
    uvicorn.run(
        app,
        host=host,
        port=port,
        log_config=log_config
    )


if __name__ == "__main__":
    server_config = get_server_config()
    start_server(server_config["host"], server_config["port"])
