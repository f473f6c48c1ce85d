"""
Trellis - task tracker with a dependency graph engine.
"""

from fastapi import FastAPI
from contextlib import asynccontextmanager

from trellis import __version__
from trellis.database import init_db
from trellis.routes import tasks, dependencies, graph
from trellis.exceptions import register_exception_handlers
from trellis.logging_config import setup_logging, get_logger

# Initialize logging
setup_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown events."""
    logger.info("Starting Trellis API...")
    await init_db()
    logger.info("Database initialized")
    yield
    logger.info("Shutting down Trellis API...")


app = FastAPI(
    title="Trellis",
    description="Task tracker with dependency trees, readiness lists, critical paths and cycle diagnostics",
    version=__version__,
    lifespan=lifespan,
)

# Register custom exception handlers
register_exception_handlers(app)

# Include routers
app.include_router(tasks.router, prefix="/tasks", tags=["Tasks"])
app.include_router(dependencies.router, prefix="/dependencies", tags=["Dependencies"])
app.include_router(graph.router, prefix="/graph", tags=["Graph"])


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}
