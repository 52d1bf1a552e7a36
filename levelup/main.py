"""
LevelUp GitHub Activity Verifier - Main Application

FastAPI backend with:
- PostgreSQL for tasks, evidence, signals, scores
- MongoDB for GitHub snapshot documents
- Rule-based verification engine for weekly GitHub tasks
- JWT bearer verification

Run: uvicorn levelup.main:app --reload
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from pymongo.errors import PyMongoError

from levelup.api.routes import api_router
from levelup.core.config import get_settings
from levelup.core.logging_config import configure_logging, get_logger
from levelup.db.mongodb import init_mongo_indexes

settings = get_settings()
configure_logging(settings.log_level)
logger = get_logger(__name__)

# Create FastAPI app
app = FastAPI(
    title="LevelUp GitHub Activity Verifier",
    description="""
    Gamified GitHub activity tracking for career coaching.

    ## Features
    - **Weekly tasks**: ISO-week GitHub assignments per learner
    - **Evidence**: Learners attach proof to a task
    - **Verification**: Rule engine scores tasks from activity signals
    - **Snapshots**: GitHub profile state captured for showcase tasks
    - **Scores**: Per-week point rollups

    ## Databases
    - PostgreSQL: Structured data (tasks, evidence, signals, notifications, points)
    - MongoDB: Documents (GitHub snapshots)
    """,
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc"
)

# CORS middleware (allow all for development)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API routes
app.include_router(api_router, prefix="/api")


# Startup event
@app.on_event("startup")
async def startup_event():
    """Initialize MongoDB indexes on startup."""
    try:
        init_mongo_indexes()
    except PyMongoError as e:
        logger.warning("MongoDB index initialization failed: %s", e)


@app.get("/", tags=["Health"])
async def root():
    return {"status": "healthy", "app": "LevelUp GitHub Activity Verifier"}


@app.get("/health", tags=["Health"])
async def health_check():
    """Detailed health check."""
    from levelup.db.postgres import test_postgres_connection
    from levelup.db.mongodb import test_mongo_connection

    return {
        "status": "healthy",
        "postgres": "connected" if test_postgres_connection() else "disconnected",
        "mongodb": "connected" if test_mongo_connection() else "disconnected"
    }
