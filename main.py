"""
Property Inbox Application Entry Point.
"""
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from property_inbox.cache import query_cache
from property_inbox.core.config import settings
from property_inbox.core.database import engine
from property_inbox.core.middleware import SessionMiddleware
from property_inbox.router.endpoints import api_router
import logging
import redis
import uvicorn

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    logger.info("Starting application...")

    # Initialize Redis
    from property_inbox.session.session_layer import init_redis
    try:
        init_redis(
            host=settings.REDIS_HOST,
            port=settings.REDIS_PORT,
            db=settings.REDIS_DB,
            session_ttl=settings.SESSION_TTL
        )
        logger.info("Redis connection initialized")
    except redis.RedisError as e:
        logger.error(f"Redis initialization failed: {e}")
    # Check database connection
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        logger.info("Database connection OK")

        # Auto-create tables in debug mode (use Alembic migrations in production)
        if settings.DEBUG:
            from property_inbox.core.database import Base
            import property_inbox.model  # noqa: F401 (registers tables)
            Base.metadata.create_all(bind=engine)
            logger.info("Database tables created (DEBUG mode)")
    except SQLAlchemyError as e:
        logger.error(f"Database connection failed: {e}")

    if not settings.use_notifications:
        logger.info("Communication gateway not configured; notify requests will be skipped")

    yield

    logger.info("Shutting down...")
    query_cache.clear()
    engine.dispose()


app = FastAPI(
    title=settings.PROJECT_NAME,
    version="1.0.0",
    lifespan=lifespan,
)

# Session middleware
app.add_middleware(SessionMiddleware)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routes
app.include_router(api_router)


@app.get("/health")
async def health():
    return {"status": "ok"}

@app.get("/")
async def root():
    return {"message": "Welcome to the Property Inbox API!"}


if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG
    )
