"""
ExamDesk Backend - Main FastAPI Application

Bulk grade import and scoring for admission mock exams.
Version: 1.0
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase

from examdesk import __version__
from examdesk.config.settings import settings
from examdesk.routes import create_exam_routes, create_import_routes
from examdesk.store import create_indexes

# Setup logging
logging.basicConfig(
    level=settings.LOG_LEVEL,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Global database reference
db: AsyncIOMotorDatabase = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """FastAPI lifespan context manager for startup/shutdown."""
    global db

    # STARTUP
    logger.info("🚀 ExamDesk Backend Starting Up...")

    try:
        settings.validate()
        logger.info("✅ Settings validated")

        client = AsyncIOMotorClient(
            settings.MONGODB_URL,
            maxPoolSize=50,
            serverSelectionTimeoutMS=5000
        )

        # Test connection
        await client.server_info()
        db = client[settings.DATABASE_NAME]
        logger.info(f"✅ Connected to MongoDB: {settings.DATABASE_NAME}")

        try:
            await create_indexes(db)
            logger.info("✅ Database indexes created")
        except Exception as e:
            # Existing indexes with other options must not block startup
            logger.warning(f"Index creation warning: {e}")

        setup_routes(db)
        logger.info("✅ Application startup complete")

    except Exception as e:
        logger.error(f"❌ Startup failed: {e}")
        raise

    yield

    # SHUTDOWN
    logger.info("🛑 Shutting down...")
    if db is not None:
        db.client.close()
        logger.info("✅ Database connection closed")


def setup_routes(database: AsyncIOMotorDatabase):
    """Register API routes once the database is available."""
    app.include_router(create_exam_routes(database))
    app.include_router(create_import_routes(database))
    logger.info("✅ Routes registered")


# Create FastAPI application
app = FastAPI(
    title="ExamDesk API",
    description="Bulk grade import and scoring for admission mock exams",
    version=__version__,
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Health check endpoint
@app.get("/api/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "version": __version__,
        "database": "connected" if db is not None else "disconnected"
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower()
    )
