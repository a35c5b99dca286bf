from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from preanesthesia.config.database import Database
from preanesthesia.config.settings import settings
from preanesthesia.api import identity_router, sessions_router
from preanesthesia.utils.log_filters import install_session_token_filter
import logging

# Configure logging
logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
if settings.log_file:
    _file_handler = logging.FileHandler(settings.log_file)
    _file_handler.setFormatter(
        logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    )
    logging.getLogger().addHandler(_file_handler)

# Session routes carry the bearer token in the path
install_session_token_filter("uvicorn.access", "uvicorn.error")
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup and shutdown events."""
    # Startup
    logger.info("Starting pre-anesthetic assessment portal...")
    logger.info(f"Environment: {settings.environment}")

    try:
        await Database.connect_db()
        logger.info("MongoDB connected successfully")
    except Exception as e:
        logger.error(f"Failed to connect to MongoDB: {e}")
        raise

    yield

    # Shutdown
    logger.info("Shutting down pre-anesthetic assessment portal...")
    await Database.close_db()
    logger.info("MongoDB connection closed")


# Initialize FastAPI app
app = FastAPI(
    title="Pre-Anesthetic Assessment Portal",
    description="Patients verify their identity with their national ID and an SMS code, then complete a pre-anesthetic interview with an AI assistant that ends in clinical recommendations.",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register routers
app.include_router(identity_router)
app.include_router(sessions_router)


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    try:
        # Test MongoDB connection
        db = Database.get_database()
        await db.command("ping")
        mongodb_status = "connected"
    except Exception as e:
        logger.error(f"MongoDB health check failed: {e}")
        mongodb_status = f"error: {str(e)}"

    return {
        "status": "ok",
        "service": settings.service_name,
        "version": "1.0.0",
        "dependencies": {
            "mongodb": mongodb_status,
            "sms": "configured" if settings.sms_enabled else "simulated",
            "summary": "configured" if settings.summary_url else "not configured",
        },
    }


@app.get("/")
async def root():
    return {
        "message": "Pre-Anesthetic Assessment Portal",
        "description": "Identity-gated AI pre-anesthetic interview",
        "version": "1.0.0",
        "docs": "/docs",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=settings.portal_port,
        reload=settings.environment == "development",
    )
