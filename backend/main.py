"""
Meta Ads Dashboard API

FastAPI backend for the Meta Ads performance dashboard.
Exposes credentials, metrics and AI assistant endpoints for the frontend.
"""

import logging
import os
import sys
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# Backend modules and the connectors package
sys.path.insert(0, str(Path(__file__).parent))
sys.path.insert(0, str(Path(__file__).parent.parent))

from dependencies import get_cache_store
from routers import ai_chat, meta_ads
from services import config

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


def get_allowed_origins():
    """Get CORS allowed origins from environment or defaults."""
    custom_origins = os.environ.get("CORS_ORIGINS", "")

    # Default origins for development
    origins = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    # Add custom origins if provided (comma-separated)
    if custom_origins:
        origins.extend([o.strip() for o in custom_origins.split(",") if o.strip()])

    frontend_url = os.environ.get("FRONTEND_URL")
    if frontend_url:
        origins.append(frontend_url)

    return origins


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    logger.info("Starting Meta Ads Dashboard API...")
    logger.info("CORS allowed origins: %s", get_allowed_origins())
    get_cache_store().clear_expired()
    yield
    logger.info("Shutting down...")


app = FastAPI(
    title="Meta Ads Dashboard API",
    description="Backend API for the Meta Ads performance dashboard",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_allowed_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(meta_ads.router, prefix="/api/meta-ads", tags=["Meta Ads"])
app.include_router(ai_chat.router, prefix="/api/ai", tags=["AI Chat"])


@app.get("/")
async def root():
    """Health check endpoint."""
    return {"status": "healthy", "service": "Meta Ads Dashboard API"}


@app.get("/api/health")
async def health_check():
    """Detailed health check."""
    return {
        "status": "healthy",
        "version": "1.0.0",
        "endpoints": [
            "/api/meta-ads",
            "/api/ai",
        ]
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)
