"""
Converzio API - FastAPI Backend
Main application entry point exposing video analytics, leads and share links.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from config import settings
from routers import analytics, health, leads, shares
from services.analytics import AnalyticsService
from services.leads import LeadService
from services.video_sharing import VideoSharingService
from store import build_store


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown."""
    # Startup
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    print("🚀 Starting Converzio API...")
    store = build_store(settings)
    try:
        await store.ping()
        print(f"🗄️ Store reachable ({settings.STORE_BACKEND}).")
    except Exception as e:
        print(f"⚠️ Store ping failed, continuing degraded: {e}")

    strict = settings.STRICT_STORE_ERRORS
    app.state.store = store
    app.state.analytics_service = AnalyticsService(store, strict=strict)
    app.state.lead_service = LeadService(store, strict=strict)
    app.state.sharing_service = VideoSharingService(store, strict=strict)
    yield
    # Shutdown
    await store.close()
    print("👋 Shutting down API...")


app = FastAPI(
    title="Converzio API",
    description="Track video performance, capture leads and manage share links",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(health.router, tags=["Health"])
app.include_router(analytics.router, prefix="/analytics", tags=["Analytics"])
app.include_router(leads.router, prefix="/leads", tags=["Leads"])
app.include_router(shares.router, prefix="/shares", tags=["Shares"])


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "name": "Converzio API",
        "version": "0.1.0",
        "status": "running"
    }
