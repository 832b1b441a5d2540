"""
PlanParse Backend API

FastAPI application for AI-assisted blueprint parsing.
"""

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .api.plans import router as plans_router
from .core.config import settings

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)

# Create FastAPI application
app = FastAPI(
    title=settings.app_name,
    description="""
## PlanParse API

Turns construction plan documents into a reviewable room list.

### Core Principle: Exact Room Counts

The AI reads the plans; everything after that is deterministic:
- Rooms with the same name are numbered, never merged ("Bathroom 1", "Bathroom 2")
- Every room is tied to a canonical building level
- Dimension strings are parsed into feet
- Duplicates are merged only across overlapping sheets

### Current Capabilities

- **Page Classification**: Map every page of a plan set (floor plan, schedule, elevation, ...)
- **Per-Sheet Room Extraction**: One sheet, one level, every room
- **Vision Analysis**: Scanned PDFs and plan images
- **Line Item Scaffolds**: Suggested scope items per room, never priced
    """,
    version=settings.app_version,
    docs_url="/docs",
    redoc_url="/redoc",
)

# Configure CORS for the frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Include API routers
app.include_router(plans_router, prefix="/api/v1")


@app.get("/")
async def root():
    """Root endpoint with API information."""
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "description": "AI-assisted blueprint parsing API",
        "docs": "/docs",
        "health": "/health",
    }


@app.get("/health")
async def health():
    """Global health check endpoint."""
    return {
        "status": "ok",
        "app": settings.app_name,
        "version": settings.app_version,
    }
