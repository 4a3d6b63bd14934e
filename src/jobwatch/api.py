"""API router aggregation."""

import logging

from fastapi import APIRouter

from .routes.metrics import router as metrics_router
from .routes.polling import router as polling_router
from .routes.providers import router as providers_router

logger = logging.getLogger(__name__)

# Create main router
router = APIRouter()

# Include all sub-routers
router.include_router(metrics_router, tags=["metrics"])
router.include_router(polling_router, tags=["polling"])
router.include_router(providers_router, tags=["providers"])
