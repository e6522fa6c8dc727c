"""
API Router module that combines all API endpoints
"""
from fastapi import APIRouter
import logging

# Import all the individual routers
from app.api.search import router as search_router
from app.api.live import router as live_router
from app.api.collections import router as collections_router

# Set up logging
logger = logging.getLogger(__name__)

# Create the main router that includes all the others
router = APIRouter()

# Include all the routers
router.include_router(search_router)
router.include_router(live_router)
router.include_router(collections_router)
