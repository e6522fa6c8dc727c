"""
Frontend views/pages for the application.
This module combines all the individual view routers into a single router.
"""
from fastapi import APIRouter

# Import routers from view modules
from app.views.search import router as search_router

# Create a combined router
router = APIRouter()

# Include all view routers
router.include_router(search_router)
