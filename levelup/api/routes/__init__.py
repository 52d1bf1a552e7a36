"""
API Routes - Combines all route modules into single router.
"""

from fastapi import APIRouter

from levelup.api.routes.github_routes import router as github_router

# Main API router
api_router = APIRouter()

# Include all sub-routers
api_router.include_router(github_router)
