from fastapi import APIRouter

from app.api.v1.endpoints import notebooks, sources, webhooks, health


api_router = APIRouter()

# Include all API routes
api_router.include_router(notebooks.router, prefix="/notebooks", tags=["notebooks"])
api_router.include_router(sources.router, prefix="/sources", tags=["sources"])
api_router.include_router(webhooks.router, prefix="/webhooks", tags=["webhooks"])
api_router.include_router(health.router, prefix="/health", tags=["health"])
