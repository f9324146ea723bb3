from fastapi import APIRouter

from sora_panel.api.videos import router as videos_router

api_router = APIRouter()

# API routes at /api/*
api_router.include_router(videos_router, prefix="/api", tags=["videos"])


@api_router.get("/api/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint used by the control panel."""
    return {"status": "ok"}
