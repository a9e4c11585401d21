from fastapi import APIRouter

from app.core.config import settings

router = APIRouter()


@router.get("/", summary="Health check")
async def health_root():
    return {
        "status": "ok",
        "input_mode": settings.ANALYSIS_INPUT_MODE,
        "persistence": settings.PERSISTENCE_MODE,
        "model": settings.VISION_MODEL,
    }
