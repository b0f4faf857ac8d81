import os

from fastapi import APIRouter, Depends
from fastapi.concurrency import run_in_threadpool

from database.base import ImageStore
from images_api.config.settings import Settings
from images_api.dependencies import get_app_settings, get_image_store
from images_api.schemas import HealthResponse

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health_check(
    settings: Settings = Depends(get_app_settings),
    image_store: ImageStore = Depends(get_image_store),
):
    """
    Health check endpoint for monitoring API status and component readiness.

    Returns status of the API, the image store and the upload directory.
    """
    health_status = {
        "status": "ok",
        "components": {
            "api": "ready",
            "store": "ready",
            "uploads": "ready"
        },
        "ready": False
    }

    if not await run_in_threadpool(image_store.ping):
        health_status["components"]["store"] = f"unreachable ({settings.store_backend})"
        health_status["status"] = "degraded"

    if not os.access(settings.upload_dir, os.W_OK):
        health_status["components"]["uploads"] = "not writable"
        health_status["status"] = "degraded"

    health_status["ready"] = all(
        state == "ready" for state in health_status["components"].values()
    )
    return health_status
