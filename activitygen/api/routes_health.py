from fastapi import APIRouter

from ..shared.settings import settings

router = APIRouter()

@router.get("/healthz", summary="Liveness check")
async def healthz():
    return {"status": "ok", "app": settings.app_name, "storage": settings.storage_backend}
