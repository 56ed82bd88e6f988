import httpx
import logging
from fastapi import APIRouter, HTTPException
from models.schemas import LlmProviderToggle, ModelSelection
from services.gemini import get_api_key
from settings import settings

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/settings", tags=["settings"])

@router.get("")
async def get_settings():
    primary, backup = settings.get_models()
    return {
        "provider": settings.get_active_provider(),
        "url": settings.get_llm_base_url(),
        "primary_model": primary,
        "backup_model": backup,
        "file_expiration_hours": settings.FILE_EXPIRATION_HOURS,
        "task_retention_days": settings.TASK_RETENTION_DAYS,
    }

@router.put("/models")
async def set_models(selection: ModelSelection):
    primary, backup = selection.primary.strip(), selection.backup.strip()
    if not primary or not backup:
        raise HTTPException(status_code=400, detail="Both primary and backup models are required.")
    settings.set_models(primary, backup)
    return {"status": "success", "primary_model": primary, "backup_model": backup}

@router.get("/api-key-status")
async def get_api_key_status():
    # The emulator needs no real API key
    if settings.is_emulator():
        return {"configured": True, "valid": True}

    key = get_api_key()
    if not key:
        return {"configured": False, "valid": False}

    # Verify it against the LLM API to ensure it wasn't revoked
    try:
        async with httpx.AsyncClient() as client:
            res = await client.get(
                f"{settings.get_llm_base_url()}/models",
                headers={"x-goog-api-key": key},
                params={"pageSize": 1},
                timeout=5.0
            )
            if res.status_code == 200:
                return {"configured": True, "valid": True}
            logger.warning("[Settings] API key check returned %s", res.status_code)
    except Exception as e:
        logger.warning("[Settings] API key check failed: %s", e)

    return {"configured": True, "valid": False}

@router.get("/llm-provider")
async def get_llm_provider():
    """Returns the currently active LLM provider."""
    return {
        "provider": settings.get_active_provider(),
        "url": settings.get_llm_base_url()
    }

@router.put("/llm-provider")
async def set_llm_provider(toggle: LlmProviderToggle):
    """Switch between the emulator and Gemini at runtime."""
    if toggle.provider == "emulator":
        settings.set_llm_base_url(settings.get_emulator_url())
    else:
        settings.set_llm_base_url(settings.get_gemini_url())

    return {
        "status": "success",
        "provider": settings.get_active_provider(),
        "url": settings.get_llm_base_url()
    }
