import re
import httpx
import logging
from fastapi import APIRouter
from typing import List
from models.schemas import ModelMetadata
from services.gemini import get_api_key
from settings import settings

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/models", tags=["models"])


def _prettify_model_name(raw_id: str) -> str:
    """
    Convert Gemini model resource names into clean display names.

    Examples:
        'models/gemini-2.5-flash'      -> 'Gemini 2.5 Flash'
        'gemini-2.0-flash-lite'        -> 'Gemini 2.0 Flash Lite'
        'models/gemini-1.5-pro-latest' -> 'Gemini 1.5 Pro Latest'
    """
    name = re.sub(r'^models/', '', raw_id)
    name = name.replace('_', ' ').replace('-', ' ')

    # Title case single-word parts that are all lower
    final_parts = []
    for part in name.split():
        if part.islower() and len(part) > 2:
            final_parts.append(part.capitalize())
        else:
            final_parts.append(part)

    return ' '.join(final_parts)


def _role_of(model_id: str):
    primary, backup = settings.get_models()
    if model_id == primary:
        return "primary"
    if model_id == backup:
        return "backup"
    return None


@router.get("", response_model=List[ModelMetadata])
async def list_models():
    models = []

    api_key = get_api_key()
    if api_key:
        try:
            async with httpx.AsyncClient() as client:
                resp = await client.get(
                    f"{settings.get_llm_base_url()}/models",
                    headers={"x-goog-api-key": api_key},
                    timeout=30.0
                )
                if resp.status_code == 200:
                    for m in resp.json().get("models", []):
                        # Only models that can serve chat turns
                        if "generateContent" not in (m.get("supportedGenerationMethods") or []):
                            continue
                        model_id = re.sub(r'^models/', '', m.get("name", ""))
                        models.append({
                            "id": model_id,
                            "name": m.get("displayName") or _prettify_model_name(model_id),
                            "role": _role_of(model_id),
                        })
                else:
                    logger.warning("[Models] LLM API returned %s: %s", resp.status_code, resp.text[:200])
        except Exception as e:
            logger.warning("[Models] Error fetching models from %s: %s", settings.get_llm_base_url(), e)

    # If no models were fetched, fall back to the configured pair
    if not models:
        for model_id in settings.get_models():
            models.append({
                "id": model_id,
                "name": _prettify_model_name(model_id),
                "role": _role_of(model_id),
            })

    return models
