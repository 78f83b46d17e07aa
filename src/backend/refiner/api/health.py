"""Health check endpoints."""
import logging

from fastapi import APIRouter

from refiner.config import settings

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/health")
async def health_check():
    return {"status": "ok", "service": settings.app_name}


@router.get("/api/health/config")
async def config_check():
    """Diagnostic endpoint: shows whether the oracle is configured (no secrets)."""
    return {
        "oracle_backend": settings.oracle_backend,
        "oracle_cli_command": settings.oracle_cli_command.split(" ")[0],
        "oracle_base_url_set": bool(settings.oracle_base_url),
        "oracle_api_key_set": bool(settings.oracle_api_key),
        "oracle_model_id": settings.oracle_model_id,
        "oracle_timeout_seconds": settings.oracle_timeout_seconds,
        "default_mode": settings.default_mode,
    }
