"""Health & Readiness Probes — process liveness and broker readiness.

Invariants:
    - GET /health/ is 200 whenever the process serves requests
    - GET /health/ready is 503 only when the database is unreachable; missing
      provider credentials are reported, never fatal
    - Integration flags are booleans: no credential value appears in a response
"""

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse

from nexus.api.dependencies import SettingsDep
from nexus.config import Settings
from nexus.infrastructure import database

router = APIRouter(prefix="/api/v1/health", tags=["health"])

SERVICE_NAME = "nexus-api"
SERVICE_VERSION = "1.0.0"


def integration_status(settings: Settings) -> dict[str, bool]:
    return {
        "identity": bool(settings.identity_url and settings.identity_anon_key),
        "meta_ads": bool(settings.meta_app_id and settings.meta_app_secret),
        "google": bool(settings.google_client_id and settings.google_client_secret),
        "whatsapp": bool(
            settings.whatsapp_access_token and settings.whatsapp_business_account_id
        ),
        "registrar": settings.registrar_mode == "mock" or bool(
            settings.porkbun_api_key and settings.porkbun_secret_key
        ),
        "stripe": bool(settings.stripe_secret_key and settings.stripe_webhook_secret),
    }


@router.get("/", status_code=status.HTTP_200_OK)
async def health_check():
    return {"status": "healthy", "service": SERVICE_NAME, "version": SERVICE_VERSION}


@router.get("/ready")
async def readiness_check(settings: SettingsDep):
    manager = database.db_manager
    db_ok = await manager.health_check() if manager else False
    body = {
        "status": "ready" if db_ok else "not_ready",
        "checks": {"database": "healthy" if db_ok else "unavailable"},
        "integrations": integration_status(settings),
        "registrar_mode": settings.registrar_mode,
    }
    if not db_ok:
        body["reason"] = "database_unavailable"
        return JSONResponse(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, content=body)
    return body
