import logging

from fastapi import APIRouter

from medly.core import config
from medly.services.cep import lookup_cep

router = APIRouter()
logger = logging.getLogger("medly.doctor")


@router.get("/doctor/cep")
def doctor_cep():
    result = lookup_cep("01001-000")
    ok = result and result.get("status") == "OK"
    if not ok:
        logger.warning("doctor/cep failed: %s", result.get("error"))
    return {"status": "OK" if ok else "ERROR"}


@router.get("/doctor")
def doctor():
    settings = config.settings
    storage_ok = bool(settings.GCS_BUCKET) or settings.ENV != "production"
    secret_ok = settings.ENV != "production" or settings.SECRET_KEY != "dev-secret-change-me"
    database_ok = settings.ENV != "production" or not settings.SQLALCHEMY_DATABASE_URI.startswith("sqlite")
    overall = all([storage_ok, secret_ok, database_ok])
    return {
        "status": "OK" if overall else "WARN",
        "storage": "OK" if settings.GCS_BUCKET else "LOCAL",
        "secret_key": "OK" if secret_ok else "ERROR",
        "database": "OK" if database_ok else "ERROR",
        "geolocation_mock": "ON" if settings.GEOLOCATION_MOCK_ENABLED else "OFF",
        "data_version": settings.DATA_VERSION,
        "cors": "OK" if settings.BACKEND_CORS_ORIGINS else "ERROR",
    }
