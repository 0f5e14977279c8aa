import os
from functools import lru_cache
from pathlib import Path
from typing import List

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes"}


class Settings:
    def __init__(self) -> None:
        base_dir = Path(__file__).resolve().parent.parent.parent
        self.APP_NAME: str = os.getenv("APP_NAME", "Medly API")
        self.ENV: str = os.getenv("ENV", "development")
        self.SECRET_KEY: str = os.getenv("SECRET_KEY", "dev-secret-change-me")
        self.ACCESS_TOKEN_EXPIRE_HOURS: int = int(os.getenv("ACCESS_TOKEN_EXPIRE_HOURS", "8"))
        self.ALGORITHM: str = os.getenv("ALGORITHM", "HS256")
        self.SQLALCHEMY_DATABASE_URI: str = os.getenv(
            "SQLALCHEMY_DATABASE_URI",
            f"sqlite:///{(base_dir / 'medly.db').as_posix()}",
        )

        # Bump to force a wipe + reseed of the persisted state.
        self.DATA_VERSION: str = os.getenv("DATA_VERSION", "4")
        self.AUDIT_LOG_LIMIT: int = int(os.getenv("AUDIT_LOG_LIMIT", "1000"))
        self.CHECKIN_RADIUS_METERS: float = float(os.getenv("CHECKIN_RADIUS_METERS", "500"))
        self.GEOLOCATION_MOCK_ENABLED: bool = _env_bool(
            "GEOLOCATION_MOCK_ENABLED", "0" if self.ENV == "production" else "1"
        )
        self.PAYMENT_DUE_DAYS: int = int(os.getenv("PAYMENT_DUE_DAYS", "30"))
        self.SIMULATED_LATENCY_MIN_MS: int = int(os.getenv("SIMULATED_LATENCY_MIN_MS", "300"))
        self.SIMULATED_LATENCY_MAX_MS: int = int(os.getenv("SIMULATED_LATENCY_MAX_MS", "800"))

        self.VIACEP_URL: str = os.getenv("VIACEP_URL", "https://viacep.com.br/ws")
        self.VIACEP_TIMEOUT: float = float(os.getenv("VIACEP_TIMEOUT", "6"))

        self.LOCAL_STORAGE: bool = _env_bool("LOCAL_STORAGE", "0")
        self.LOCAL_STORAGE_DIR: str = os.getenv("LOCAL_STORAGE_DIR", str(base_dir / "storage"))
        self.GCS_BUCKET: str | None = os.getenv("GCS_BUCKET")
        self.DOCUMENT_MAX_BYTES: int = int(os.getenv("DOCUMENT_MAX_BYTES", str(10 * 1024 * 1024)))

        default_cors = [
            "http://localhost",
            "http://localhost:5173",
            "http://localhost:8080",
            "http://127.0.0.1:5173",
            "http://127.0.0.1:8080",
        ]
        cors_origins = os.getenv("BACKEND_CORS_ORIGINS")
        self.BACKEND_CORS_ORIGINS: List[str] = (
            [origin.strip() for origin in cors_origins.split(",") if origin.strip()]
            if cors_origins
            else default_cors
        )


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
