import logging
import time

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from medly.api.v1.audit import router as audit_router
from medly.api.v1.auth import router as auth_router
from medly.api.v1.candidatures import router as candidatures_router
from medly.api.v1.catalog import router as catalog_router
from medly.api.v1.dashboard import router as dashboard_router
from medly.api.v1.doctor import router as doctor_router
from medly.api.v1.documents import router as documents_router
from medly.api.v1.locations import router as locations_router
from medly.api.v1.me import router as me_router
from medly.api.v1.notifications import router as notifications_router
from medly.api.v1.payments import router as payments_router
from medly.api.v1.profiles import router as profiles_router
from medly.api.v1.ratings import router as ratings_router
from medly.api.v1.scales import router as scales_router
from medly.api.v1.users import router as users_router
from medly.core.config import settings
from medly.db.init_db import create_tables, init_db
from medly.db.session import SessionLocal, engine
from medly.store import SqlEntityStore

if not logging.getLogger().handlers:
    logging.basicConfig(level=logging.INFO)

logger = logging.getLogger("medly")

app = FastAPI(
    title=settings.APP_NAME,
    version="1.0.0",
    description="Medly - Gestao de escalas medicas",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.BACKEND_CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
def on_startup() -> None:
    create_tables(engine)
    with SessionLocal() as db:
        init_db(SqlEntityStore(db))
    if settings.ENV.lower() == "production":
        if settings.SECRET_KEY == "dev-secret-change-me":
            logger.warning("SECRET_KEY esta usando valor padrao em producao.")
        if settings.SQLALCHEMY_DATABASE_URI.startswith("sqlite"):
            logger.warning("SQLALCHEMY_DATABASE_URI aponta para SQLite em producao.")


app.include_router(auth_router, prefix="/api")
app.include_router(me_router, prefix="/api")
app.include_router(users_router, prefix="/api")
app.include_router(profiles_router, prefix="/api")
app.include_router(locations_router, prefix="/api")
app.include_router(catalog_router, prefix="/api")
app.include_router(scales_router, prefix="/api")
app.include_router(candidatures_router, prefix="/api")
app.include_router(payments_router, prefix="/api")
app.include_router(documents_router, prefix="/api")
app.include_router(ratings_router, prefix="/api")
app.include_router(notifications_router, prefix="/api")
app.include_router(audit_router, prefix="/api")
app.include_router(dashboard_router, prefix="/api")
app.include_router(doctor_router, prefix="/api")


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    duration_ms = (time.perf_counter() - start) * 1000
    logger.info(
        "request method=%s path=%s status=%s duration_ms=%.2f",
        request.method,
        request.url.path,
        response.status_code,
        duration_ms,
    )
    return response


@app.get("/api/health")
def health():
    return {"status": "ok"}
