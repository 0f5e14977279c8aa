from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from medly.core.config import settings


def build_engine(uri: str):
    if not uri.startswith("sqlite"):
        return create_engine(uri, pool_pre_ping=True)
    kwargs = {"connect_args": {"check_same_thread": False}}
    if uri in {"sqlite://", "sqlite:///:memory:"}:
        kwargs["poolclass"] = StaticPool
    return create_engine(uri, **kwargs)


engine = build_engine(settings.SQLALCHEMY_DATABASE_URI)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
