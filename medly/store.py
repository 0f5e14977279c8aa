"""Keyed entity collections with soft-delete and timestamp bookkeeping."""
import logging
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Iterable, Optional

from pydantic_core import to_jsonable_python
from sqlalchemy.orm import Session

from medly.db import models

logger = logging.getLogger("medly.store")

USERS = "users"
ROLE_PROFILES = "role_profiles"
LOCATIONS = "locations"
SPECIALTIES = "specialties"
SCALE_TYPES = "scale_types"
SCALES = "scales"
CANDIDATURES = "candidatures"
DOCUMENTS = "documents"
RATINGS = "ratings"
PAYMENTS = "payments"
AUDIT_LOGS = "audit_logs"
NOTIFICATIONS = "notifications"

COLLECTIONS = (
    USERS,
    ROLE_PROFILES,
    LOCATIONS,
    SPECIALTIES,
    SCALE_TYPES,
    SCALES,
    CANDIDATURES,
    DOCUMENTS,
    RATINGS,
    PAYMENTS,
    AUDIT_LOGS,
    NOTIFICATIONS,
)

CURRENT_USER_KEY = "current_user"
DATA_VERSION_KEY = "data_version"

_BOOKKEEPING = {"id", "created_at", "updated_at", "deleted_at"}


class EntityStore(ABC):
    @abstractmethod
    def get_all(self, collection: str, include_deleted: bool = False) -> list[dict]:
        """Records of a collection in insertion order; ``[]`` for an unknown collection."""
        ...

    @abstractmethod
    def get_by_id(self, collection: str, entity_id: str) -> Optional[dict]:
        """Non-deleted record, or ``None``."""
        ...

    @abstractmethod
    def create(self, collection: str, attrs: dict) -> dict:
        """Stores a new record with a fresh id and timestamps."""
        ...

    @abstractmethod
    def update(self, collection: str, entity_id: str, patch: dict) -> Optional[dict]:
        """Merges ``patch`` into the record; ``None`` if the id is unknown."""
        ...

    @abstractmethod
    def soft_delete(self, collection: str, entity_id: str) -> bool:
        ...

    @abstractmethod
    def hard_delete(self, collection: str, entity_id: str) -> bool:
        ...

    @abstractmethod
    def import_records(self, collection: str, records: Iterable[dict]) -> int:
        """Writes fixture records as-is, keeping their ids and timestamps."""
        ...

    @abstractmethod
    def get_value(self, key: str) -> Optional[str]:
        ...

    @abstractmethod
    def set_value(self, key: str, value: str) -> None:
        ...

    @abstractmethod
    def delete_value(self, key: str) -> None:
        ...

    @abstractmethod
    def wipe(self) -> None:
        """Drops every record and scalar value."""
        ...

    def count(self, collection: str, include_deleted: bool = False) -> int:
        return len(self.get_all(collection, include_deleted=include_deleted))

    def find(self, collection: str, include_deleted: bool = False, **filters: Any) -> list[dict]:
        return [
            record
            for record in self.get_all(collection, include_deleted=include_deleted)
            if all(record.get(key) == value for key, value in filters.items())
        ]

    def find_one(self, collection: str, **filters: Any) -> Optional[dict]:
        matches = self.find(collection, **filters)
        return matches[0] if matches else None


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _iso(value: Optional[datetime]) -> Optional[str]:
    value = _as_utc(value)
    return value.isoformat() if value else None


def _parse(value: Any) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return _as_utc(value)
    return _as_utc(datetime.fromisoformat(str(value).replace("Z", "+00:00")))


class SqlEntityStore(EntityStore):
    def __init__(self, db: Session) -> None:
        self.db = db

    def _query(self, collection: str):
        return self.db.query(models.EntityRecord).filter(models.EntityRecord.collection == collection)

    def _row(self, collection: str, entity_id: str) -> Optional[models.EntityRecord]:
        return self._query(collection).filter(models.EntityRecord.id == entity_id).first()

    @staticmethod
    def _to_dict(row: models.EntityRecord) -> dict:
        data = dict(row.payload or {})
        data.update(
            {
                "id": row.id,
                "created_at": _iso(row.created_at),
                "updated_at": _iso(row.updated_at),
                "deleted_at": _iso(row.deleted_at),
            }
        )
        return data

    @staticmethod
    def _clean(attrs: dict) -> dict:
        return to_jsonable_python({key: value for key, value in attrs.items() if key not in _BOOKKEEPING})

    def get_all(self, collection: str, include_deleted: bool = False) -> list[dict]:
        query = self._query(collection)
        if not include_deleted:
            query = query.filter(models.EntityRecord.deleted_at.is_(None))
        return [self._to_dict(row) for row in query.order_by(models.EntityRecord.pk.asc()).all()]

    def get_by_id(self, collection: str, entity_id: str) -> Optional[dict]:
        if not entity_id:
            return None
        row = self._row(collection, entity_id)
        if not row or row.deleted_at is not None:
            return None
        return self._to_dict(row)

    def create(self, collection: str, attrs: dict) -> dict:
        now = datetime.now(timezone.utc)
        row = models.EntityRecord(
            id=str(uuid.uuid4()),
            collection=collection,
            payload=self._clean(attrs),
            created_at=now,
            updated_at=now,
            deleted_at=None,
        )
        self.db.add(row)
        self.db.commit()
        self.db.refresh(row)
        logger.debug("store create collection=%s id=%s", collection, row.id)
        return self._to_dict(row)

    def update(self, collection: str, entity_id: str, patch: dict) -> Optional[dict]:
        row = self._row(collection, entity_id)
        if not row:
            return None
        row.payload = {**(row.payload or {}), **self._clean(patch)}
        row.updated_at = datetime.now(timezone.utc)
        self.db.commit()
        self.db.refresh(row)
        logger.debug("store update collection=%s id=%s fields=%s", collection, entity_id, sorted(patch))
        return self._to_dict(row)

    def soft_delete(self, collection: str, entity_id: str) -> bool:
        row = self._row(collection, entity_id)
        if not row:
            return False
        if row.deleted_at is None:
            now = datetime.now(timezone.utc)
            row.deleted_at = now
            row.updated_at = now
            self.db.commit()
            logger.info("store soft_delete collection=%s id=%s", collection, entity_id)
        return True

    def hard_delete(self, collection: str, entity_id: str) -> bool:
        row = self._row(collection, entity_id)
        if not row:
            return False
        self.db.delete(row)
        self.db.commit()
        logger.info("store hard_delete collection=%s id=%s", collection, entity_id)
        return True

    def import_records(self, collection: str, records: Iterable[dict]) -> int:
        now = datetime.now(timezone.utc)
        total = 0
        for record in records:
            self.db.add(
                models.EntityRecord(
                    id=record.get("id") or str(uuid.uuid4()),
                    collection=collection,
                    payload=self._clean(record),
                    created_at=_parse(record.get("created_at")) or now,
                    updated_at=_parse(record.get("updated_at")) or now,
                    deleted_at=_parse(record.get("deleted_at")),
                )
            )
            total += 1
        self.db.commit()
        return total

    def count(self, collection: str, include_deleted: bool = False) -> int:
        query = self._query(collection)
        if not include_deleted:
            query = query.filter(models.EntityRecord.deleted_at.is_(None))
        return query.count()

    def get_value(self, key: str) -> Optional[str]:
        row = self.db.query(models.StoreValue).filter(models.StoreValue.key == key).first()
        return row.value if row else None

    def set_value(self, key: str, value: str) -> None:
        row = self.db.query(models.StoreValue).filter(models.StoreValue.key == key).first()
        if row:
            row.value = value
        else:
            self.db.add(models.StoreValue(key=key, value=value))
        self.db.commit()

    def delete_value(self, key: str) -> None:
        self.db.query(models.StoreValue).filter(models.StoreValue.key == key).delete()
        self.db.commit()

    def wipe(self) -> None:
        self.db.query(models.EntityRecord).delete()
        self.db.query(models.StoreValue).delete()
        self.db.commit()
        logger.warning("store wiped")
