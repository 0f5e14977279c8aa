import logging
from datetime import timedelta
from typing import Optional

from medly.core.config import settings
from medly.core.permissions import full_access
from medly.core.security import get_password_hash
from medly.core.timeutils import iso, today, utcnow
from medly.db import models
from medly.store import (
    AUDIT_LOGS,
    COLLECTIONS,
    DATA_VERSION_KEY,
    LOCATIONS,
    NOTIFICATIONS,
    ROLE_PROFILES,
    SCALE_TYPES,
    SCALES,
    SPECIALTIES,
    USERS,
    EntityStore,
)

logger = logging.getLogger("medly.init_db")

default_password = "Medly123"


def create_tables(engine) -> None:
    models.Base.metadata.create_all(bind=engine)


def _grant(*actions: str) -> dict:
    return {action: action in actions for action in ("view", "create", "edit", "delete", "view_all")}


def _role_profiles() -> list[dict]:
    return [
        {
            "id": "profile-admin",
            "name": "Administrador",
            "role": "admin",
            "description": "Acesso total ao sistema",
            "permissions": full_access().model_dump(),
        },
        {
            "id": "profile-gestor",
            "name": "Gestor",
            "role": "gestor",
            "description": "Gestao de equipes, escalas e pagamentos",
            "permissions": {
                "dashboard": {
                    "view": True,
                    "view_all": True,
                    "cards": {
                        "total_users": True,
                        "active_scales": True,
                        "pending_payments": True,
                        "occupancy_rate": True,
                    },
                    "charts": {"users_by_role": True, "scales_trend": True, "location_ratings": True},
                },
                "users": _grant("view", "create", "edit", "view_all"),
                "scales": _grant("view", "create", "edit", "delete", "view_all"),
                "locations": _grant("view", "create", "edit", "view_all"),
                "payments": _grant("view", "create", "edit", "view_all"),
                "documents": _grant("view", "edit", "view_all"),
                "reports": _grant("view", "view_all"),
                "settings": _grant("view"),
            },
        },
        {
            "id": "profile-escalista",
            "name": "Escalista",
            "role": "escalista",
            "description": "Montagem e acompanhamento de escalas",
            "permissions": {
                "dashboard": {
                    "view": True,
                    "view_all": True,
                    "cards": {"active_scales": True, "occupancy_rate": True},
                    "charts": {"scales_trend": True},
                },
                "users": _grant("view"),
                "scales": _grant("view", "create", "edit", "view_all"),
                "locations": _grant("view", "view_all"),
                "documents": _grant("view", "view_all"),
                "settings": _grant("view"),
            },
        },
        {
            "id": "profile-medico",
            "name": "Medico",
            "role": "medico",
            "description": "Area do medico",
            "permissions": {
                "dashboard": {
                    "view": True,
                    "cards": {"active_scales": True, "pending_payments": True},
                },
                "scales": _grant("view"),
                "locations": _grant("view", "view_all"),
                "payments": _grant("view"),
                "documents": _grant("view", "create"),
            },
        },
    ]


def _address(cep: str, street: str, number: str, neighborhood: str, city: str = "São Paulo") -> dict:
    return {
        "cep": cep,
        "street": street,
        "number": number,
        "complement": None,
        "neighborhood": neighborhood,
        "city": city,
        "state": "SP",
    }


def _users(password_hash: str) -> list[dict]:
    base = {"password_hash": password_hash, "specialties": [], "avatar_url": None}
    doctor = {"role": "medico", "crm_state": "SP", "average_rating": None, "cancellation_rate": 0.0}
    return [
        {
            **base,
            "id": "user-admin",
            "name": "Ana Ribeiro",
            "email": "admin@medly.com.br",
            "phone": "(11) 99999-0001",
            "cpf": "529.982.247-25",
            "role": "admin",
            "status": "ativo",
            "address": _address("01310-100", "Avenida Paulista", "1000", "Bela Vista"),
        },
        {
            **base,
            "id": "user-gestor",
            "name": "Gustavo Martins",
            "email": "gestor@medly.com.br",
            "phone": "(11) 99999-0002",
            "cpf": "111.444.777-35",
            "role": "gestor",
            "status": "ativo",
            "address": _address("04538-133", "Avenida Brigadeiro Faria Lima", "3477", "Itaim Bibi"),
        },
        {
            **base,
            "id": "user-escalista",
            "name": "Elisa Campos",
            "email": "escalista@medly.com.br",
            "phone": "(11) 99999-0003",
            "cpf": "123.456.789-09",
            "role": "escalista",
            "status": "ativo",
            "manager_id": "user-gestor",
            "address": _address("05402-000", "Rua Cardeal Arcoverde", "250", "Pinheiros"),
        },
        {
            **base,
            **doctor,
            "id": "user-medico-1",
            "name": "Dra. Marina Souza",
            "email": "marina.souza@medly.com.br",
            "phone": "(11) 98888-1001",
            "cpf": "987.654.321-00",
            "status": "ativo",
            "crm": "123456",
            "specialties": ["specialty-clinica"],
            "manager_id": "user-escalista",
            "completed_scales": 1,
            "address": _address("04101-300", "Rua Vergueiro", "3185", "Vila Mariana"),
        },
        {
            **base,
            **doctor,
            "id": "user-medico-2",
            "name": "Dr. Paulo Lima",
            "email": "paulo.lima@medly.com.br",
            "phone": "(11) 98888-1002",
            "cpf": "390.533.447-05",
            "status": "ativo",
            "crm": "654321",
            "specialties": ["specialty-pediatria"],
            "manager_id": "user-escalista",
            "completed_scales": 0,
            "address": _address("02011-000", "Rua Voluntários da Pátria", "1500", "Santana"),
        },
        {
            **base,
            **doctor,
            "id": "user-medico-3",
            "name": "Dr. Rafael Costa",
            "email": "rafael.costa@medly.com.br",
            "phone": "(11) 98888-1003",
            "cpf": "714.602.380-01",
            "status": "pendente",
            "crm": "777888",
            "completed_scales": 0,
            "address": _address("03310-000", "Rua Tuiuti", "900", "Tatuapé"),
        },
    ]


def _locations() -> list[dict]:
    return [
        {
            "id": "location-hospital-central",
            "name": "Hospital Central",
            "type": "hospital",
            "address": _address("01001-000", "Praça da Sé", "100", "Sé"),
            "coordinates": {"lat": -23.5505, "lng": -46.6333},
            "phone": "(11) 3333-1000",
            "email": "contato@hospitalcentral.com.br",
            "average_rating": 4.5,
        },
        {
            "id": "location-upa-norte",
            "name": "UPA Zona Norte",
            "type": "upa",
            "address": _address("02012-000", "Avenida Cruzeiro do Sul", "2630", "Santana"),
            "coordinates": {"lat": -23.4990, "lng": -46.6250},
            "phone": "(11) 3333-2000",
            "email": None,
            "average_rating": None,
        },
        {
            "id": "location-ubs-vila-mariana",
            "name": "UBS Vila Mariana",
            "type": "ubs",
            "address": _address("04016-001", "Rua Domingos de Morais", "2200", "Vila Mariana"),
            "coordinates": None,
            "phone": None,
            "email": None,
            "average_rating": None,
        },
    ]


def _scale_types() -> list[dict]:
    return [
        {"id": "scale-type-12h", "name": "Plantão 12h", "default_duration_hours": 12, "default_shift": "plantao_12h"},
        {"id": "scale-type-24h", "name": "Plantão 24h", "default_duration_hours": 24, "default_shift": "plantao_24h"},
        {"id": "scale-type-manha", "name": "Ambulatório manhã", "default_duration_hours": 6, "default_shift": "manha"},
    ]


def _specialties() -> list[dict]:
    return [
        {"id": "specialty-clinica", "name": "Clínica Médica", "scale_type_ids": ["scale-type-12h", "scale-type-24h"]},
        {"id": "specialty-pediatria", "name": "Pediatria", "scale_type_ids": ["scale-type-12h", "scale-type-manha"]},
        {"id": "specialty-ortopedia", "name": "Ortopedia", "scale_type_ids": ["scale-type-manha"]},
    ]


def _scale(scale_id: str, title: str, day, **extra) -> dict:
    scale = {
        "id": scale_id,
        "location_id": "location-hospital-central",
        "scale_type_id": "scale-type-12h",
        "specialty_id": "specialty-clinica",
        "title": title,
        "description": None,
        "date": iso(day),
        "start_time": "07:00",
        "end_time": "19:00",
        "shift": "plantao_12h",
        "status": "publicada",
        "cancellation_deadline_days": 3,
        "transfer_deadline_days": 2,
        "payment_value": 1500.0,
        "payment_date": None,
        "payment_status": "pendente",
        "min_patients": 10,
        "max_patients": 40,
        "meal_break_minutes": 60,
        "required_documents": ["crm"],
        "assigned_doctor_id": None,
        "candidate_ids": [],
        "check_in": None,
        "check_out": None,
    }
    scale.update(extra)
    return scale


def _scales(now=None) -> list[dict]:
    current = today(now)
    return [
        _scale("scale-open", "Plantão diurno Clínica Médica", current + timedelta(days=10)),
        _scale(
            "scale-draft",
            "Plantão noturno UPA",
            current + timedelta(days=20),
            status="rascunho",
            location_id="location-upa-norte",
            start_time="19:00",
            end_time="07:00",
            payment_value=1800.0,
        ),
        _scale(
            "scale-assigned",
            "Plantão Hospital Central",
            current + timedelta(days=2),
            assigned_doctor_id="user-medico-1",
            candidate_ids=["user-medico-1"],
        ),
        _scale(
            "scale-pediatria",
            "Ambulatório Pediatria",
            current + timedelta(days=7),
            location_id="location-ubs-vila-mariana",
            scale_type_id="scale-type-manha",
            specialty_id="specialty-pediatria",
            start_time="07:00",
            end_time="13:00",
            shift="manha",
            meal_break_minutes=None,
            payment_value=800.0,
        ),
        _scale(
            "scale-done",
            "Plantão concluído",
            current - timedelta(days=5),
            status="concluida",
            assigned_doctor_id="user-medico-1",
            candidate_ids=["user-medico-1"],
            patients_attended=22,
        ),
    ]


def _notifications() -> list[dict]:
    return [
        {
            "id": "notification-welcome",
            "user_id": "user-medico-1",
            "title": "Bem-vinda ao Medly",
            "message": "Complete seu cadastro enviando seus documentos.",
            "type": "info",
            "read": False,
            "action_url": "/documents",
        },
        {
            "id": "notification-checkin",
            "user_id": "user-medico-1",
            "title": "Lembrete de Check-in",
            "message": "Seu plantão no Hospital Central começa em breve. Não esqueça de fazer o check-in!",
            "type": "warning",
            "read": False,
            "action_url": "/doctor",
        },
        {
            "id": "notification-pending-user",
            "user_id": "user-admin",
            "title": "Novo cadastro",
            "message": "Dr. Rafael Costa aguarda aprovacao.",
            "type": "info",
            "read": False,
            "action_url": "/users/user-medico-3",
        },
    ]


def _audit_logs(now=None) -> list[dict]:
    stamp = now or utcnow()
    return [
        {
            "id": "audit-seed-1",
            "timestamp": iso(stamp - timedelta(hours=2)),
            "user_id": "user-escalista",
            "user_name": "Elisa Campos",
            "action": "CREATE",
            "entity": SCALES,
            "entity_id": "scale-open",
            "details": None,
        },
        {
            "id": "audit-seed-2",
            "timestamp": iso(stamp - timedelta(hours=1)),
            "user_id": "user-gestor",
            "user_name": "Gustavo Martins",
            "action": "PUBLISH",
            "entity": SCALES,
            "entity_id": "scale-open",
            "details": None,
        },
    ]


def build_fixtures(password: Optional[str] = None, now=None) -> dict[str, list[dict]]:
    return {
        ROLE_PROFILES: _role_profiles(),
        USERS: _users(get_password_hash(password or default_password)),
        LOCATIONS: _locations(),
        SCALE_TYPES: _scale_types(),
        SPECIALTIES: _specialties(),
        SCALES: _scales(now),
        NOTIFICATIONS: _notifications(),
        AUDIT_LOGS: _audit_logs(now),
    }


def ensure_data_version(store: EntityStore, version: Optional[str] = None) -> bool:
    """Wipes all persisted state when the stored version differs. Returns True on reset."""
    version = version or settings.DATA_VERSION
    stored = store.get_value(DATA_VERSION_KEY)
    if stored == version:
        return False
    logger.warning("data version mismatch stored=%s expected=%s, resetting store", stored, version)
    store.wipe()
    store.set_value(DATA_VERSION_KEY, version)
    return True


def seed_if_empty(store: EntityStore, password: Optional[str] = None, now=None) -> dict[str, int]:
    fixtures = build_fixtures(password, now)
    seeded = {}
    for collection in COLLECTIONS:
        records = fixtures.get(collection)
        if not records or store.count(collection, include_deleted=True):
            continue
        seeded[collection] = store.import_records(collection, records)
    if seeded:
        logger.info("seeded collections %s", seeded)
    return seeded


def init_db(store: EntityStore, now=None) -> dict[str, int]:
    ensure_data_version(store)
    return seed_if_empty(store, now=now)


def reset_store(store: EntityStore, now=None) -> dict[str, int]:
    store.wipe()
    store.set_value(DATA_VERSION_KEY, settings.DATA_VERSION)
    return seed_if_empty(store, now=now)
