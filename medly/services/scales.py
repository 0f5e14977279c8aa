"""Scale lifecycle.

``rascunho -> publicada -> em_andamento -> concluida``, with ``cancelada``
reachable from draft or published. Check-in and check-out readings are
always stored; ``verified`` only records whether the reading fell inside
the configured radius of the location.
"""
import logging
from datetime import timedelta
from typing import Optional

from pydantic import ValidationError

from medly.core.permissions import apply_scope, scope_is_all
from medly.core.results import CONFLICT, STATE, Result, denied, fail, from_validation_error, not_found, ok
from medly.core.timeutils import days_until as _days_until
from medly.core.timeutils import iso, parse_date, shift_duration, utcnow
from medly.schemas import CheckoutPayload, PositionPayload, ScalePayload, ScaleUpdate
from medly.services.audit import log_audit
from medly.services.candidatures import deny_open_candidatures, transfer_acceptance
from medly.services.geolocation import resolve_position, verify_against
from medly.services.notifications import notify
from medly.services.ratings import create_rating
from medly.services.records import actor_permissions, ensure_permission
from medly.services.users import refresh_doctor_metrics
from medly.store import LOCATIONS, SCALE_TYPES, SCALES, SPECIALTIES, USERS, EntityStore

logger = logging.getLogger("medly.scales")

EDITABLE_STATUSES = ("rascunho", "publicada")
CANCELLABLE_STATUSES = ("rascunho", "publicada")
PAYLOAD_FIELDS = tuple(ScalePayload.model_fields)


def days_until(scale: dict, now=None) -> int:
    return _days_until(scale["date"], now)


def is_free_cancellation(scale: dict, now=None) -> bool:
    return days_until(scale, now) >= (scale.get("cancellation_deadline_days") or 0)


def can_transfer(scale: dict, now=None) -> bool:
    if scale.get("status") != "publicada":
        return False
    return days_until(scale, now) >= (scale.get("transfer_deadline_days") or 0)


def scale_duration(scale: dict) -> timedelta:
    return shift_duration(scale["start_time"], scale["end_time"])


def _missing_reference(store: EntityStore, payload: ScalePayload) -> Optional[Result]:
    if not store.get_by_id(LOCATIONS, payload.location_id):
        return not_found("Local")
    if not store.get_by_id(SCALE_TYPES, payload.scale_type_id):
        return not_found("Tipo de escala")
    if not store.get_by_id(SPECIALTIES, payload.specialty_id):
        return not_found("Especialidade")
    return None


def list_scales(
    store: EntityStore,
    actor: dict,
    status: Optional[str] = None,
    location_id: Optional[str] = None,
    specialty_id: Optional[str] = None,
    date_from=None,
    date_to=None,
) -> list[dict]:
    profile = actor_permissions(store, actor)
    records = store.get_all(SCALES)
    if scope_is_all(profile, "scales"):
        items = records
    else:
        own = apply_scope(profile, "scales", records, actor.get("id"), ("assigned_doctor_id",))
        own_ids = {item["id"] for item in own}
        # Open postings are visible to every doctor.
        open_posts = [
            item
            for item in records
            if item["id"] not in own_ids
            and item.get("status") == "publicada"
            and not item.get("assigned_doctor_id")
            and actor.get("role") == "medico"
        ]
        items = own + open_posts
    if status:
        items = [item for item in items if item.get("status") == status]
    if location_id:
        items = [item for item in items if item.get("location_id") == location_id]
    if specialty_id:
        items = [item for item in items if item.get("specialty_id") == specialty_id]
    if date_from:
        start = parse_date(date_from)
        items = [item for item in items if parse_date(item["date"]) >= start]
    if date_to:
        end = parse_date(date_to)
        items = [item for item in items if parse_date(item["date"]) <= end]
    return sorted(items, key=lambda item: (item["date"], item["start_time"]))


def get_scale(store: EntityStore, scale_id: str) -> Optional[dict]:
    return store.get_by_id(SCALES, scale_id)


def create_scale(store: EntityStore, actor: dict, data: dict) -> Result:
    refusal = ensure_permission(store, actor, "scales", "create")
    if refusal:
        return refusal
    try:
        payload = ScalePayload.model_validate(data)
    except ValidationError as exc:
        return from_validation_error(exc)
    missing = _missing_reference(store, payload)
    if missing:
        return missing

    attrs = payload.model_dump()
    attrs.update(
        {
            "status": "rascunho",
            "payment_status": "pendente",
            "assigned_doctor_id": None,
            "candidate_ids": [],
            "check_in": None,
            "check_out": None,
        }
    )
    scale = store.create(SCALES, attrs)
    log_audit(store, actor, "CREATE", SCALES, scale["id"], {"title": scale["title"], "date": scale["date"]})
    logger.info("scale created id=%s date=%s", scale["id"], scale["date"])
    return ok(scale)


def update_scale(store: EntityStore, actor: dict, scale_id: str, data: dict) -> Result:
    refusal = ensure_permission(store, actor, "scales", "edit")
    if refusal:
        return refusal
    scale = store.get_by_id(SCALES, scale_id)
    if not scale:
        return not_found("Escala")
    if scale.get("status") not in EDITABLE_STATUSES:
        return fail("Escala nao pode mais ser editada", STATE)
    try:
        changes = ScaleUpdate.model_validate(data).model_dump(exclude_unset=True)
        payload = ScalePayload.model_validate(
            {field: changes.get(field, scale.get(field)) for field in PAYLOAD_FIELDS}
        )
    except ValidationError as exc:
        return from_validation_error(exc)
    missing = _missing_reference(store, payload)
    if missing:
        return missing

    updated = store.update(SCALES, scale_id, {field: getattr(payload, field) for field in changes})
    log_audit(store, actor, "UPDATE", SCALES, scale_id, {"fields": sorted(changes)})
    moved = {"date", "start_time", "end_time"} & set(changes)
    if moved and scale.get("assigned_doctor_id"):
        notify(
            store,
            scale["assigned_doctor_id"],
            "Escala alterada",
            f"A escala {updated['title']} teve data ou horario alterados.",
            "warning",
        )
    return ok(updated)


def publish_scale(store: EntityStore, actor: dict, scale_id: str) -> Result:
    refusal = ensure_permission(store, actor, "scales", "edit")
    if refusal:
        return refusal
    scale = store.get_by_id(SCALES, scale_id)
    if not scale:
        return not_found("Escala")
    if scale.get("status") != "rascunho":
        logger.warning("publish rejected id=%s status=%s", scale_id, scale.get("status"))
        return fail("Apenas rascunhos podem ser publicados", STATE)
    updated = store.update(SCALES, scale_id, {"status": "publicada"})
    log_audit(store, actor, "PUBLISH", SCALES, scale_id)
    logger.info("scale published id=%s", scale_id)
    return ok(updated)


def cancel_scale(
    store: EntityStore, actor: dict, scale_id: str, reason: Optional[str] = None, now=None
) -> Result:
    refusal = ensure_permission(store, actor, "scales", "edit")
    if refusal:
        return refusal
    scale = store.get_by_id(SCALES, scale_id)
    if not scale:
        return not_found("Escala")
    if scale.get("status") not in CANCELLABLE_STATUSES:
        logger.warning("cancel rejected id=%s status=%s", scale_id, scale.get("status"))
        return fail("Escala nao pode ser cancelada neste status", STATE)

    late = not is_free_cancellation(scale, now)
    updated = store.update(
        SCALES,
        scale_id,
        {
            "status": "cancelada",
            "cancelled_at": iso(now or utcnow()),
            "cancelled_by": actor["id"],
            "late_cancellation": late,
        },
    )
    denied_ids = deny_open_candidatures(store, scale_id, actor, "Escala cancelada", now=now)
    doctor_id = scale.get("assigned_doctor_id")
    if doctor_id:
        notify(
            store,
            doctor_id,
            "Escala cancelada",
            f"A escala {scale['title']} de {scale['date']} foi cancelada.",
            "warning",
        )
        refresh_doctor_metrics(store, doctor_id)
    log_audit(
        store,
        actor,
        "CANCEL",
        SCALES,
        scale_id,
        {"late": late, "reason": reason, "denied_candidatures": denied_ids},
    )
    logger.info("scale cancelled id=%s late=%s", scale_id, late)
    warnings = ["Cancelamento fora do prazo"] if late else None
    return ok(updated, warnings)


def start_scale(store: EntityStore, actor: dict, scale_id: str) -> Result:
    refusal = ensure_permission(store, actor, "scales", "edit")
    if refusal:
        return refusal
    scale = store.get_by_id(SCALES, scale_id)
    if not scale:
        return not_found("Escala")
    if scale.get("status") != "publicada" or not scale.get("assigned_doctor_id"):
        return fail("Escala precisa estar publicada e com medico designado", STATE)
    updated = store.update(SCALES, scale_id, {"status": "em_andamento"})
    log_audit(store, actor, "START", SCALES, scale_id)
    return ok(updated)


def complete_scale(store: EntityStore, actor: dict, scale_id: str) -> Result:
    refusal = ensure_permission(store, actor, "scales", "edit")
    if refusal:
        return refusal
    scale = store.get_by_id(SCALES, scale_id)
    if not scale:
        return not_found("Escala")
    status = scale.get("status")
    if status != "em_andamento" and not (status == "publicada" and scale.get("assigned_doctor_id")):
        return fail("Escala nao pode ser concluida neste status", STATE)
    updated = store.update(SCALES, scale_id, {"status": "concluida"})
    refresh_doctor_metrics(store, scale.get("assigned_doctor_id"))
    log_audit(store, actor, "COMPLETE", SCALES, scale_id)
    logger.info("scale completed id=%s", scale_id)
    return ok(updated)


def _can_check(actor: dict, scale: dict) -> bool:
    return actor.get("id") == scale.get("assigned_doctor_id") or actor.get("role") == "admin"


def _reading(store: EntityStore, scale: dict, payload: PositionPayload, now=None):
    position = resolve_position(
        payload.lat, payload.lng, payload.use_mock, payload.mock_offset_lat, payload.mock_offset_lng
    )
    if position["status"] != "OK":
        return None, fail(f"Localizacao indisponivel ({position['error']})")
    location = store.get_by_id(LOCATIONS, scale["location_id"])
    coordinates = position["coordinates"]
    verified, distance = verify_against(coordinates, (location or {}).get("coordinates"))
    record = {
        "timestamp": iso(payload.timestamp or now or utcnow()),
        "coordinates": coordinates,
        "verified": verified,
        "distance_m": distance,
    }
    return record, None


def check_in(store: EntityStore, actor: dict, scale_id: str, data: dict, now=None) -> Result:
    try:
        payload = PositionPayload.model_validate(data)
    except ValidationError as exc:
        return from_validation_error(exc)
    scale = store.get_by_id(SCALES, scale_id)
    if not scale:
        return not_found("Escala")
    if not _can_check(actor, scale):
        return denied("Apenas o medico designado pode registrar check-in")
    if scale.get("status") != "publicada" or not scale.get("assigned_doctor_id"):
        return fail("Check-in disponivel apenas para escalas publicadas com medico designado", STATE)
    if scale.get("check_in"):
        return fail("Check-in ja registrado", CONFLICT)

    record, error = _reading(store, scale, payload, now)
    if error:
        return error
    updated = store.update(SCALES, scale_id, {"check_in": record, "status": "em_andamento"})
    log_audit(
        store, actor, "CHECK_IN", SCALES, scale_id, {"verified": record["verified"], "distance_m": record["distance_m"]}
    )
    logger.info("check-in id=%s verified=%s distance=%s", scale_id, record["verified"], record["distance_m"])
    warnings = None if record["verified"] else ["Check-in registrado fora do raio do local"]
    return ok(updated, warnings)


def check_out(store: EntityStore, actor: dict, scale_id: str, data: dict, now=None) -> Result:
    try:
        payload = CheckoutPayload.model_validate(data)
    except ValidationError as exc:
        return from_validation_error(exc)
    scale = store.get_by_id(SCALES, scale_id)
    if not scale:
        return not_found("Escala")
    if not _can_check(actor, scale):
        return denied("Apenas o medico designado pode registrar check-out")
    if scale.get("status") != "em_andamento" or not scale.get("check_in"):
        return fail("Check-out exige check-in previo", STATE)
    if scale.get("check_out"):
        return fail("Check-out ja registrado", CONFLICT)

    record, error = _reading(store, scale, payload, now)
    if error:
        return error
    updated = store.update(
        SCALES,
        scale_id,
        {
            "check_out": record,
            "status": "concluida",
            "patients_attended": payload.patients_attended,
            "observations": payload.observations,
        },
    )
    refresh_doctor_metrics(store, scale.get("assigned_doctor_id"))
    log_audit(
        store, actor, "CHECK_OUT", SCALES, scale_id, {"verified": record["verified"], "distance_m": record["distance_m"]}
    )

    warnings = []
    if not record["verified"]:
        warnings.append("Check-out registrado fora do raio do local")
    if payload.overall_score is not None and actor.get("id") == scale.get("assigned_doctor_id"):
        rated = create_rating(
            store,
            actor,
            {
                "scale_id": scale_id,
                "type": "doctor_to_location",
                "to_location_id": scale["location_id"],
                "overall_score": payload.overall_score,
                "comment": payload.observations[:500] if payload.observations else None,
            },
        )
        if not rated.success:
            warnings.append(f"Avaliacao nao registrada: {rated.error}")
    return ok(updated, warnings or None)


def transfer_scale(store: EntityStore, actor: dict, scale_id: str, doctor_id: str, now=None) -> Result:
    refusal = ensure_permission(store, actor, "scales", "edit")
    if refusal:
        return refusal
    scale = store.get_by_id(SCALES, scale_id)
    if not scale:
        return not_found("Escala")
    if scale.get("status") != "publicada":
        return fail("Apenas escalas publicadas podem ser transferidas", STATE)
    if not can_transfer(scale, now):
        logger.warning("transfer rejected id=%s days_until=%s", scale_id, days_until(scale, now))
        return fail("Prazo para transferencia encerrado", STATE)
    doctor = store.get_by_id(USERS, doctor_id)
    if not doctor or doctor.get("role") != "medico":
        return not_found("Medico")
    if doctor.get("status") != "ativo":
        return fail("Medico nao esta ativo", STATE)
    previous = scale.get("assigned_doctor_id")
    if previous == doctor_id:
        return fail("Escala ja atribuida a este medico", CONFLICT)

    candidate_ids = list(scale.get("candidate_ids") or [])
    if doctor_id not in candidate_ids:
        candidate_ids.append(doctor_id)
    updated = store.update(SCALES, scale_id, {"assigned_doctor_id": doctor_id, "candidate_ids": candidate_ids})
    transfer_acceptance(store, scale_id, previous, doctor_id, actor, now)
    deny_open_candidatures(store, scale_id, actor, "Outro medico foi selecionado", now=now)
    if previous:
        notify(store, previous, "Escala transferida", f"A escala {scale['title']} foi transferida.", "warning")
    notify(store, doctor_id, "Nova escala", f"Voce foi designado para a escala {scale['title']}.", "success")
    log_audit(store, actor, "TRANSFER", SCALES, scale_id, {"from": previous, "to": doctor_id})
    return ok(updated)
