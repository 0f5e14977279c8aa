import logging
from typing import Optional

from pydantic import ValidationError

from medly.core.results import CONFLICT, STATE, Result, denied, fail, from_validation_error, not_found, ok
from medly.schemas import RatingPayload
from medly.services.audit import log_audit
from medly.services.users import refresh_doctor_metrics
from medly.store import LOCATIONS, RATINGS, SCALES, USERS, EntityStore

logger = logging.getLogger("medly.ratings")


def average_score(ratings: list[dict]) -> Optional[float]:
    scores = [rating["overall_score"] for rating in ratings if rating.get("overall_score") is not None]
    if not scores:
        return None
    return round(sum(scores) / len(scores), 1)


def refresh_location_rating(store: EntityStore, location_id: str) -> Optional[dict]:
    if not store.get_by_id(LOCATIONS, location_id):
        return None
    average = average_score(store.find(RATINGS, to_location_id=location_id, type="doctor_to_location"))
    return store.update(LOCATIONS, location_id, {"average_rating": average})


def list_ratings(
    store: EntityStore,
    scale_id: Optional[str] = None,
    to_user_id: Optional[str] = None,
    to_location_id: Optional[str] = None,
) -> list[dict]:
    filters = {
        key: value
        for key, value in (
            ("scale_id", scale_id),
            ("to_user_id", to_user_id),
            ("to_location_id", to_location_id),
        )
        if value
    }
    return store.find(RATINGS, **filters)


def create_rating(store: EntityStore, actor: dict, data: dict) -> Result:
    try:
        payload = RatingPayload.model_validate(data)
    except ValidationError as exc:
        return from_validation_error(exc)
    scale = store.get_by_id(SCALES, payload.scale_id)
    if not scale:
        return not_found("Escala")
    if scale.get("status") != "concluida":
        return fail("Apenas escalas concluidas podem ser avaliadas", STATE)

    if payload.type == "doctor_to_location":
        if actor.get("id") != scale.get("assigned_doctor_id"):
            return denied("Apenas o medico da escala pode avaliar o local")
        if payload.to_location_id != scale.get("location_id"):
            return fail("Local da avaliacao difere do local da escala")
    else:
        if actor.get("role") == "medico":
            return denied("Medicos nao podem avaliar outros medicos")
        if payload.to_user_id != scale.get("assigned_doctor_id") or not store.get_by_id(USERS, payload.to_user_id):
            return fail("Medico da avaliacao difere do medico da escala")

    duplicate = store.find_one(RATINGS, scale_id=scale["id"], from_user_id=actor["id"], type=payload.type)
    if duplicate:
        return fail("Escala ja avaliada", CONFLICT)

    rating = store.create(RATINGS, {**payload.model_dump(), "from_user_id": actor["id"]})
    if payload.type == "doctor_to_location":
        refresh_location_rating(store, payload.to_location_id)
    else:
        refresh_doctor_metrics(store, payload.to_user_id)
    log_audit(store, actor, "RATE", RATINGS, rating["id"], {"type": rating["type"], "score": rating["overall_score"]})
    logger.info("rating stored id=%s type=%s score=%s", rating["id"], rating["type"], rating["overall_score"])
    return ok(rating)
