"""Candidatures and the post-acceptance workflow.

A scale has at most one ``aceito`` candidature. Accepting one denies every
other open candidature for the same scale in the same operation.
"""
import logging
from typing import Optional

from medly.core.permissions import apply_scope
from medly.core.results import CONFLICT, STATE, Result, denied, fail, not_found, ok
from medly.core.timeutils import iso, utcnow
from medly.services.audit import log_audit
from medly.services.notifications import notify
from medly.services.payments import ensure_scale_payment
from medly.services.records import actor_permissions, ensure_permission
from medly.store import CANDIDATURES, SCALES, USERS, EntityStore

logger = logging.getLogger("medly.candidatures")

WORKFLOW_STEPS = {
    1: "Envio de informações",
    2: "Aceite da empresa",
    3: "Documentos assinados",
    4: "Validação pendente",
    5: "Aprovado",
    6: "Envio de NF",
}
FINAL_STEP = 6
APPROVED_STEP = 5
# Milestones the assigned doctor reports; the rest are organisation decisions.
DOCTOR_STEPS = {1, 3, 6}
OPEN_STATUSES = ("interessado", "aguardando")


def workflow_progress(candidature: dict) -> list[dict]:
    current = candidature.get("workflow_step") or 0
    return [
        {"step": step, "label": label, "done": step <= current, "current": step == current}
        for step, label in WORKFLOW_STEPS.items()
    ]


def list_candidatures(
    store: EntityStore,
    actor: dict,
    scale_id: Optional[str] = None,
    status: Optional[str] = None,
) -> list[dict]:
    items = apply_scope(
        actor_permissions(store, actor), "scales", store.get_all(CANDIDATURES), actor.get("id"), ("doctor_id",)
    )
    if scale_id:
        items = [item for item in items if item.get("scale_id") == scale_id]
    if status:
        items = [item for item in items if item.get("status") == status]
    return items


def apply_to_scale(store: EntityStore, actor: dict, scale_id: str, now=None) -> Result:
    if actor.get("role") != "medico":
        return denied("Apenas medicos podem se candidatar")
    if actor.get("status") != "ativo":
        return denied("Cadastro ainda nao aprovado")
    scale = store.get_by_id(SCALES, scale_id)
    if not scale:
        return not_found("Escala")
    if scale.get("status") != "publicada":
        return fail("Escala nao esta aberta para candidaturas", STATE)
    if scale.get("assigned_doctor_id"):
        return fail("Escala ja possui medico designado", STATE)
    for existing in store.find(CANDIDATURES, scale_id=scale_id, doctor_id=actor["id"]):
        if existing.get("status") in OPEN_STATUSES + ("aceito",):
            return fail("Candidatura ja registrada para esta escala", CONFLICT)

    candidature = store.create(
        CANDIDATURES,
        {
            "scale_id": scale_id,
            "doctor_id": actor["id"],
            "status": "interessado",
            "applied_at": iso(now or utcnow()),
            "workflow_step": None,
            "workflow_history": [],
        },
    )
    candidate_ids = list(scale.get("candidate_ids") or [])
    if actor["id"] not in candidate_ids:
        candidate_ids.append(actor["id"])
        store.update(SCALES, scale_id, {"candidate_ids": candidate_ids})
    log_audit(store, actor, "APPLY", CANDIDATURES, candidature["id"], {"scale_id": scale_id})
    logger.info("candidature created id=%s scale=%s doctor=%s", candidature["id"], scale_id, actor["id"])
    return ok(candidature)


def withdraw_candidature(store: EntityStore, actor: dict, candidature_id: str) -> Result:
    candidature = store.get_by_id(CANDIDATURES, candidature_id)
    if not candidature:
        return not_found("Candidatura")
    if candidature.get("doctor_id") != actor.get("id"):
        return denied()
    if candidature.get("status") not in OPEN_STATUSES:
        return fail("Candidatura nao pode mais ser retirada", STATE)
    store.soft_delete(CANDIDATURES, candidature_id)
    scale = store.get_by_id(SCALES, candidature["scale_id"])
    if scale:
        store.update(
            SCALES,
            scale["id"],
            {"candidate_ids": [i for i in scale.get("candidate_ids") or [] if i != actor["id"]]},
        )
    log_audit(store, actor, "WITHDRAW", CANDIDATURES, candidature_id)
    return ok({"id": candidature_id})


def _respond(store: EntityStore, actor: dict, candidature_id: str, action: str):
    refusal = ensure_permission(store, actor, "scales", "edit")
    if refusal:
        return None, refusal
    candidature = store.get_by_id(CANDIDATURES, candidature_id)
    if not candidature:
        return None, not_found("Candidatura")
    if candidature.get("status") not in OPEN_STATUSES:
        logger.warning(
            "candidature %s rejected id=%s status=%s", action, candidature_id, candidature.get("status")
        )
        return None, fail("Candidatura ja respondida", STATE)
    return candidature, None


def mark_awaiting(store: EntityStore, actor: dict, candidature_id: str, now=None) -> Result:
    candidature, error = _respond(store, actor, candidature_id, "await")
    if error:
        return error
    if candidature["status"] != "interessado":
        return fail("Candidatura ja esta aguardando", STATE)
    updated = store.update(
        CANDIDATURES,
        candidature_id,
        {"status": "aguardando", "responded_at": iso(now or utcnow()), "responded_by": actor["id"]},
    )
    log_audit(store, actor, "AWAIT", CANDIDATURES, candidature_id)
    return ok(updated)


def accept_candidature(store: EntityStore, actor: dict, candidature_id: str, now=None) -> Result:
    candidature, error = _respond(store, actor, candidature_id, "accept")
    if error:
        return error
    scale = store.get_by_id(SCALES, candidature["scale_id"])
    if not scale:
        return not_found("Escala")
    if scale.get("status") != "publicada":
        return fail("Escala nao esta publicada", STATE)
    siblings = store.find(CANDIDATURES, scale_id=scale["id"])
    if any(item.get("status") == "aceito" for item in siblings):
        return fail("Escala ja possui candidatura aceita", CONFLICT)
    doctor = store.get_by_id(USERS, candidature["doctor_id"])
    if not doctor or doctor.get("status") != "ativo":
        return fail("Medico indisponivel", STATE)

    stamp = iso(now or utcnow())
    accepted = store.update(
        CANDIDATURES,
        candidature_id,
        {
            "status": "aceito",
            "responded_at": stamp,
            "responded_by": actor["id"],
            "workflow_step": 1,
            "workflow_history": [{"step": 1, "at": stamp, "actor_id": actor["id"]}],
        },
    )
    store.update(SCALES, scale["id"], {"assigned_doctor_id": doctor["id"]})
    denied_ids = deny_open_candidatures(
        store, scale["id"], actor, "Outro medico foi selecionado", exclude_id=candidature_id, now=now
    )
    notify(
        store,
        doctor["id"],
        "Candidatura aceita",
        f"Voce foi selecionado para a escala {scale['title']}.",
        "success",
    )
    log_audit(
        store, actor, "ACCEPT", CANDIDATURES, candidature_id, {"scale_id": scale["id"], "denied": denied_ids}
    )
    logger.info("candidature accepted id=%s scale=%s denied=%s", candidature_id, scale["id"], len(denied_ids))
    return ok(accepted)


def deny_candidature(
    store: EntityStore, actor: dict, candidature_id: str, reason: Optional[str] = None, now=None
) -> Result:
    candidature, error = _respond(store, actor, candidature_id, "deny")
    if error:
        return error
    updated = store.update(
        CANDIDATURES,
        candidature_id,
        {
            "status": "negado",
            "responded_at": iso(now or utcnow()),
            "responded_by": actor["id"],
            "denial_reason": reason,
        },
    )
    notify(store, candidature["doctor_id"], "Candidatura negada", reason or "Sua candidatura foi negada.", "warning")
    log_audit(store, actor, "DENY", CANDIDATURES, candidature_id, {"reason": reason})
    return ok(updated)


def deny_open_candidatures(
    store: EntityStore,
    scale_id: str,
    actor: Optional[dict],
    reason: str,
    exclude_id: Optional[str] = None,
    now=None,
) -> list[str]:
    stamp = iso(now or utcnow())
    denied_ids = []
    for item in store.find(CANDIDATURES, scale_id=scale_id):
        if item["id"] == exclude_id or item.get("status") not in OPEN_STATUSES:
            continue
        store.update(
            CANDIDATURES,
            item["id"],
            {
                "status": "negado",
                "responded_at": stamp,
                "responded_by": (actor or {}).get("id"),
                "denial_reason": reason,
            },
        )
        notify(store, item["doctor_id"], "Candidatura encerrada", reason, "info")
        denied_ids.append(item["id"])
    return denied_ids


def transfer_acceptance(
    store: EntityStore, scale_id: str, from_doctor_id: Optional[str], to_doctor_id: str, actor: dict, now=None
) -> dict:
    """Moves the accepted candidature of a scale to another doctor."""
    stamp = iso(now or utcnow())
    for item in store.find(CANDIDATURES, scale_id=scale_id, status="aceito"):
        if item["doctor_id"] == from_doctor_id:
            store.update(
                CANDIDATURES,
                item["id"],
                {"status": "negado", "denial_reason": "Escala transferida", "responded_at": stamp},
            )
    history = [{"step": 1, "at": stamp, "actor_id": actor["id"]}]
    existing = next(
        (item for item in store.find(CANDIDATURES, scale_id=scale_id, doctor_id=to_doctor_id)
         if item.get("status") in OPEN_STATUSES),
        None,
    )
    attrs = {
        "status": "aceito",
        "responded_at": stamp,
        "responded_by": actor["id"],
        "workflow_step": 1,
        "workflow_history": history,
    }
    if existing:
        return store.update(CANDIDATURES, existing["id"], attrs)
    return store.create(
        CANDIDATURES, {"scale_id": scale_id, "doctor_id": to_doctor_id, "applied_at": stamp, **attrs}
    )


def advance_workflow(store: EntityStore, actor: dict, candidature_id: str, step: int, now=None) -> Result:
    if step not in WORKFLOW_STEPS:
        return fail("Etapa invalida")
    candidature = store.get_by_id(CANDIDATURES, candidature_id)
    if not candidature:
        return not_found("Candidatura")
    is_owner = candidature.get("doctor_id") == actor.get("id")
    if not (is_owner and step in DOCTOR_STEPS):
        refusal = ensure_permission(store, actor, "scales", "edit")
        if refusal:
            return refusal
    if candidature.get("status") != "aceito":
        return fail("Workflow disponivel apenas para candidaturas aceitas", STATE)

    current = candidature.get("workflow_step") or 1
    if step == current:
        return ok(candidature)
    if step < current:
        logger.warning("workflow regression rejected id=%s current=%s requested=%s", candidature_id, current, step)
        return fail("Etapa do workflow nao pode retroceder", STATE)
    if step == FINAL_STEP and current < APPROVED_STEP:
        return fail("Nota fiscal exige candidatura aprovada", STATE)

    history = list(candidature.get("workflow_history") or [])
    history.append({"step": step, "at": iso(now or utcnow()), "actor_id": actor.get("id")})
    updated = store.update(CANDIDATURES, candidature_id, {"workflow_step": step, "workflow_history": history})
    log_audit(
        store, actor, "WORKFLOW_ADVANCE", CANDIDATURES, candidature_id, {"from": current, "to": step}
    )
    logger.info("workflow advanced id=%s %s -> %s", candidature_id, current, step)

    warnings = None
    if step == FINAL_STEP:
        payment = ensure_scale_payment(store, candidature["scale_id"], candidature["doctor_id"], actor)
        if payment is None:
            warnings = ["Pagamento nao gerado: escala nao encontrada"]
    return ok(updated, warnings)
