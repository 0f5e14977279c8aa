"""Dashboard KPIs and chart series.

Each card and chart is only computed when the caller's profile enables it.
Without ``dashboard.view_all`` the figures cover the caller's own records.
"""
import logging
from collections import Counter
from datetime import timedelta

from medly.core.permissions import (
    can_see_card,
    can_see_chart,
    can_view_dashboard,
    dashboard_scope_is_all,
)
from medly.core.results import Result, denied, ok
from medly.core.timeutils import parse_date, today
from medly.services.audit import list_audit_logs
from medly.services.payments import refresh_overdue_payments
from medly.services.records import actor_permissions
from medly.store import DOCUMENTS, LOCATIONS, PAYMENTS, SCALES, USERS, EntityStore

logger = logging.getLogger("medly.dashboard")

ACTIVE_SCALE_STATUSES = ("publicada", "em_andamento")
STAFFABLE_STATUSES = ("publicada", "em_andamento", "concluida")
TREND_MONTHS = 6


def _month_keys(reference, months: int) -> list[str]:
    keys = []
    year, month = reference.year, reference.month
    for _ in range(months):
        keys.append(f"{year:04d}-{month:02d}")
        month -= 1
        if month == 0:
            year, month = year - 1, 12
    return list(reversed(keys))


def _scoped(store: EntityStore, actor: dict, scope_all: bool) -> dict:
    users = store.get_all(USERS)
    scales = store.get_all(SCALES)
    payments = store.get_all(PAYMENTS)
    documents = store.get_all(DOCUMENTS)
    if scope_all:
        return {"users": users, "scales": scales, "payments": payments, "documents": documents}
    actor_id = actor.get("id")
    return {
        "users": [user for user in users if actor_id in (user["id"], user.get("manager_id"))],
        "scales": [scale for scale in scales if scale.get("assigned_doctor_id") == actor_id],
        "payments": [payment for payment in payments if payment.get("doctor_id") == actor_id],
        "documents": [document for document in documents if document.get("user_id") == actor_id],
    }


def _cards(profile, data: dict, now=None) -> dict:
    current = today(now)
    cards = {}
    if can_see_card(profile, "total_users"):
        cards["total_users"] = {
            "value": len(data["users"]),
            "active_doctors": sum(
                1 for user in data["users"] if user.get("role") == "medico" and user.get("status") == "ativo"
            ),
        }
    if can_see_card(profile, "active_scales"):
        active = [scale for scale in data["scales"] if scale.get("status") in ACTIVE_SCALE_STATUSES]
        cards["active_scales"] = {
            "value": len(active),
            "this_week": sum(
                1 for scale in active if current <= parse_date(scale["date"]) <= current + timedelta(days=7)
            ),
        }
    if can_see_card(profile, "pending_payments"):
        open_payments = [p for p in data["payments"] if p.get("status") in ("pendente", "atrasado")]
        cards["pending_payments"] = {
            "value": len(open_payments),
            "overdue": sum(1 for p in open_payments if p.get("status") == "atrasado"),
            "amount": round(sum(float(p.get("amount") or 0) for p in open_payments), 2),
            "pending_documents": sum(1 for d in data["documents"] if d.get("status") == "pendente"),
        }
    if can_see_card(profile, "occupancy_rate"):
        staffable = [scale for scale in data["scales"] if scale.get("status") in STAFFABLE_STATUSES]
        filled = sum(1 for scale in staffable if scale.get("assigned_doctor_id"))
        cards["occupancy_rate"] = {
            "value": round(filled * 100 / len(staffable), 1) if staffable else 0.0,
            "filled": filled,
            "total": len(staffable),
        }
    return cards


def _charts(store: EntityStore, profile, data: dict, scope_all: bool, now=None) -> dict:
    charts = {}
    if can_see_chart(profile, "users_by_role"):
        counts = Counter(user.get("role") for user in data["users"])
        charts["users_by_role"] = [
            {"role": role, "count": counts.get(role, 0)} for role in ("medico", "escalista", "gestor", "admin")
        ]
    if can_see_chart(profile, "scales_trend"):
        months = _month_keys(today(now), TREND_MONTHS)
        counts = Counter(scale["date"][:7] for scale in data["scales"] if scale.get("status") != "cancelada")
        charts["scales_trend"] = [{"month": month, "count": counts.get(month, 0)} for month in months]
    if can_see_chart(profile, "location_ratings"):
        location_ids = {scale.get("location_id") for scale in data["scales"]}
        charts["location_ratings"] = [
            {"location_id": location["id"], "name": location["name"], "rating": location["average_rating"]}
            for location in store.get_all(LOCATIONS)
            if location.get("average_rating") is not None and (scope_all or location["id"] in location_ids)
        ]
    return charts


def dashboard_data(store: EntityStore, actor: dict, now=None) -> Result:
    profile = actor_permissions(store, actor)
    if not can_view_dashboard(profile):
        return denied()
    refresh_overdue_payments(store, now)
    scope_all = dashboard_scope_is_all(profile)
    data = _scoped(store, actor, scope_all)
    payload = {
        "scope": "all" if scope_all else "own",
        "cards": _cards(profile, data, now),
        "charts": _charts(store, profile, data, scope_all, now),
    }
    if scope_all:
        payload["recent_activity"] = list_audit_logs(store, limit=5)
    return ok(payload)
