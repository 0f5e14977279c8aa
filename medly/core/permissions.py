"""Role profile permissions.

Every profile resolves to a fully populated :class:`ProfilePermissions`:
missing modules, a missing dashboard block or missing card/chart flags all
resolve to ``False``. Legacy camelCase keys (``viewAll``, ``totalUsers``...)
are accepted on input.
"""
from typing import Any, Iterable, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

MODULES = ("users", "scales", "locations", "payments", "documents", "reports", "settings")
ACTIONS = ("view", "create", "edit", "delete", "view_all")
DASHBOARD_CARDS = ("total_users", "active_scales", "pending_payments", "occupancy_rate")
DASHBOARD_CHARTS = ("users_by_role", "scales_trend", "location_ratings")

HARD_DELETE_ROLES = {"admin"}


def _without_nones(data: Any) -> Any:
    if isinstance(data, dict):
        return {key: value for key, value in data.items() if value is not None}
    if data is None:
        return {}
    return data


class _Flags(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    @model_validator(mode="before")
    @classmethod
    def _drop_nones(cls, data: Any) -> Any:
        return _without_nones(data)


class Permission(_Flags):
    view: bool = False
    create: bool = False
    edit: bool = False
    delete: bool = False
    view_all: bool = Field(default=False, alias="viewAll")


class DashboardCards(_Flags):
    total_users: bool = Field(default=False, alias="totalUsers")
    active_scales: bool = Field(default=False, alias="activeScales")
    pending_payments: bool = Field(default=False, alias="pendingPayments")
    occupancy_rate: bool = Field(default=False, alias="occupancyRate")


class DashboardCharts(_Flags):
    users_by_role: bool = Field(default=False, alias="usersByRole")
    scales_trend: bool = Field(default=False, alias="scalesTrend")
    location_ratings: bool = Field(default=False, alias="locationRatings")


class DashboardPermission(_Flags):
    view: bool = False
    view_all: bool = Field(default=False, alias="viewAll")
    cards: DashboardCards = Field(default_factory=DashboardCards)
    charts: DashboardCharts = Field(default_factory=DashboardCharts)


class ProfilePermissions(_Flags):
    dashboard: DashboardPermission = Field(default_factory=DashboardPermission)
    users: Permission = Field(default_factory=Permission)
    scales: Permission = Field(default_factory=Permission)
    locations: Permission = Field(default_factory=Permission)
    payments: Permission = Field(default_factory=Permission)
    documents: Permission = Field(default_factory=Permission)
    reports: Permission = Field(default_factory=Permission)
    settings: Permission = Field(default_factory=Permission)


def resolve_permissions(raw: Any) -> ProfilePermissions:
    # Accepts a bare permissions structure or a whole role profile.
    if isinstance(raw, dict) and "permissions" in raw:
        raw = raw["permissions"]
    elif hasattr(raw, "permissions"):
        raw = raw.permissions
    if isinstance(raw, ProfilePermissions):
        return raw
    return ProfilePermissions.model_validate(_without_nones(raw))


def full_access() -> ProfilePermissions:
    grant = {action: True for action in ACTIONS}
    return ProfilePermissions(
        dashboard=DashboardPermission(
            view=True,
            view_all=True,
            cards=DashboardCards(**{card: True for card in DASHBOARD_CARDS}),
            charts=DashboardCharts(**{chart: True for chart in DASHBOARD_CHARTS}),
        ),
        **{module: Permission(**grant) for module in MODULES},
    )


def module_permission(profile: Any, module: str) -> Permission:
    resolved = resolve_permissions(profile)
    if module not in MODULES:
        return Permission()
    return getattr(resolved, module)


def can_perform(profile: Any, module: str, action: str) -> bool:
    if action == "viewAll":
        action = "view_all"
    if action not in ACTIONS:
        return False
    return bool(getattr(module_permission(profile, module), action))


def scope_is_all(profile: Any, module: str) -> bool:
    return can_perform(profile, module, "view_all")


def can_view_dashboard(profile: Any) -> bool:
    return resolve_permissions(profile).dashboard.view


def dashboard_scope_is_all(profile: Any) -> bool:
    return resolve_permissions(profile).dashboard.view_all


def can_see_card(profile: Any, card: str) -> bool:
    dashboard = resolve_permissions(profile).dashboard
    if not dashboard.view or card not in DASHBOARD_CARDS:
        return False
    return bool(getattr(dashboard.cards, card))


def can_see_chart(profile: Any, chart: str) -> bool:
    dashboard = resolve_permissions(profile).dashboard
    if not dashboard.view or chart not in DASHBOARD_CHARTS:
        return False
    return bool(getattr(dashboard.charts, chart))


def count_enabled(profile: Any) -> int:
    resolved = resolve_permissions(profile)
    total = 0
    for module in MODULES:
        perm = getattr(resolved, module)
        total += sum(1 for action in ACTIONS if getattr(perm, action))
    dashboard = resolved.dashboard
    total += int(dashboard.view) + int(dashboard.view_all)
    total += sum(1 for card in DASHBOARD_CARDS if getattr(dashboard.cards, card))
    total += sum(1 for chart in DASHBOARD_CHARTS if getattr(dashboard.charts, chart))
    return total


def open_for_edit(profile: Any) -> ProfilePermissions:
    return resolve_permissions(profile).model_copy(deep=True)


def apply_scope(
    profile: Any,
    module: str,
    records: Iterable[dict],
    actor_id: Optional[str],
    owner_fields: tuple[str, ...],
) -> list[dict]:
    records = list(records)
    if scope_is_all(profile, module):
        return records
    if not actor_id:
        return []
    return [
        record
        for record in records
        if any(record.get(field) == actor_id for field in owner_fields)
    ]
