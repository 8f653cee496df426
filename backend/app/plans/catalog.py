"""Static catalog definitions for purchasable plans."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Mapping

DEFAULT_PLAN_NAME = "LexGO 30 day open"
MONTHLY_PREMIUM_PREPAID = "monthly_premium_prepaid"
MONTHLY_WEB = "monthly_web"


class UnknownPlanError(KeyError):
    """Raised when a plan identifier does not resolve to a catalog entry."""


@dataclass(frozen=True)
class Plan:
    """Describes a one-off prepaid plan and the entitlement it buys."""

    plan_id: str
    name: str
    description: str
    price: int
    subscription_days: int


PLAN_CATALOG: Dict[str, Plan] = {
    MONTHLY_PREMIUM_PREPAID: Plan(
        plan_id=MONTHLY_PREMIUM_PREPAID,
        name=DEFAULT_PLAN_NAME,
        description="Teljes hozzáférés minden funkcióhoz",
        price=4350,
        subscription_days=30,
    ),
}

# Legacy identifiers stay accepted; stored payment rows may still carry them.
PLAN_ALIASES: Dict[str, str] = {
    MONTHLY_WEB: MONTHLY_PREMIUM_PREPAID,
    MONTHLY_PREMIUM_PREPAID: MONTHLY_PREMIUM_PREPAID,
}


def validate_catalog(catalog: Mapping[str, Plan], aliases: Mapping[str, str]) -> None:
    """Ensure every alias targets a canonical plan and canonical ids map to themselves."""

    for alias, target in aliases.items():
        if target not in catalog:
            raise ValueError(f"Plan alias {alias!r} points to unknown plan {target!r}")
    for plan_id, plan in catalog.items():
        if plan.plan_id != plan_id:
            raise ValueError(f"Plan {plan_id!r} is registered under the wrong key")
        if aliases.get(plan_id, plan_id) != plan_id:
            raise ValueError(f"Canonical plan {plan_id!r} must map to itself")


def canonical_plan_id(raw_plan_id: str) -> str:
    return PLAN_ALIASES.get(raw_plan_id, raw_plan_id)


def resolve_plan(raw_plan_id: str) -> Plan:
    """Return the canonical plan for ``raw_plan_id``, raising if unsupported."""

    canonical = canonical_plan_id(raw_plan_id)
    try:
        return PLAN_CATALOG[canonical]
    except KeyError as exc:
        raise UnknownPlanError(f"Unknown plan: {raw_plan_id}") from exc


validate_catalog(PLAN_CATALOG, PLAN_ALIASES)
