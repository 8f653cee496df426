"""Plan catalog for prepaid web purchases."""

from .catalog import (
    PLAN_ALIASES,
    PLAN_CATALOG,
    Plan,
    UnknownPlanError,
    canonical_plan_id,
    resolve_plan,
    validate_catalog,
)

__all__ = [
    "PLAN_ALIASES",
    "PLAN_CATALOG",
    "Plan",
    "UnknownPlanError",
    "canonical_plan_id",
    "resolve_plan",
    "validate_catalog",
]
