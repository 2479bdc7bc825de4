"""
Deployment plans

Importing this package registers every plan with the registry.
"""

from .registry import get_available_choices, get_plan, list_plans, register_plan
from .context import PlanContext, PlanOptions
from . import ft, nft  # noqa: F401  (registers plans)

__all__ = [
    "PlanContext",
    "PlanOptions",
    "get_available_choices",
    "get_plan",
    "list_plans",
    "register_plan",
]
