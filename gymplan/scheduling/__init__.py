"""
Plan scheduling core.

Pure date logic lives in the submodules (`overlap`, `status`, `templates`,
`priority`, `dates`); `service.PlanService` ties them to a store and a clock.
"""

from .overlap import check_overlap, ranges_overlap
from .priority import classify_renewal, rank_customers
from .status import classify_plan
from .templates import PlanDraft, filter_templates, instantiate

__all__ = [
    "PlanDraft",
    "check_overlap",
    "classify_plan",
    "classify_renewal",
    "filter_templates",
    "instantiate",
    "rank_customers",
    "ranges_overlap",
]
