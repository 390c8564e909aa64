from __future__ import annotations

from collections.abc import Sequence


class PlanError(Exception):
    """Base class for user-recoverable plan errors."""


class ValidationError(PlanError):
    def __init__(self, message: str, *, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field


class OverlapError(PlanError):
    """Candidate dates collide with another active plan of the same customer."""

    def __init__(self, customer_id: int, conflict_ids: Sequence[int]) -> None:
        ids = ", ".join(str(i) for i in conflict_ids)
        super().__init__(
            f"Plan dates overlap with active plan(s) {ids} of customer {customer_id}"
        )
        self.customer_id = customer_id
        self.conflict_ids = list(conflict_ids)
