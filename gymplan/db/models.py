from __future__ import annotations

import json
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator


class Tariff(BaseModel):
    id: int
    name: str
    amount: Decimal


class Customer(BaseModel):
    id: int
    first_name: str
    last_name: str = ""
    joined_date: Optional[date] = None
    active: bool = True
    tariff: Optional[Tariff] = None
    # Set when the membership is scheduled to end (cancellation)
    membership_end_date: Optional[date] = None

    @property
    def display_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class FieldConfig(BaseModel):
    field_key: str
    label: str
    type: str = "text"
    is_active: bool = True
    is_deleted: bool = False


class RoutineItem(BaseModel):
    id: Optional[int] = None
    # Identifier used by drafts before the item has a database id
    local_id: Optional[str] = None
    exercise_id: Optional[int] = None
    # Snapshot so the plan still reads correctly if the exercise is renamed or removed
    exercise_name: Optional[str] = None
    notes: str = ""
    series: Optional[str] = None
    reps: Optional[str] = None
    rpe: str = ""
    intensity: str = ""
    custom_fields: dict[str, str] = Field(default_factory=dict)

    @field_validator("custom_fields", mode="before")
    @classmethod
    def _coerce_custom_fields(cls, value: Any) -> dict[str, str]:
        if value is None or value == "":
            return {}
        if isinstance(value, str):
            # Older rows keep the map as a JSON string
            value = json.loads(value)
        return {str(k): "" if v is None else str(v) for k, v in dict(value).items()}

    @field_validator("notes", "rpe", "intensity", mode="before")
    @classmethod
    def _blank_text(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("series", "reps", mode="before")
    @classmethod
    def _stringify(cls, value: Any) -> Any:
        if value is None:
            return None
        return str(value)


class Routine(BaseModel):
    id: Optional[int] = None
    local_id: Optional[str] = None
    name: str
    day_group: str = ""
    items: list[RoutineItem] = Field(default_factory=list)


class Mesocycle(BaseModel):
    id: Optional[int] = None
    customer_id: Optional[int] = None
    name: str
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    days_per_week: Optional[int] = None
    is_template: bool = False
    # False means archived / superseded
    active: bool = True
    drive_link: Optional[str] = None
    notes: str = ""
    routines: list[Routine] = Field(default_factory=list)

    @field_validator("notes", mode="before")
    @classmethod
    def _blank_notes(cls, value: Any) -> Any:
        return "" if value is None else value


class Payment(BaseModel):
    id: int
    customer_id: int
    amount: Decimal
    payment_date: date
    tariff_name: Optional[str] = None


class PlanStatus(str, Enum):
    FUTURE = "future"
    ACTIVE = "active"
    EXPIRED = "expired"
    ARCHIVED = "archived"


class RenewalPriority(str, Enum):
    NONE = "none"
    EXPIRED = "expired"
    URGENT = "urgent"
    GOOD = "good"


class PlanView(BaseModel):
    """A stored plan together with its status as of the day it was read."""

    plan: Mesocycle
    status: PlanStatus


class OverlapResult(BaseModel):
    has_overlap: bool
    conflict_ids: list[int] = Field(default_factory=list)


class RenewalAssessment(BaseModel):
    priority: RenewalPriority
    # Whole days until the plan ends; None when there is no plan or it is open-ended
    days_remaining: Optional[int] = None


class CustomerPriority(BaseModel):
    customer: Customer
    plan_id: Optional[int] = None
    plan_end_date: Optional[date] = None
    priority: RenewalPriority
    days_remaining: Optional[int] = None


class Charge(BaseModel):
    base: Decimal
    charged: Decimal
    is_prorated: bool
    days_charged: int
    from_date: date


class StatementLine(BaseModel):
    required: Decimal
    paid: Decimal
    is_paid: bool
    debt: Decimal


class UnpaidMonth(BaseModel):
    year: int
    month: int
    required: Decimal
    paid: Decimal

    @property
    def outstanding(self) -> Decimal:
        return self.required - self.paid
