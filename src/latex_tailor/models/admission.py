"""Pydantic models for credit admission decisions."""

from __future__ import annotations

from pydantic import BaseModel, Field


class TopUpPlan(BaseModel):
    plan_id: str
    label: str
    credits: int = Field(gt=0)
    price: float
    currency: str = "USD"


class AdmissionDecision(BaseModel):
    """Outcome of an admission check. A deny is a normal result, not an error."""

    allowed: bool
    reason: str | None = None
    balance: int | None = None
    plans: list[TopUpPlan] = []

    @classmethod
    def allow(cls, balance: int | None = None) -> AdmissionDecision:
        return cls(allowed=True, balance=balance)

    @classmethod
    def deny(cls, reason: str, balance: int, plans: list[TopUpPlan]) -> AdmissionDecision:
        return cls(allowed=False, reason=reason, balance=balance, plans=plans)
