"""Typed failures surfaced by the tailoring pipeline.

Every error carries a machine-readable ``kind`` plus a human-readable
``detail`` so that a route or CLI layer can render actionable guidance
instead of a stack trace.
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from latex_tailor.models.admission import TopUpPlan


class ProviderFailure(str, Enum):
    """Classification of a failed provider call."""

    FATAL = "fatal"
    QUOTA_EXCEEDED = "quota_exceeded"
    OVERLOADED = "overloaded"

    @property
    def retryable(self) -> bool:
        return self is not ProviderFailure.FATAL


class PipelineError(Exception):
    """Base class for every failure the pipeline reports to its caller."""

    kind = "pipeline_error"

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "detail": self.detail}


class AdmissionDenied(PipelineError):
    """A paying caller has no credit left; carries the purchase path."""

    kind = "admission_denied"

    def __init__(self, balance: int, plans: list[TopUpPlan] | None = None, detail: str | None = None):
        super().__init__(
            detail or f"Insufficient credits (balance: {balance}). Purchase a top-up plan to continue."
        )
        self.balance = balance
        self.plans = list(plans or [])

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["balance"] = self.balance
        data["plans"] = [p.model_dump() for p in self.plans]
        return data


class ProviderError(PipelineError):
    """The text-generation provider could not produce a response."""

    kind = "provider_error"

    def __init__(self, failure: ProviderFailure, detail: str, attempts: int = 1):
        super().__init__(detail)
        self.failure = failure
        self.attempts = attempts

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["failure"] = self.failure.value
        data["attempts"] = self.attempts
        return data


class MalformedEvaluationResponse(PipelineError):
    """The evaluation response could not be parsed into a scored result."""

    kind = "malformed_evaluation"

    def __init__(self, detail: str, raw_text: str = ""):
        snippet = raw_text[:200] + "..." if len(raw_text) > 200 else raw_text
        super().__init__(f"{detail}: {snippet}" if snippet else detail)
        self.raw_text = raw_text


class IterationCapExceeded(PipelineError):
    kind = "iteration_cap_exceeded"

    def __init__(self, max_iterations: int):
        super().__init__(f"Maximum of {max_iterations} iterations reached for this session")
        self.max_iterations = max_iterations

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["max_iterations"] = self.max_iterations
        return data


class MissingBaseDocument(PipelineError):
    kind = "missing_base_document"

    def __init__(self, account_id: str):
        super().__init__(
            f"No base LaTeX resume is stored for account '{account_id}'. Upload one before tailoring."
        )
        self.account_id = account_id


class SessionNotFound(PipelineError):
    kind = "session_not_found"

    def __init__(self, session_id: str):
        super().__init__(f"Unknown or finished session: {session_id}")
        self.session_id = session_id


class RoundNotFound(PipelineError):
    kind = "round_not_found"

    def __init__(self, round_number: int):
        super().__init__(f"Round {round_number} does not exist in this session")
        self.round_number = round_number


class InvalidTransition(PipelineError):
    kind = "invalid_transition"

    def __init__(self, state: str, event: str):
        super().__init__(f"Cannot handle '{event}' while session is {state}")
        self.state = state
        self.event = event
