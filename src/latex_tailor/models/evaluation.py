"""Pydantic models for Evaluate step output."""

from __future__ import annotations

import math

from pydantic import BaseModel, Field, field_validator

EXCELLENT_SCORE = 90
GOOD_SCORE = 75


class Evaluation(BaseModel):
    score: int = Field(ge=0, le=100)
    overall_assessment: str = Field(alias="overallAssessment")
    strengths: list[str] = []
    improvements: list[str] = []
    missing_elements: list[str] = Field(default=[], alias="missingElements")

    model_config = {"populate_by_name": True}

    @field_validator("score", mode="before")
    @classmethod
    def _round_fractional_score(cls, value):
        # half-up, so 87.5 scores 88
        if isinstance(value, float) and math.isfinite(value):
            return math.floor(value + 0.5)
        return value

    @property
    def band(self) -> str:
        """Score band shown next to the score: excellent, good or needs_work."""
        if self.score >= EXCELLENT_SCORE:
            return "excellent"
        if self.score >= GOOD_SCORE:
            return "good"
        return "needs_work"

    def feedback_lines(self) -> str:
        """Render strengths/improvements/missing elements for an optimization prompt."""
        parts = [f"Score: {self.score}/100", f"Assessment: {self.overall_assessment}"]
        for title, items in (
            ("Strengths to preserve", self.strengths),
            ("Improvements to make", self.improvements),
            ("Missing elements to add", self.missing_elements),
        ):
            parts.append(f"\n{title}:")
            if items:
                parts.extend(f"  - {item}" for item in items)
            else:
                parts.append("  - (none)")
        return "\n".join(parts)
