"""Pydantic model for one completed round of a tailoring session."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

from latex_tailor.models.evaluation import Evaluation


class Round(BaseModel):
    round_number: int = Field(ge=1)
    document: str  # full LaTeX snapshot
    evaluation: Evaluation
    step: Literal["tailor", "optimize"] = "tailor"
    timestamp: datetime = Field(default_factory=datetime.now)

    model_config = {"frozen": True}

    @property
    def score(self) -> int:
        return self.evaluation.score
