"""Optimize step: revise a tailored resume using the previous round's evaluation."""

from __future__ import annotations

import logging

from latex_tailor.clients.gateway import ProviderGateway
from latex_tailor.errors import ProviderError, ProviderFailure
from latex_tailor.models.evaluation import Evaluation
from latex_tailor.utils.response_parser import extract_latex

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """\
You are an expert resume writer improving a LaTeX resume that was already tailored to a job description.
A reviewer scored the current version and listed what works and what is missing.

Rules:
1. Address every listed improvement and missing element that the candidate's existing facts can support.
2. Preserve the listed strengths; do not rewrite sections that already work.
3. Never invent experience, employers, dates, degrees or metrics to close a gap.
4. Keep the document compilable and the preamble unchanged.

Respond with the complete revised LaTeX document only, from \\documentclass to \\end{document}. No commentary."""


class ResumeOptimizer:
    def __init__(
        self,
        gateway: ProviderGateway,
        model: str = "claude-sonnet-4-5-20250929",
        temperature: float = 0.3,
        max_tokens: int = 8192,
    ):
        self.gateway = gateway
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens

    async def optimize(
        self,
        document: str,
        job_description: str,
        previous_evaluation: Evaluation,
    ) -> str:
        """Revise ``document`` guided by the feedback in ``previous_evaluation``."""
        logger.info(
            "Optimizing resume (previous score %d, %d improvements, %d missing)",
            previous_evaluation.score,
            len(previous_evaluation.improvements),
            len(previous_evaluation.missing_elements),
        )
        prompt = f"""Revise the LaTeX resume below using the reviewer's feedback.

## Job description
{job_description}

## Reviewer feedback on the current version
{previous_evaluation.feedback_lines()}

## Current resume (LaTeX)
{document}

Return the full revised LaTeX document."""

        response = await self.gateway.invoke(
            prompt,
            system=SYSTEM_PROMPT,
            model=self.model,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
        )
        revised = extract_latex(response.text)
        if not revised:
            raise ProviderError(ProviderFailure.FATAL, "Provider returned an empty document")
        return revised
