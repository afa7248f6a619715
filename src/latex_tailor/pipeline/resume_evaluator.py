"""Evaluate step: score a LaTeX resume against a job description."""

from __future__ import annotations

import json
import logging

from pydantic import ValidationError

from latex_tailor.clients.gateway import ProviderGateway
from latex_tailor.errors import MalformedEvaluationResponse
from latex_tailor.models.evaluation import Evaluation
from latex_tailor.utils.response_parser import ResponseParseError

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """\
You are an experienced technical recruiter and ATS specialist. You review a LaTeX resume
against a job description and score how well it fits.

Scoring guidance (0-100):
- Keyword and skill coverage of the job's hard requirements: 40%
- Relevance and impact of the experience bullets (quantified results, ownership): 30%
- Coverage of preferred qualifications and seniority signals: 20%
- Clarity, concision and structure: 10%

Respond ONLY with JSON in exactly this shape:
{
  "score": 0-100,
  "overallAssessment": "two or three sentences",
  "strengths": ["what already matches the job"],
  "improvements": ["concrete changes to make"],
  "missingElements": ["requirements from the job the resume does not show"]
}"""


class ResumeEvaluator:
    def __init__(
        self,
        gateway: ProviderGateway,
        model: str = "claude-haiku-4-5-20251001",
        max_tokens: int = 4096,
    ):
        self.gateway = gateway
        self.model = model
        self.max_tokens = max_tokens

    async def evaluate(self, document: str, job_description: str) -> Evaluation:
        """Score ``document``. Unparseable responses raise MalformedEvaluationResponse."""
        logger.info("Evaluating resume against job description...")
        prompt = f"""Evaluate the following LaTeX resume for this job.

## Job description
{job_description}

## Resume (LaTeX)
{document}

Respond with the JSON object only."""

        try:
            data = await self.gateway.invoke_json(
                prompt,
                system=SYSTEM_PROMPT,
                model=self.model,
                max_tokens=self.max_tokens,
            )
        except ResponseParseError as exc:
            raise MalformedEvaluationResponse(
                "Evaluation response is not a JSON object", exc.text
            ) from exc
        return self.parse(data)

    @staticmethod
    def parse(data: dict) -> Evaluation:
        """Validate a decoded evaluation payload without guessing at missing fields."""
        try:
            return Evaluation.model_validate(data)
        except ValidationError as exc:
            logger.warning("Evaluation response failed validation: %s", exc.errors())
            raise MalformedEvaluationResponse(
                f"Evaluation response is missing or has invalid fields ({exc.error_count()} error(s))",
                json.dumps(data, ensure_ascii=False),
            ) from exc
