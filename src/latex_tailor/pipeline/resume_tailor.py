"""Tailor step: adapt the base LaTeX resume to one job description."""

from __future__ import annotations

import logging

from latex_tailor.clients.gateway import ProviderGateway
from latex_tailor.errors import ProviderError, ProviderFailure
from latex_tailor.utils.response_parser import extract_latex

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """\
You are an expert resume writer who edits LaTeX resumes for specific job descriptions.

Rules:
1. Use only facts present in the candidate's base resume. Never invent employers, titles, dates, degrees or metrics.
2. Reorder, rephrase and emphasize existing experience so it matches the job's requirements and keywords.
3. Keep the document compilable: preserve the preamble, custom commands and environments of the base resume.
4. Escape LaTeX special characters (%, &, $, #, _) in any text you write.
5. Keep the resume to the same page count as the base resume.

Respond with the complete LaTeX document only, from \\documentclass to \\end{document}. No commentary."""


class ResumeTailor:
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

    async def tailor(self, base_document: str, job_description: str) -> str:
        """Produce a first tailored LaTeX document from the base resume."""
        logger.info("Tailoring base resume to job description...")
        prompt = f"""Tailor the following LaTeX resume to the job description.

## Job description
{job_description}

## Base resume (LaTeX)
{base_document}

Return the full tailored LaTeX document."""

        response = await self.gateway.invoke(
            prompt,
            system=SYSTEM_PROMPT,
            model=self.model,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
        )
        document = extract_latex(response.text)
        if not document:
            raise ProviderError(ProviderFailure.FATAL, "Provider returned an empty document")
        return document
