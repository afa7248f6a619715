"""Shared test fixtures."""

from __future__ import annotations

import json
from unittest.mock import AsyncMock

import pytest

from latex_tailor.billing.account_store import SQLiteAccountStore
from latex_tailor.billing.admission import AdmissionController
from latex_tailor.clients.gateway import LLMResponse, ProviderGateway
from latex_tailor.models.admission import TopUpPlan
from latex_tailor.models.evaluation import Evaluation
from latex_tailor.pipeline.resume_evaluator import SYSTEM_PROMPT as EVALUATOR_SYSTEM
from latex_tailor.utils.response_parser import ResponseParseError, extract_json


@pytest.fixture
def sample_jd_text() -> str:
    return """Senior Backend Engineer - Payments Platform

Responsibilities:
- Design and operate high-throughput payment APIs
- Own services end to end on Kubernetes

Requirements:
- 5+ years of Python or Go backend development
- PostgreSQL, Redis, Kafka
- Experience with PCI-DSS or other compliance regimes

Nice to have:
- Terraform, AWS
- Open source contributions
"""


@pytest.fixture
def sample_base_latex() -> str:
    return r"""\documentclass[11pt]{article}
\usepackage[margin=0.7in]{geometry}
\begin{document}
\section*{Jane Doe}
jane@example.com
\section*{Experience}
\textbf{Acme Corp} -- Backend Engineer (2019--present)
\begin{itemize}
  \item Built REST APIs in Python serving 2M requests/day
  \item Cut p99 latency by 40\% with Redis caching
\end{itemize}
\section*{Skills}
Python, Go, PostgreSQL, Redis, Docker
\end{document}"""


@pytest.fixture
def sample_evaluation_json() -> dict:
    return {
        "score": 72,
        "overallAssessment": "Solid backend match, light on payments and compliance.",
        "strengths": ["Python API experience", "Quantified latency improvement"],
        "improvements": ["Lead with payments-adjacent work"],
        "missingElements": ["Kafka", "PCI-DSS"],
    }


@pytest.fixture
def sample_evaluation(sample_evaluation_json) -> Evaluation:
    return Evaluation.model_validate(sample_evaluation_json)


@pytest.fixture
def plans() -> list[TopUpPlan]:
    return [
        TopUpPlan(plan_id="starter_5", label="Starter 5", credits=5, price=9.0),
        TopUpPlan(plan_id="pro_20", label="Pro 20", credits=20, price=29.0),
    ]


@pytest.fixture
def store(tmp_path) -> SQLiteAccountStore:
    return SQLiteAccountStore(tmp_path / "accounts.db")


@pytest.fixture
def admission(store, plans) -> AdmissionController:
    return AdmissionController(store, paying_roles=["CLIENT"], plans=plans)


def _make_latex(label: str) -> str:
    return f"\\documentclass{{article}}\n\\begin{{document}}\n{label}\n\\end{{document}}"


def _make_dispatch(evaluations: list[dict | str], documents: list[str] | None = None):
    """Side effect for ProviderGateway.invoke that answers by prompt role.

    Evaluator calls pop from ``evaluations`` (dicts are JSON-encoded, strings
    are returned verbatim); writer calls pop from ``documents``.
    """
    evaluations = list(evaluations)
    documents = list(documents or [])
    counter = {"doc": 0}

    async def _dispatch(prompt, **kwargs):
        if kwargs.get("system") == EVALUATOR_SYSTEM:
            item = evaluations.pop(0)
            text = item if isinstance(item, str) else json.dumps(item)
        else:
            counter["doc"] += 1
            text = documents.pop(0) if documents else _make_latex(f"version {counter['doc']}")
        return LLMResponse(text=text, input_tokens=100, output_tokens=50)

    return _dispatch


@pytest.fixture
def make_dispatch():
    return _make_dispatch


@pytest.fixture
def make_latex():
    return _make_latex


@pytest.fixture
def mock_gateway() -> ProviderGateway:
    """Create a mock provider gateway."""
    gateway = AsyncMock(spec=ProviderGateway)
    gateway.invoke = AsyncMock(
        return_value=LLMResponse(text="{}", input_tokens=100, output_tokens=50)
    )

    async def _invoke_json(prompt, **kwargs):
        response = await gateway.invoke(prompt, **kwargs)
        data = extract_json(response.text)
        if not isinstance(data, dict):
            raise ResponseParseError("Response JSON is not an object", response.text)
        return data

    gateway.invoke_json = AsyncMock(side_effect=_invoke_json)
    return gateway
