"""Application configuration loaded from config.yaml."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

import yaml

from latex_tailor.models.admission import TopUpPlan

MAX_ITERATIONS = 10

DEFAULT_PLANS: tuple[dict, ...] = (
    {"plan_id": "starter_5", "label": "Starter 5", "credits": 5, "price": 9.0},
    {"plan_id": "pro_20", "label": "Pro 20", "credits": 20, "price": 29.0},
    {"plan_id": "elite_50", "label": "Elite 50", "credits": 50, "price": 59.0},
)


@dataclass(frozen=True)
class LLMConfig:
    model: str = "claude-sonnet-4-5-20250929"
    eval_model: str = "claude-haiku-4-5-20251001"
    timeout: int = 60
    max_tokens: int = 8192
    writer_temperature: float = 0.3

    def __post_init__(self):
        if self.timeout < 1:
            raise ValueError(f"timeout must be >= 1, got {self.timeout}")
        if self.max_tokens < 1:
            raise ValueError(f"max_tokens must be >= 1, got {self.max_tokens}")


@dataclass(frozen=True)
class GatewayConfig:
    max_attempts: int = 3
    backoff_multiplier: float = 2.0  # delay after attempt n = multiplier * 2^(n-1)
    backoff_max: float = 60.0
    jitter: float = 0.0

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {self.max_attempts}")
        if self.jitter < 0:
            raise ValueError(f"jitter must be >= 0, got {self.jitter}")


@dataclass(frozen=True)
class PipelineConfig:
    max_iterations: int = 10
    target_score: int = 90  # informational only, never stops the loop

    def __post_init__(self):
        if not 1 <= self.max_iterations <= MAX_ITERATIONS:
            raise ValueError(
                f"max_iterations must be between 1 and {MAX_ITERATIONS}, got {self.max_iterations}"
            )
        if not 0 <= self.target_score <= 100:
            raise ValueError(f"target_score must be between 0 and 100, got {self.target_score}")


@dataclass(frozen=True)
class BillingConfig:
    paying_roles: tuple[str, ...] = ("CLIENT",)
    plans: tuple[dict, ...] = DEFAULT_PLANS
    db_path: str = "~/.latex-tailor/accounts.db"

    @property
    def resolved_db_path(self) -> Path:
        return Path(self.db_path).expanduser()

    @property
    def top_up_plans(self) -> list[TopUpPlan]:
        return [TopUpPlan(**p) for p in self.plans]


@dataclass(frozen=True)
class AppConfig:
    llm: LLMConfig = field(default_factory=LLMConfig)
    gateway: GatewayConfig = field(default_factory=GatewayConfig)
    pipeline: PipelineConfig = field(default_factory=PipelineConfig)
    billing: BillingConfig = field(default_factory=BillingConfig)


def _billing_from_raw(raw: dict) -> BillingConfig:
    raw = dict(raw)
    if "paying_roles" in raw:
        raw["paying_roles"] = tuple(r.upper() for r in raw["paying_roles"])
    if "plans" in raw:
        raw["plans"] = tuple(raw["plans"])
    return BillingConfig(**raw)


def load_config(path: str | Path | None = None) -> AppConfig:
    """Load config from YAML file, falling back to defaults."""
    if path is None:
        candidates = [
            Path.cwd() / "config.yaml",
            Path(__file__).resolve().parent.parent.parent / "config.yaml",
        ]
        for c in candidates:
            if c.exists():
                path = c
                break

    raw: dict = {}
    if path is not None:
        p = Path(path)
        if p.exists():
            raw = yaml.safe_load(p.read_text()) or {}

    return AppConfig(
        llm=LLMConfig(**raw.get("llm", {})),
        gateway=GatewayConfig(**raw.get("gateway", {})),
        pipeline=PipelineConfig(**raw.get("pipeline", {})),
        billing=_billing_from_raw(raw.get("billing", {})),
    )
