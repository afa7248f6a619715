"""Caller identity and per-session provider configuration."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class CallerRole(str, Enum):
    ADMIN = "ADMIN"
    CLIENT = "CLIENT"
    EMPLOYEE = "EMPLOYEE"


@dataclass(frozen=True)
class Caller:
    account_id: str
    role: CallerRole = CallerRole.CLIENT


@dataclass(frozen=True)
class ProviderCredentials:
    """Credentials and model chosen at session start."""

    primary_key: str
    fallback_key: str | None = None
    model: str | None = None  # overrides the configured writer model

    def __repr__(self) -> str:
        return (
            f"ProviderCredentials(primary_key='***', "
            f"fallback_key={'***' if self.fallback_key else None!r}, model={self.model!r})"
        )
