"""Admission control for the billable Tailor step."""

from __future__ import annotations

import logging
from collections.abc import Iterable

from latex_tailor.billing.account_store import AccountStore
from latex_tailor.models.admission import AdmissionDecision, TopUpPlan
from latex_tailor.models.caller import Caller, CallerRole

logger = logging.getLogger(__name__)


class AdmissionController:
    """Gate a Tailor step on prepaid credit and debit it once it succeeds."""

    def __init__(
        self,
        store: AccountStore,
        paying_roles: Iterable[CallerRole | str] = (CallerRole.CLIENT,),
        plans: list[TopUpPlan] | None = None,
    ):
        self.store = store
        self.paying_roles = frozenset(CallerRole(r) for r in paying_roles)
        self.plans = list(plans or [])

    def is_paying(self, role: CallerRole | str) -> bool:
        return CallerRole(role) in self.paying_roles

    def authorize(self, role: CallerRole | str, balance: int | None) -> AdmissionDecision:
        """Decide from role and balance alone. Denies only paying roles at or below zero."""
        if not self.is_paying(role):
            return AdmissionDecision.allow()
        balance = balance or 0
        if balance <= 0:
            return AdmissionDecision.deny(
                reason="No tailoring credits left. Purchase a plan to continue.",
                balance=max(balance, 0),
                plans=self.plans,
            )
        return AdmissionDecision.allow(balance=balance)

    def check(self, caller: Caller) -> AdmissionDecision:
        """Read the caller's balance and authorize. Unknown accounts count as zero."""
        balance = self.store.get_balance(caller.account_id) if self.is_paying(caller.role) else None
        decision = self.authorize(caller.role, balance)
        if decision.allowed:
            logger.info("Admission allowed for %s (%s)", caller.account_id, caller.role.value)
        else:
            logger.warning(
                "Admission denied for %s: balance %s", caller.account_id, decision.balance
            )
        return decision

    def debit(self, caller: Caller, debit_key: str) -> int | None:
        """Charge one credit for a successful Tailor step. Non-paying roles are never charged."""
        if not self.is_paying(caller.role):
            return None
        return self.store.debit(caller.account_id, debit_key)

    def plans_payload(self) -> list[dict]:
        return [p.model_dump() for p in self.plans]
