"""Session aggregate and the pipeline's state machine."""

from __future__ import annotations

import asyncio
import uuid
from dataclasses import dataclass, field
from enum import Enum

from latex_tailor.clients.gateway import ProviderGateway
from latex_tailor.errors import InvalidTransition
from latex_tailor.models.caller import Caller, ProviderCredentials
from latex_tailor.pipeline.ledger import IterationLedger


class SessionState(str, Enum):
    IDLE = "idle"
    TAILORING = "tailoring"
    EVALUATING = "evaluating"
    COMPLETE = "complete"
    OPTIMIZING = "optimizing"
    TERMINATED = "terminated"


class Event(str, Enum):
    TAILOR = "tailor"
    OPTIMIZE = "optimize"
    DOCUMENT_READY = "document_ready"
    EVALUATION_READY = "evaluation_ready"
    TAILOR_FAILED = "tailor_failed"
    OPTIMIZE_FAILED = "optimize_failed"
    DENIED = "denied"
    MISSING_BASE = "missing_base"
    CAP_REACHED = "cap_reached"
    STOP = "stop"


class TerminationReason(str, Enum):
    DENIED = "denied"
    MISSING_BASE_DOCUMENT = "missing_base_document"
    CAP_REACHED = "cap_reached"
    STOPPED = "stopped"


_S = SessionState

TRANSITIONS: dict[tuple[SessionState, Event], SessionState] = {
    (_S.IDLE, Event.TAILOR): _S.TAILORING,
    (_S.IDLE, Event.DENIED): _S.TERMINATED,
    (_S.IDLE, Event.MISSING_BASE): _S.TERMINATED,
    (_S.TAILORING, Event.DOCUMENT_READY): _S.EVALUATING,
    (_S.TAILORING, Event.TAILOR_FAILED): _S.IDLE,
    (_S.EVALUATING, Event.EVALUATION_READY): _S.COMPLETE,
    (_S.EVALUATING, Event.TAILOR_FAILED): _S.IDLE,
    (_S.EVALUATING, Event.OPTIMIZE_FAILED): _S.COMPLETE,
    (_S.COMPLETE, Event.OPTIMIZE): _S.OPTIMIZING,
    (_S.COMPLETE, Event.CAP_REACHED): _S.TERMINATED,
    (_S.OPTIMIZING, Event.DOCUMENT_READY): _S.EVALUATING,
    (_S.OPTIMIZING, Event.OPTIMIZE_FAILED): _S.COMPLETE,
}

TERMINATION_BY_EVENT: dict[Event, TerminationReason] = {
    Event.DENIED: TerminationReason.DENIED,
    Event.MISSING_BASE: TerminationReason.MISSING_BASE_DOCUMENT,
    Event.CAP_REACHED: TerminationReason.CAP_REACHED,
    Event.STOP: TerminationReason.STOPPED,
}


def transition(state: SessionState, event: Event) -> SessionState:
    """Next state for ``event`` in ``state``. Raises InvalidTransition if illegal."""
    if event is Event.STOP and state is not SessionState.TERMINATED:
        return SessionState.TERMINATED
    try:
        return TRANSITIONS[(state, event)]
    except KeyError:
        raise InvalidTransition(state.value, event.value) from None


@dataclass
class Session:
    """One caller's tailoring run against one job description."""

    caller: Caller
    job_description: str
    credentials: ProviderCredentials
    gateway: ProviderGateway = field(repr=False)
    ledger: IterationLedger = field(default_factory=IterationLedger)
    session_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    state: SessionState = SessionState.IDLE
    termination: TerminationReason | None = None
    billed: bool = False
    lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)

    @property
    def debit_key(self) -> str:
        return f"{self.session_id}:tailor"

    @property
    def is_terminated(self) -> bool:
        return self.state is SessionState.TERMINATED

    def apply(self, event: Event) -> SessionState:
        """Advance the state machine and record why a session terminated."""
        self.state = transition(self.state, event)
        if self.state is SessionState.TERMINATED and self.termination is None:
            self.termination = TERMINATION_BY_EVENT.get(event)
        return self.state
