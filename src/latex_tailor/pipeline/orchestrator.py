"""Pipeline orchestrator - drives Tailor, Evaluate and Optimize for each session."""

from __future__ import annotations

import logging
from collections.abc import Callable

from latex_tailor.billing.account_store import AccountStore
from latex_tailor.billing.admission import AdmissionController
from latex_tailor.clients.gateway import ProviderGateway
from latex_tailor.config import MAX_ITERATIONS
from latex_tailor.errors import (
    AdmissionDenied,
    IterationCapExceeded,
    MissingBaseDocument,
    SessionNotFound,
)
from latex_tailor.models.caller import Caller, ProviderCredentials
from latex_tailor.models.evaluation import Evaluation
from latex_tailor.models.round import Round
from latex_tailor.pipeline.ledger import IterationLedger
from latex_tailor.pipeline.resume_evaluator import ResumeEvaluator
from latex_tailor.pipeline.resume_optimizer import ResumeOptimizer
from latex_tailor.pipeline.resume_tailor import ResumeTailor
from latex_tailor.pipeline.session import Event, Session, SessionState

logger = logging.getLogger(__name__)

GatewayFactory = Callable[[ProviderCredentials], ProviderGateway]


class PipelineOrchestrator:
    """Runs the Tailor -> Evaluate -> (Optimize -> Evaluate)* loop.

    Only the first Tailor step is billable. Steps within a session are
    serialized by the session lock. The orchestrator never retries a step on
    its own. A failed step, whatever the exception (cancellation included),
    leaves the session in its previous resting state with no round recorded.
    """

    def __init__(
        self,
        gateway_factory: GatewayFactory,
        admission: AdmissionController,
        store: AccountStore,
        *,
        model: str = "claude-sonnet-4-5-20250929",
        eval_model: str = "claude-haiku-4-5-20251001",
        writer_temperature: float = 0.3,
        max_tokens: int = 8192,
        max_iterations: int = 10,
        target_score: int = 90,
        on_phase: Callable[[str, str], None] | None = None,
    ):
        if not 1 <= max_iterations <= MAX_ITERATIONS:
            raise ValueError(
                f"max_iterations must be between 1 and {MAX_ITERATIONS}, got {max_iterations}"
            )
        self.gateway_factory = gateway_factory
        self.admission = admission
        self.store = store
        self.model = model
        self.eval_model = eval_model
        self.writer_temperature = writer_temperature
        self.max_tokens = max_tokens
        self.max_iterations = max_iterations
        self.target_score = target_score
        self.on_phase = on_phase
        self._sessions: dict[str, Session] = {}

    def _notify(self, phase: str, detail: str = "") -> None:
        if self.on_phase:
            self.on_phase(phase, detail)

    def _writer_model(self, session: Session) -> str:
        return session.credentials.model or self.model

    # --- session registry ---

    def start_session(
        self,
        caller: Caller,
        job_description: str,
        credentials: ProviderCredentials,
    ) -> Session:
        """Create an idle session bound to explicit provider credentials."""
        if not job_description or not job_description.strip():
            raise ValueError("job_description must not be empty")
        session = Session(
            caller=caller,
            job_description=job_description,
            credentials=credentials,
            gateway=self.gateway_factory(credentials),
            ledger=IterationLedger(max_rounds=self.max_iterations),
        )
        self._sessions[session.session_id] = session
        logger.info("Started session %s for %s", session.session_id, caller.account_id)
        return session

    def get_session(self, session_id: str) -> Session:
        try:
            return self._sessions[session_id]
        except KeyError:
            raise SessionNotFound(session_id) from None

    def stop(self, session_id: str) -> Session:
        """End a session. The caller keeps the returned Session and its ledger."""
        session = self.get_session(session_id)
        if not session.is_terminated:
            session.apply(Event.STOP)
        del self._sessions[session_id]
        logger.info(
            "Session %s ended (%s) after %d round(s)",
            session_id,
            session.termination.value if session.termination else "stopped",
            len(session.ledger),
        )
        return session

    # --- steps ---

    async def tailor(self, session_id: str) -> Round:
        """Billable first round: admission, Tailor, debit, then Evaluate."""
        session = self.get_session(session_id)
        async with session.lock:
            if session.state is not SessionState.IDLE:
                session.apply(Event.TAILOR)  # raises InvalidTransition

            if not session.billed:
                decision = self.admission.check(session.caller)
                if not decision.allowed:
                    session.apply(Event.DENIED)
                    raise AdmissionDenied(decision.balance or 0, decision.plans, decision.reason)

            base_document = self.store.get_base_document(session.caller.account_id)
            if base_document is None:
                session.apply(Event.MISSING_BASE)
                raise MissingBaseDocument(session.caller.account_id)

            session.apply(Event.TAILOR)
            self._notify("tailor", "Tailoring resume to job description")
            try:
                tailor = ResumeTailor(
                    session.gateway,
                    model=self._writer_model(session),
                    temperature=self.writer_temperature,
                    max_tokens=self.max_tokens,
                )
                document = await tailor.tailor(base_document, session.job_description)

                if not session.billed:
                    balance = self.admission.debit(session.caller, session.debit_key)
                    session.billed = True
                    if balance is not None:
                        logger.info("Session %s billed; balance %d", session_id, balance)

                session.apply(Event.DOCUMENT_READY)
                evaluation = await self._evaluate(session, document)
            except BaseException:
                session.apply(Event.TAILOR_FAILED)
                raise

            return self._record(session, document, evaluation, step="tailor")

    async def optimize(self, session_id: str) -> Round:
        """Feedback-directed revision of the current round, followed by Evaluate."""
        session = self.get_session(session_id)
        async with session.lock:
            if session.ledger.next_round_number > self.max_iterations:
                if session.state is SessionState.COMPLETE:
                    session.apply(Event.CAP_REACHED)
                raise IterationCapExceeded(self.max_iterations)

            session.apply(Event.OPTIMIZE)
            current = session.ledger.current
            self._notify(
                "optimize",
                f"Optimizing round {current.round_number} (score {current.score})",
            )
            try:
                optimizer = ResumeOptimizer(
                    session.gateway,
                    model=self._writer_model(session),
                    temperature=self.writer_temperature,
                    max_tokens=self.max_tokens,
                )
                document = await optimizer.optimize(
                    current.document, session.job_description, current.evaluation
                )
                session.apply(Event.DOCUMENT_READY)
                evaluation = await self._evaluate(session, document)
            except BaseException:
                session.apply(Event.OPTIMIZE_FAILED)
                raise

            return self._record(session, document, evaluation, step="optimize")

    async def evaluate(self, session_id: str, document: str) -> Evaluation:
        """Standalone, non-billable scoring of ``document``. Records no round."""
        session = self.get_session(session_id)
        async with session.lock:
            return await self._evaluate(session, document)

    def restore(self, session_id: str, round_number: int) -> Round:
        """Make an earlier round current; later rounds stay in the ledger."""
        session = self.get_session(session_id)
        return session.ledger.restore(round_number)

    def target_achieved(self, round_: Round) -> bool:
        """Informational hint only; reaching the target never ends the session."""
        return round_.score >= self.target_score

    # --- internals ---

    async def _evaluate(self, session: Session, document: str) -> Evaluation:
        self._notify("evaluate", "Scoring resume against job description")
        evaluator = ResumeEvaluator(
            session.gateway,
            model=self.eval_model,
        )
        return await evaluator.evaluate(document, session.job_description)

    def _record(self, session: Session, document: str, evaluation: Evaluation, step: str) -> Round:
        round_ = Round(
            round_number=session.ledger.next_round_number,
            document=document,
            evaluation=evaluation,
            step=step,
        )
        session.ledger.append(round_)
        session.apply(Event.EVALUATION_READY)
        hint = " - target achieved" if self.target_achieved(round_) else ""
        self._notify("done", f"Round {round_.round_number}: score {round_.score}{hint}")
        return round_
