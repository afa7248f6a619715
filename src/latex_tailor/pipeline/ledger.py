"""Append-only, in-memory history of the rounds in one tailoring session."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterator

from latex_tailor.config import MAX_ITERATIONS
from latex_tailor.errors import IterationCapExceeded, RoundNotFound
from latex_tailor.models.round import Round

logger = logging.getLogger(__name__)


class IterationLedger:
    """Ordered rounds keyed by round number, with a movable current pointer.

    Rounds are never removed or replaced. ``restore`` only moves the pointer,
    so later rounds stay browsable and the next appended round always gets
    ``len(ledger) + 1``.
    """

    def __init__(self, max_rounds: int = MAX_ITERATIONS):
        if not 1 <= max_rounds <= MAX_ITERATIONS:
            raise ValueError(f"max_rounds must be between 1 and {MAX_ITERATIONS}, got {max_rounds}")
        self.max_rounds = max_rounds
        self._rounds: list[Round] = []
        self._current: int | None = None

    def __len__(self) -> int:
        return len(self._rounds)

    def __iter__(self) -> Iterator[Round]:
        return iter(list(self._rounds))

    @property
    def next_round_number(self) -> int:
        return len(self._rounds) + 1

    @property
    def current_number(self) -> int | None:
        return self._current

    @property
    def current(self) -> Round | None:
        return None if self._current is None else self._rounds[self._current - 1]

    @property
    def latest(self) -> Round | None:
        return self._rounds[-1] if self._rounds else None

    def append(self, round_: Round) -> Round:
        """Add the next round and make it current."""
        if round_.round_number != self.next_round_number:
            raise ValueError(
                f"Expected round {self.next_round_number}, got {round_.round_number}"
            )
        if round_.round_number > self.max_rounds:
            raise IterationCapExceeded(self.max_rounds)
        self._rounds.append(round_)
        self._current = round_.round_number
        logger.info("Recorded round %d (score %d)", round_.round_number, round_.score)
        return round_

    def get(self, round_number: int) -> Round:
        if not 1 <= round_number <= len(self._rounds):
            raise RoundNotFound(round_number)
        return self._rounds[round_number - 1]

    def list(self) -> list[Round]:
        return list(self._rounds)

    def restore(self, round_number: int) -> Round:
        """Point the session back at an earlier round without dropping later ones."""
        round_ = self.get(round_number)
        self._current = round_number
        logger.info("Restored round %d of %d", round_number, len(self._rounds))
        return round_

    def best(self) -> Round | None:
        """Highest-scoring round; the earliest wins a tie."""
        if not self._rounds:
            return None
        return max(self._rounds, key=lambda r: (r.score, -r.round_number))

    def to_json(self) -> str:
        """Serialize rounds so the caller can retain them outside the process."""
        return json.dumps(
            {
                "current": self._current,
                "rounds": [r.model_dump(mode="json", by_alias=True) for r in self._rounds],
            },
            ensure_ascii=False,
            indent=2,
        )

    @classmethod
    def from_json(cls, text: str, max_rounds: int = MAX_ITERATIONS) -> IterationLedger:
        """Rebuild a ledger by replaying retained rounds in order."""
        data = json.loads(text)
        ledger = cls(max_rounds=max_rounds)
        for raw in data.get("rounds", []):
            ledger.append(Round.model_validate(raw))
        current = data.get("current")
        if current is not None:
            ledger.restore(current)
        return ledger
