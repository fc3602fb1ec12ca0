"""Snowball sampling to decide on a single preferred round."""

from __future__ import annotations

import threading
from typing import Optional

from .logs import consensus
from .round import ZERO_ROUND_ID, Round

SNOWBALL_DEFAULT_BETA = 150


class Snowball:
    """Tracks sampled round preferences until one wins more than ``beta`` times in a row."""

    def __init__(self, beta: int = SNOWBALL_DEFAULT_BETA) -> None:
        self.beta = beta
        self._lock = threading.RLock()
        self.reset()

    def reset(self) -> None:
        """Clear all samples and the decision."""
        with self._lock:
            self.preferred_id = ZERO_ROUND_ID
            self.last_id = ZERO_ROUND_ID
            self.candidates: dict[bytes, Round] = {}
            self.counts: dict[bytes, int] = {}
            self.count = 0
            self._decided = False

    def tick(self, round: Optional[Round]) -> None:
        """Record one sampled round; None or an empty round resets the streak."""
        with self._lock:
            if self._decided:
                return

            if round is None or round.id == ZERO_ROUND_ID:
                self.last_id = ZERO_ROUND_ID
                self.count = 0
                return

            self.candidates.setdefault(round.id, round)

            self.counts[round.id] = self.counts.get(round.id, 0) + 1
            if self.counts[round.id] > self.counts.get(self.preferred_id, 0):
                self.preferred_id = round.id

            if self.last_id != round.id:
                if self.last_id != ZERO_ROUND_ID:
                    consensus("snowball_liveness_fault").warn(
                        "Snowball liveness fault.",
                        last_id=self.last_id,
                        count=self.count,
                        new_id=round.id,
                    )
                self.last_id = round.id
                self.count = 0
            else:
                self.count += 1
                if self.count > self.beta:
                    self._decided = True

    def prefer(self, round: Round) -> None:
        """Set ``round`` as the preferred candidate."""
        with self._lock:
            self.candidates.setdefault(round.id, round)
            self.preferred_id = round.id

    def preferred(self) -> Optional[Round]:
        """The currently preferred round, or None if there is none."""
        with self._lock:
            if self.preferred_id == ZERO_ROUND_ID:
                return None
            return self.candidates.get(self.preferred_id)

    def decided(self) -> bool:
        with self._lock:
            return self._decided

    def progress(self) -> int:
        """Length of the current streak of identical samples."""
        with self._lock:
            return self.count