"""Round records and their Pending -> Ready | Failed lifecycle."""

import datetime
import enum
import logging
import random
import string
import threading
from dataclasses import dataclass, field, replace
from typing import Dict, Optional

from .errors import NotFoundError, short

logger = logging.getLogger(__name__)

ROUND_ID_LENGTH = 8
MAX_ERROR_DETAIL = 800


class RoundState(str, enum.Enum):
    PENDING = "pending"
    READY = "ready"
    FAILED = "failed"


@dataclass(frozen=True)
class Round:
    id: str
    title: str
    artist: str
    source_ref: str
    clip_length: int
    state: RoundState = RoundState.PENDING
    clip_path: Optional[str] = None
    error: Optional[str] = None
    created_at: datetime.datetime = field(default_factory=datetime.datetime.now)

    @property
    def ready(self) -> bool:
        return self.state is RoundState.READY

    @property
    def terminal(self) -> bool:
        return self.state is not RoundState.PENDING


def _generate_round_id() -> str:
    return ''.join(random.choices(string.ascii_lowercase + string.digits, k=ROUND_ID_LENGTH))


class RoundStore:
    """Owns every round. Records are immutable; transitions swap the reference."""

    def __init__(self):
        self._lock = threading.Lock()
        self._rounds: Dict[str, Round] = {}

    def create(self, title: str, artist: str, source_ref: str, clip_length: int) -> str:
        with self._lock:
            round_id = _generate_round_id()
            while round_id in self._rounds:
                round_id = _generate_round_id()
            self._rounds[round_id] = Round(
                id=round_id, title=title, artist=artist,
                source_ref=source_ref, clip_length=clip_length,
            )
        logger.info("Created round %s: %s by %s (%ds)", round_id, title, artist, clip_length)
        return round_id

    def get(self, round_id: str) -> Round:
        with self._lock:
            rnd = self._rounds.get(round_id)
        if rnd is None:
            raise NotFoundError(f"round not found: {round_id}")
        return rnd

    def _transition(self, round_id: str, **changes) -> bool:
        with self._lock:
            rnd = self._rounds.get(round_id)
            if rnd is None or rnd.terminal:
                current = None if rnd is None else rnd.state.value
            else:
                self._rounds[round_id] = replace(rnd, **changes)
                return True
        logger.warning("Ignoring %s for round %s (state: %s)",
                       changes["state"].value, round_id, current or "missing")
        return False

    def mark_ready(self, round_id: str, clip_path: str) -> bool:
        """Pending -> Ready. Returns False if the round is missing or already terminal."""
        return self._transition(round_id, state=RoundState.READY, clip_path=str(clip_path))

    def mark_failed(self, round_id: str, error: str) -> bool:
        """Pending -> Failed with a bounded diagnostic."""
        detail = short(error or "unknown error", MAX_ERROR_DETAIL)
        return self._transition(round_id, state=RoundState.FAILED, error=detail)

    def __len__(self) -> int:
        with self._lock:
            return len(self._rounds)


def evaluate_guess(guess: str, title: str, artist: str) -> bool:
    """Forgiving match: the guess appears in title/artist or contains one of them."""
    guess_low = (guess or "").strip().lower()
    if not guess_low:
        return False
    for target in (title, artist):
        target_low = (target or "").strip().lower()
        if not target_low:
            continue
        if guess_low in target_low or target_low in guess_low:
            return True
    return False
