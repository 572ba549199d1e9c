import asyncio
import logging
import re
from enum import Enum
from typing import Awaitable, Callable, Optional

from .config import DEFAULT_SUBMIT_DELAY
from .errors import FormError
from .sources import SOURCES, Source, SourceCounters

logger = logging.getLogger(__name__)

USERNAME_PATTERN = re.compile(r"[A-Za-z0-9_-]+")
MIN_USERNAME_LENGTH = 3

PGN_NOTE = "NOTE: Username must match one of the players names in the PGN."

Submitter = Callable[[Source, str, str], Awaitable[None]]


class SubmitState(str, Enum):
    IDLE = "idle"
    VALIDATING = "validating"
    SUBMITTING = "submitting"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


def validate_username(candidate: str) -> Optional[FormError]:
    """Return the first rule the candidate breaks, or None when it is valid."""
    if not candidate.strip():
        return FormError.EMPTY_USERNAME
    if len(candidate) < MIN_USERNAME_LENGTH:
        return FormError.TOO_SHORT
    if not USERNAME_PATTERN.fullmatch(candidate):
        return FormError.INVALID_CHARACTERS
    return None


def simulated_submitter(delay: float) -> Submitter:
    async def submit(source: Source, username: str, game_record_text: str) -> None:
        await asyncio.sleep(delay)

    return submit


def decode_game_record(raw: bytes) -> str:
    return raw.decode("utf-8-sig", errors="replace")


class FormController:
    """All state behind the username form for a single visitor."""

    def __init__(
        self,
        submitter: Optional[Submitter] = None,
        counters: Optional[SourceCounters] = None,
    ):
        self.submitter = submitter or simulated_submitter(DEFAULT_SUBMIT_DELAY)
        self.counters = counters or SourceCounters()

        self.username = ""
        self.selected_source = Source.CHESS_COM
        self.game_record_text = ""
        self.file_input = ""

        self.validation_code: Optional[FormError] = None
        self.game_record_error: Optional[FormError] = None
        self.submission_error: Optional[FormError] = None

        self.has_attempted_submit = False
        self.is_submitting = False
        self.last_accepted_username = ""
        self.last_accepted_source: Optional[Source] = None

        self.state = SubmitState.IDLE
        self.last_outcome: Optional[SubmitState] = None

    # ─────────────────────────────────────────────────────────────
    # Derived view state
    # ─────────────────────────────────────────────────────────────

    @property
    def validation_error(self) -> str:
        return self.validation_code.message if self.validation_code else ""

    @property
    def placeholder(self) -> str:
        return SOURCES[self.selected_source].placeholder

    @property
    def shows_game_record(self) -> bool:
        return self.selected_source is Source.PGN

    @property
    def can_submit(self) -> bool:
        return not self.is_submitting and not self.counters.is_exhausted(
            self.selected_source
        )

    @property
    def submit_label(self) -> str:
        if self.is_submitting:
            return "Submitting..."
        return SOURCES[self.selected_source].submit_label

    # ─────────────────────────────────────────────────────────────
    # Events
    # ─────────────────────────────────────────────────────────────

    def change_username(self, raw: str) -> None:
        self.username = (raw or "").strip()
        if self.has_attempted_submit:
            self.validation_code = validate_username(self.username)
            self.submission_error = None

    def select_source(self, target: Source) -> bool:
        if self.counters.is_exhausted(target):
            return False
        self.selected_source = target
        return True

    def set_game_record_text(self, text: str) -> None:
        self.game_record_text = text or ""
        if self.has_attempted_submit and self.game_record_text.strip():
            self.game_record_error = None

    def import_game_record(self, contents: str) -> None:
        self.set_game_record_text(contents)
        self.file_input = ""

    async def import_file(self, upload) -> None:
        """Read an uploaded file (anything with `filename` and async `read()`)."""
        self.file_input = upload.filename or ""
        try:
            raw = await upload.read()
        finally:
            self.file_input = ""
        self.import_game_record(decode_game_record(raw))
        logger.info("Imported PGN file (%d chars)", len(self.game_record_text))

    async def submit(self) -> SubmitState:
        if not self.can_submit:
            return self.state

        self.state = SubmitState.VALIDATING
        self.has_attempted_submit = True
        self.submission_error = None
        self.game_record_error = None
        self.validation_code = validate_username(self.username)

        if self.validation_code is not None:
            return self._finish(SubmitState.REJECTED)

        if self.selected_source is Source.PGN and not self.game_record_text.strip():
            self.game_record_error = FormError.GAME_RECORD_REQUIRED
            return self._finish(SubmitState.REJECTED)

        source = self.selected_source
        username = self.username
        self.state = SubmitState.SUBMITTING
        self.is_submitting = True
        try:
            await self.submitter(source, username, self.game_record_text)
        except Exception:
            logger.exception("Submitting %s username %r failed", source.value, username)
            self.submission_error = FormError.SUBMISSION_FAILED
            return self._finish(SubmitState.REJECTED)
        finally:
            self.is_submitting = False

        self.last_accepted_username = username
        self.last_accepted_source = source
        self.username = ""
        self.has_attempted_submit = False
        self.counters.decrement(source)
        logger.info(
            "Accepted %s username %s (%d left)",
            source.value,
            username,
            self.counters.left(source),
        )
        return self._finish(SubmitState.ACCEPTED)

    def _finish(self, outcome: SubmitState) -> SubmitState:
        self.last_outcome = outcome
        self.state = SubmitState.IDLE
        return outcome

    def view(self) -> dict:
        return {
            "username": self.username,
            "selected_source": self.selected_source.value,
            "placeholder": self.placeholder,
            "game_record_text": self.game_record_text,
            "shows_game_record": self.shows_game_record,
            "validation_error": self.validation_error,
            "game_record_error": (
                self.game_record_error.message if self.game_record_error else ""
            ),
            "submission_error": (
                self.submission_error.message if self.submission_error else ""
            ),
            "has_attempted_submit": self.has_attempted_submit,
            "is_submitting": self.is_submitting,
            "can_submit": self.can_submit,
            "submit_label": self.submit_label,
            "last_accepted_username": self.last_accepted_username,
            "last_accepted_source": (
                self.last_accepted_source.value if self.last_accepted_source else ""
            ),
            "last_outcome": self.last_outcome.value if self.last_outcome else None,
            "remaining": self.counters.as_dict(),
        }
