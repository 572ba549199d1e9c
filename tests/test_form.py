import asyncio

import pytest

from app.errors import FormError
from app.form import FormController, SubmitState, simulated_submitter, validate_username
from app.sources import Source, SourceCounters


def _form(**kwargs) -> FormController:
    kwargs.setdefault("submitter", simulated_submitter(0))
    return FormController(**kwargs)


class FakeUpload:
    def __init__(self, filename, content: bytes):
        self.filename = filename
        self._content = content

    async def read(self) -> bytes:
        return self._content


# Username validation


@pytest.mark.parametrize("candidate", ["", "   ", "\t"])
def test_blank_username_is_required(candidate):
    assert validate_username(candidate) is FormError.EMPTY_USERNAME


@pytest.mark.parametrize("candidate", ["a", "ab", "x_", "a "])
def test_short_username_is_rejected(candidate):
    assert validate_username(candidate) is FormError.TOO_SHORT


@pytest.mark.parametrize("candidate", ["ab c", "ab@1", "magnus!", "élan", "abc\n"])
def test_invalid_characters_are_rejected(candidate):
    assert validate_username(candidate) is FormError.INVALID_CHARACTERS


@pytest.mark.parametrize(
    "candidate", ["abc", "MagnusCarlsen", "Dr-Nykterstein", "appy_fizz", "123", "___"]
)
def test_well_formed_usernames_pass(candidate):
    assert validate_username(candidate) is None


def test_validation_is_idempotent():
    for candidate in ["ab", "ab c", "magnus", ""]:
        assert validate_username(candidate) == validate_username(candidate)


# Keystrokes


def test_keystrokes_before_first_submit_show_no_error():
    form = _form()
    form.change_username("a")
    assert form.username == "a"
    assert form.validation_error == ""


def test_keystrokes_after_submit_revalidate():
    form = _form()
    form.change_username("ab")
    asyncio.run(form.submit())
    assert form.validation_error == FormError.TOO_SHORT.message

    form.change_username("abc")
    assert form.validation_error == ""

    form.change_username("ab c")
    assert form.validation_code is FormError.INVALID_CHARACTERS


def test_username_is_trimmed():
    form = _form()
    form.change_username("  magnus  ")
    assert form.username == "magnus"


# Sources


def test_default_source_and_placeholders():
    form = _form()
    assert form.selected_source is Source.CHESS_COM
    assert form.placeholder == "MagnusCarlsen"
    form.select_source(Source.LICHESS)
    assert form.placeholder == "DrNykterstein"
    form.select_source(Source.PGN)
    assert form.placeholder == "appyfizz"
    assert form.shows_game_record
    assert form.submit_label == "Import PGN Game"


def test_exhausted_source_cannot_be_selected():
    counters = SourceCounters({Source.CHESS_COM: 3, Source.LICHESS: 0, Source.PGN: 1})
    form = _form(counters=counters)
    assert form.select_source(Source.LICHESS) is False
    assert form.selected_source is Source.CHESS_COM


def test_counters_are_not_shared_between_forms():
    first, second = _form(), _form()
    first.change_username("MagnusCarlsen")
    asyncio.run(first.submit())
    assert first.counters.left(Source.CHESS_COM) == 2
    assert second.counters.left(Source.CHESS_COM) == 3


# Importing a PGN file


def test_import_replaces_game_record_text():
    form = _form()
    form.set_game_record_text("old text")
    asyncio.run(form.import_file(FakeUpload("game.pgn", b"1. e4 e5")))
    assert form.game_record_text == "1. e4 e5"
    assert form.file_input == ""


def test_import_strips_utf8_bom():
    form = _form()
    asyncio.run(form.import_file(FakeUpload("game.pgn", b"\xef\xbb\xbf1. d4 d5")))
    assert form.game_record_text == "1. d4 d5"


# Submitting


def test_successful_submit_decrements_counter():
    form = _form()
    form.change_username("MagnusCarlsen")
    outcome = asyncio.run(form.submit())

    assert outcome is SubmitState.ACCEPTED
    assert form.counters.left(Source.CHESS_COM) == 2
    assert form.last_accepted_username == "MagnusCarlsen"
    assert form.last_accepted_source is Source.CHESS_COM
    assert form.username == ""
    assert form.has_attempted_submit is False
    assert form.state is SubmitState.IDLE
    assert form.is_submitting is False


def test_short_username_is_rejected_without_spending_attempt():
    form = _form()
    form.change_username("ab")
    outcome = asyncio.run(form.submit())

    assert outcome is SubmitState.REJECTED
    assert form.validation_code is FormError.TOO_SHORT
    assert form.counters.left(Source.CHESS_COM) == 3
    assert form.has_attempted_submit is True


def test_pgn_source_requires_game_record():
    form = _form()
    form.select_source(Source.PGN)
    form.change_username("magnus")
    form.set_game_record_text("   ")
    outcome = asyncio.run(form.submit())

    assert outcome is SubmitState.REJECTED
    assert form.game_record_error is FormError.GAME_RECORD_REQUIRED
    assert form.validation_error == ""
    assert form.counters.left(Source.PGN) == 1


def test_pgn_submit_exhausts_source():
    form = _form()
    form.select_source(Source.PGN)
    form.change_username("appyfizz")
    form.import_game_record("1. e4 e5")
    assert asyncio.run(form.submit()) is SubmitState.ACCEPTED

    assert form.counters.left(Source.PGN) == 0
    assert form.can_submit is False
    assert form.select_source(Source.PGN) is False


def test_submitter_failure_keeps_counter():
    async def failing(source, username, game_record_text):
        raise RuntimeError("backend down")

    form = _form(submitter=failing)
    form.change_username("MagnusCarlsen")
    outcome = asyncio.run(form.submit())

    assert outcome is SubmitState.REJECTED
    assert form.submission_error is FormError.SUBMISSION_FAILED
    assert form.counters.left(Source.CHESS_COM) == 3
    assert form.username == "MagnusCarlsen"
    assert form.is_submitting is False


def test_submit_is_inert_while_in_flight():
    seen = {}

    async def watching(source, username, game_record_text):
        seen["label"] = form.submit_label
        seen["can_submit"] = form.can_submit
        seen["state"] = form.state
        seen["nested"] = await form.submit()

    form = _form(submitter=watching)
    form.change_username("MagnusCarlsen")
    asyncio.run(form.submit())

    assert seen["label"] == "Submitting..."
    assert seen["can_submit"] is False
    assert seen["state"] is SubmitState.SUBMITTING
    assert seen["nested"] is SubmitState.SUBMITTING
    assert form.counters.left(Source.CHESS_COM) == 2


def test_counter_never_goes_negative():
    counters = SourceCounters({Source.CHESS_COM: 0, Source.LICHESS: 3, Source.PGN: 1})
    assert counters.decrement(Source.CHESS_COM) == 0


def test_submit_passes_selected_source_and_text():
    calls = []

    async def recording(source, username, game_record_text):
        calls.append((source, username, game_record_text))

    form = _form(submitter=recording)
    form.select_source(Source.PGN)
    form.change_username("appyfizz")
    form.set_game_record_text("1. e4 e5")
    asyncio.run(form.submit())

    assert calls == [(Source.PGN, "appyfizz", "1. e4 e5")]
