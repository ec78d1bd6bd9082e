from __future__ import annotations

from datetime import timedelta

from support_session.domain.entities.message import Message
from support_session.domain.entities.session_state import SessionState
from support_session.domain.value_objects.enums import SenderKind, SessionMode
from tests.conftest import T0


def _msg(msg_id: str, seconds: int, sender: SenderKind = SenderKind.ADMIN) -> Message:
    return Message(id=msg_id, content=f"m{msg_id}", sender=sender, timestamp=T0 + timedelta(seconds=seconds))


def test_insert_keeps_timestamp_order():
    state = SessionState()
    for msg_id, seconds in [("3", 30), ("1", 10), ("4", 40), ("2", 20)]:
        state.insert(_msg(msg_id, seconds))
    assert [m.id for m in state.transcript] == ["1", "2", "3", "4"]


def test_insert_rejects_seen_id():
    state = SessionState()
    assert state.insert(_msg("1", 10)) == 0
    assert state.insert(_msg("1", 99)) is None
    assert len(state.transcript) == 1


def test_equal_timestamps_keep_insertion_order():
    state = SessionState()
    state.insert(_msg("a", 5))
    state.insert(_msg("b", 5))
    assert state.insert(_msg("c", 5)) == 2
    assert [m.id for m in state.transcript] == ["a", "b", "c"]


def test_last_user_message():
    state = SessionState()
    assert state.last_user_message() is None
    state.insert(_msg("1", 1, SenderKind.USER))
    state.insert(_msg("2", 2, SenderKind.BOT))
    assert state.last_user_message().id == "1"


def test_suggest_human_threshold_and_dismissal():
    state = SessionState(suggestion_threshold=2)
    state.insert(_msg("1", 1))
    assert state.suggest_human is False
    state.insert(_msg("2", 2))
    assert state.suggest_human is True
    state.suggestion_dismissed = True
    assert state.suggest_human is False


def test_no_suggestion_in_human_mode():
    state = SessionState(suggestion_threshold=0, mode=SessionMode.HUMAN)
    assert state.suggest_human is False
