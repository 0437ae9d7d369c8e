import pytest
from pydantic import ValidationError

from app.models.session import Session


def test_wire_format_uses_camel_case(playing):
    wire = playing.to_wire()
    assert wire["activePlayerIndex"] == 0
    assert "submittedPasswords" in wire["players"]["Ann"]
    assert wire["players"]["Ann"]["isHost"] is True
    assert Session.from_wire(wire) == playing


def test_missing_keys_fall_back_to_defaults():
    # The Realtime Database drops empty lists/objects and nulls.
    session = Session.from_wire({
        "code": "ABC123",
        "host": "Ann",
        "phase": "lobby",
        "players": {"Ann": {"name": "Ann", "isHost": True, "joinedAt": 0}},
    })
    assert session.questions == []
    assert session.players["Ann"].submitted_passwords == []
    assert session.winner is None


def test_questions_stored_as_object_are_reordered():
    session = Session.from_wire({
        "code": "ABC123",
        "host": "Ann",
        "phase": "lobby",
        "players": {"Ann": {"name": "Ann", "isHost": True}},
        "questions": {"1": {"id": 2, "asker": "Ann", "text": "b"}, "0": {"id": 1, "asker": "Ann", "text": "a"}},
    })
    assert [q.id for q in session.questions] == [1, 2]


@pytest.mark.parametrize(
    "patch",
    [
        {"players": {"Ann": {"name": "Bob", "isHost": True}}},
        {"players": {"Ann": {"name": "Ann", "isHost": False}}},
        {"phase": "playing", "activePlayerIndex": 3},
        {"phase": "finished", "winner": "Nobody"},
        {"winner": "Ann"},
    ],
)
def test_structural_invariants_are_enforced(patch):
    data = {
        "code": "ABC123",
        "host": "Ann",
        "phase": "lobby",
        "players": {"Ann": {"name": "Ann", "isHost": True}},
    }
    data.update(patch)
    with pytest.raises(ValidationError):
        Session.from_wire(data)


def test_unknown_phase_is_rejected():
    with pytest.raises(ValidationError):
        Session.from_wire({"code": "A1", "host": "Ann", "phase": "paused",
                           "players": {"Ann": {"name": "Ann", "isHost": True}}})
