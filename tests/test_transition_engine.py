import random

import pytest

from app.models.session import (
    PHASE_FINISHED,
    PHASE_LOBBY,
    PHASE_PLAYING,
    PHASE_SUBMITTING,
    phase_rank,
)
from app.services import transition_engine as engine
from app.services.errors import (
    DuplicateName,
    EmptySubmission,
    IncompleteSetup,
    InsufficientPasswords,
    InvalidInput,
    InvalidPhase,
    NotEnoughPlayers,
    NotExpectedResponder,
    NotYourTurn,
    QuestionPending,
    UnknownPlayer,
    UnknownQuestion,
)
from app.services.view_state import LocalView


def _two_player_game(ann_words, bob_words):
    session = engine.create_session("Ann", "ROOM01", now=0.0)
    session = engine.join_session(session, "Bob")
    session = engine.advance_to_password_submission(session)
    session = engine.submit_passwords(session, "Ann", ann_words)
    session = engine.submit_passwords(session, "Bob", bob_words)
    return engine.start_playing(session, rng=random.Random(0))


# -------------------- lobby --------------------

def test_create_session_puts_host_in_lobby():
    session = engine.create_session("  Ann ", "ABC123", now=12.5)
    assert session.phase == PHASE_LOBBY
    assert session.host == "Ann"
    assert list(session.players) == ["Ann"]
    assert session.players["Ann"].is_host is True
    assert session.created_at == 12.5


@pytest.mark.parametrize("name", ["", "   ", None, "a.b", "x/y", "n" * 100])
def test_create_session_rejects_bad_host_name(name):
    with pytest.raises(InvalidInput):
        engine.create_session(name, "ABC123")


def test_create_session_rejects_bad_code():
    with pytest.raises(InvalidInput):
        engine.create_session("Ann", "abc-1")


def test_scenario_a_two_players_can_open_submission():
    session = engine.create_session("Ann", "ABC123")
    session = engine.join_session(session, "Bob")
    advanced = engine.advance_to_password_submission(session)
    assert advanced.phase == PHASE_SUBMITTING
    assert session.phase == PHASE_LOBBY  # input untouched


def test_scenario_b_single_player_cannot_advance():
    session = engine.create_session("Ann", "ABC123")
    with pytest.raises(NotEnoughPlayers):
        engine.advance_to_password_submission(session)


def test_join_assigns_increasing_join_order(lobby):
    assert lobby.turn_order_names() == ["Ann", "Bob", "Cid"]
    assert [p.joined_at for p in lobby.turn_order()] == [0, 1, 2]
    assert lobby.players["Bob"].is_host is False


def test_join_rejects_duplicate_name(lobby):
    with pytest.raises(DuplicateName):
        engine.join_session(lobby, "Bob")


def test_join_after_lobby_is_rejected(submitting):
    with pytest.raises(InvalidPhase):
        engine.join_session(submitting, "Dee")


def test_leave_removes_player_and_keeps_order(lobby):
    session = engine.leave_session(lobby, "Bob")
    assert session.turn_order_names() == ["Ann", "Cid"]
    session = engine.join_session(session, "Dee")
    assert session.turn_order_names() == ["Ann", "Cid", "Dee"]


def test_host_cannot_leave(lobby):
    with pytest.raises(InvalidInput):
        engine.leave_session(lobby, "Ann")


def test_leave_unknown_player(lobby):
    with pytest.raises(UnknownPlayer):
        engine.leave_session(lobby, "Zed")


# -------------------- setup --------------------

def test_submit_passwords_cleans_words(lobby):
    session = engine.advance_to_password_submission(lobby)
    session = engine.submit_passwords(session, "Bob", [" tree ", "", "TREE", "car"])
    bob = session.players["Bob"]
    assert bob.submitted_passwords == ["tree", "car"]
    assert bob.setup_complete is True


def test_submit_passwords_replaces_previous_submission(submitting):
    session = engine.submit_passwords(submitting, "Ann", ["lamp"])
    assert session.players["Ann"].submitted_passwords == ["lamp"]


def test_padded_names_match_stored_players(lobby):
    session = engine.advance_to_password_submission(lobby)
    session = engine.submit_passwords(session, "  Bob ", ["tree"])
    assert session.players["Bob"].setup_complete is True

    session = engine.join_session(engine.leave_session(lobby, " Cid"), "Dee   Lee ")
    assert "Dee Lee" in session.players


def test_padded_names_can_ask_and_answer(playing):
    session = engine.ask_question(playing, " Ann ", "is it xyz")
    assert session.questions[-1].asker == "Ann"
    session = engine.answer_question(session, 1, "Bob  ", "no")
    assert session.questions[-1].answers == {"Bob": "no"}


def test_empty_submission_is_rejected(lobby):
    session = engine.advance_to_password_submission(lobby)
    with pytest.raises(EmptySubmission):
        engine.submit_passwords(session, "Bob", ["  ", ""])
    assert session.players["Bob"].setup_complete is False


def test_submit_passwords_in_lobby_is_rejected(lobby):
    with pytest.raises(InvalidPhase):
        engine.submit_passwords(lobby, "Bob", ["tree"])


def test_start_requires_everybody_set_up(lobby):
    session = engine.advance_to_password_submission(lobby)
    session = engine.submit_passwords(session, "Ann", ["tree"])
    with pytest.raises(IncompleteSetup):
        engine.start_playing(session)


def test_scenario_c_two_players_swap():
    session = _two_player_game(["tree"], ["car"])
    assert session.phase == PHASE_PLAYING
    assert session.active_player_index == 0
    assert session.players["Ann"].assigned_password == "car"
    assert session.players["Bob"].assigned_password == "tree"


def test_start_playing_never_deals_own_password(submitting):
    for seed in range(25):
        try:
            session = engine.start_playing(submitting, rng=random.Random(seed))
        except InsufficientPasswords:
            continue
        for player in session.players.values():
            assert player.assigned_password not in player.submitted_passwords


def test_start_playing_fails_when_no_derangement():
    session = engine.create_session("Ann", "ABC123")
    session = engine.join_session(session, "Bob")
    session = engine.advance_to_password_submission(session)
    session = engine.submit_passwords(session, "Ann", ["car"])
    session = engine.submit_passwords(session, "Bob", ["Car"])
    with pytest.raises(InsufficientPasswords) as exc_info:
        engine.start_playing(session)
    assert exc_info.value.retryable is True


# -------------------- play --------------------

def test_scenario_d_own_password_token_wins():
    session = _two_player_game(["tree"], ["red car"])
    assert session.players["Ann"].assigned_password == "red car"

    finished = engine.ask_question(session, "Ann", "is it a car")
    assert finished.phase == PHASE_FINISHED
    assert finished.winner == "Ann"
    assert finished.questions[-1].matched_token == "car"
    assert finished.questions[-1].is_complete is True


def test_scenario_e_no_overlap_appends_open_question():
    session = _two_player_game(["tree"], ["blue sky"])
    updated = engine.ask_question(session, "Ann", "is it red")
    assert updated.phase == PHASE_PLAYING
    assert updated.winner is None
    question = updated.questions[-1]
    assert (question.id, question.asker, question.text) == (1, "Ann", "is it red")
    assert question.is_complete is False
    assert question.answers == {}


def test_other_players_password_does_not_win():
    session = _two_player_game(["red car"], ["tree"])
    # Bob holds "red car"; Ann's own password is "tree"
    updated = engine.ask_question(session, "Ann", "is it a car")
    assert updated.phase == PHASE_PLAYING


def test_ask_out_of_turn(playing):
    with pytest.raises(NotYourTurn):
        engine.ask_question(playing, "Bob", "is it big")


def test_ask_before_playing(lobby):
    with pytest.raises(InvalidPhase):
        engine.ask_question(lobby, "Ann", "is it big")


def test_ask_empty_text(playing):
    with pytest.raises(InvalidInput):
        engine.ask_question(playing, "Ann", "   ")


def test_ask_while_question_open(playing):
    session = engine.ask_question(playing, "Ann", "is it xyz")
    with pytest.raises(QuestionPending):
        engine.ask_question(session, "Ann", "is it qqq")


def test_turn_advances_once_all_others_answered(playing):
    session = engine.ask_question(playing, "Ann", "is it xyz")
    session = engine.answer_question(session, 1, "Bob", "no")
    assert session.questions[0].is_complete is False
    assert session.active_player_index == 0

    session = engine.answer_question(session, 1, "Cid", "maybe")
    assert session.questions[0].is_complete is True
    assert session.questions[0].answers == {"Bob": "no", "Cid": "maybe"}
    assert session.active_player().name == "Bob"


def test_turn_wraps_around(playing):
    session = playing
    for qid, asker in enumerate(["Ann", "Bob", "Cid"], start=1):
        session = engine.ask_question(session, asker, "is it xyz")
        for name in session.turn_order_names():
            if name != asker:
                session = engine.answer_question(session, qid, name, "no")
    assert session.active_player_index == 0
    assert [q.id for q in session.questions] == [1, 2, 3]


def test_answer_rejections(playing):
    session = engine.ask_question(playing, "Ann", "is it xyz")
    with pytest.raises(UnknownQuestion):
        engine.answer_question(session, 99, "Bob", "no")
    with pytest.raises(NotExpectedResponder):
        engine.answer_question(session, 1, "Ann", "no")
    with pytest.raises(NotExpectedResponder):
        engine.answer_question(session, 1, "Zed", "no")
    answered = engine.answer_question(session, 1, "Bob", "no")
    with pytest.raises(NotExpectedResponder):
        engine.answer_question(answered, 1, "Bob", "yes")
    with pytest.raises(InvalidInput):
        engine.answer_question(session, 1, "Cid", " ")


def test_finished_game_rejects_further_actions():
    session = _two_player_game(["tree"], ["red car"])
    finished = engine.ask_question(session, "Ann", "red?")
    with pytest.raises(InvalidPhase):
        engine.ask_question(finished, "Ann", "again")
    with pytest.raises(InvalidPhase):
        engine.answer_question(finished, 1, "Bob", "yes")


def _deal(session):
    for seed in range(50):
        try:
            return engine.start_playing(session, rng=random.Random(seed))
        except InsufficientPasswords:
            continue
    raise AssertionError("no valid deal found")


def test_phase_only_moves_forward(lobby):
    steps = [
        lambda s: engine.advance_to_password_submission(s),
        lambda s: engine.submit_passwords(s, "Ann", ["red car"]),
        lambda s: engine.submit_passwords(s, "Bob", ["blue sky"]),
        lambda s: engine.submit_passwords(s, "Cid", ["green tree"]),
        _deal,
    ]
    session = lobby
    for step in steps:
        updated = step(session)
        assert phase_rank(updated.phase) >= phase_rank(session.phase)
        session = updated
    assert session.phase == PHASE_PLAYING
    # every earlier-phase operation is refused once playing
    with pytest.raises(InvalidPhase):
        engine.advance_to_password_submission(session)
    with pytest.raises(InvalidPhase):
        engine.submit_passwords(session, "Ann", ["x"])


def test_operations_are_deterministic_on_reapplication(playing):
    first = engine.ask_question(playing, "Ann", "is it xyz")
    second = engine.ask_question(playing, "Ann", "is it xyz")
    assert first == second


def test_reset_session_returns_empty_local_view():
    view = engine.reset_session()
    assert isinstance(view, LocalView)
    assert view.is_empty
