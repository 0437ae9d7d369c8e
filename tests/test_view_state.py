from app.services import transition_engine as engine
from app.services.view_state import LocalView, build_view


def test_player_does_not_see_own_password(playing):
    view = build_view(playing, "Ann")
    assert "Ann" not in view["visible_passwords"]
    assert set(view["visible_passwords"]) == {"Bob", "Cid"}
    assert view["my_password_hidden"] is True
    assert view["can_ask"] is True
    assert view["active_player"] == "Ann"


def test_open_question_lists_pending_responders(playing):
    session = engine.ask_question(playing, "Ann", "is it xyz")
    session = engine.answer_question(session, 1, "Bob", "no")
    assert build_view(session, "Ann")["can_ask"] is False
    assert build_view(session, "Cid")["can_answer"] is True
    assert build_view(session, "Bob")["can_answer"] is False
    assert build_view(session)["awaiting_answers_from"] == ["Cid"]


def test_submission_view_hides_passwords(submitting):
    session = engine.submit_passwords(submitting, "Ann", ["lamp"])
    view = build_view(session, "Ann")
    assert view["visible_passwords"] == {}
    assert view["needs_passwords"] is False
    assert view["waiting_for_setup"] == []


def test_local_view_follows_and_resets(lobby):
    local = LocalView()
    local.follow("ABC123", "Bob")
    view = local.apply(lobby)
    assert view["is_player"] is True and view["is_host"] is False
    assert local.apply(None) == {}
    local.reset()
    assert local.is_empty
