"""
Service: transition_engine.py
Role:
- Pure game rules: (current Session, action) -> next Session, or a `GameError`.
- Never touches the store, never mutates its input: every operation works on a deep copy
  and re-validates the result, so a failed action leaves the shared record untouched.

Lifecycle:
    lobby -> submitting-passwords -> playing -> finished   (forward only)

API used by the session service:
- create_session(host_name, code)
- join_session / leave_session
- advance_to_password_submission
- submit_passwords
- start_playing (derangement deal, see utils/password_pool.py)
- ask_question (win detection, see guess_matching.py)
- answer_question (turn advance)
- reset_session (local view only)

Role checks (host-only actions) are the caller's job: the engine trusts whoever calls it.
"""
from __future__ import annotations

import random
import time
from typing import Iterable, Optional

from app.config.settings import settings
from app.models.player import Player, normalize_name
from app.models.question import Question
from app.models.session import (
    PHASE_FINISHED,
    PHASE_LOBBY,
    PHASE_PLAYING,
    PHASE_SUBMITTING,
    Session,
)
from app.services.errors import (
    DuplicateName,
    EmptySubmission,
    IncompleteSetup,
    InvalidInput,
    InvalidPhase,
    NotEnoughPlayers,
    NotExpectedResponder,
    NotYourTurn,
    QuestionPending,
    UnknownPlayer,
    UnknownQuestion,
)
from app.services.guess_matching import find_matching_token
from app.services.view_state import LocalView
from app.utils.password_pool import assign_passwords, clean_submission

# Characters the Realtime Database refuses in keys (player names are keys)
FORBIDDEN_NAME_CHARS = set(".$#[]/")


# -------------------- helpers --------------------

def _clean_name(name: Optional[str]) -> str:
    cleaned = normalize_name(name)
    if not cleaned:
        raise InvalidInput("Player name must not be empty")
    if len(cleaned) > settings.MAX_NAME_LENGTH:
        raise InvalidInput(f"Player name longer than {settings.MAX_NAME_LENGTH} characters")
    if FORBIDDEN_NAME_CHARS.intersection(cleaned):
        raise InvalidInput("Player name must not contain . $ # [ ] /")
    return cleaned


def _require_phase(session: Session, phase: str, action: str) -> None:
    if session.phase != phase:
        raise InvalidPhase(f"Cannot {action} while the session is in phase {session.phase!r}")


def _require_player(session: Session, name: str) -> Player:
    name = normalize_name(name)
    player = session.players.get(name)
    if player is None:
        raise UnknownPlayer(f"No player named {name!r} in session {session.code}")
    return player


def _draft(session: Session) -> Session:
    return session.model_copy(deep=True)


def _commit(draft: Session) -> Session:
    """Re-validate the draft so an engine bug can never publish an inconsistent record."""
    return Session.model_validate(draft.model_dump())


# -------------------- lobby --------------------

def create_session(host_name: str, code: str, now: Optional[float] = None) -> Session:
    """New session in the lobby with its host as the only player."""
    host = _clean_name(host_name)
    if not code or not code.isalnum() or code.upper() != code:
        raise InvalidInput("Session code must be uppercase alphanumeric")
    return Session(
        code=code,
        host=host,
        phase=PHASE_LOBBY,
        players={host: Player(name=host, is_host=True, joined_at=0)},
        created_at=time.time() if now is None else now,
    )


def join_session(session: Session, player_name: str) -> Session:
    name = _clean_name(player_name)
    _require_phase(session, PHASE_LOBBY, "join")
    if name in session.players:
        raise DuplicateName(f"A player named {name!r} already joined")

    draft = _draft(session)
    draft.players[name] = Player(name=name, joined_at=session.next_join_seq())
    return _commit(draft)


def leave_session(session: Session, player_name: str) -> Session:
    """Remove a non-host player while still in the lobby."""
    _require_phase(session, PHASE_LOBBY, "leave")
    player = _require_player(session, player_name)
    if player.is_host:
        raise InvalidInput("The host cannot leave; delete the session instead")

    draft = _draft(session)
    del draft.players[player.name]
    return _commit(draft)


def advance_to_password_submission(session: Session) -> Session:
    _require_phase(session, PHASE_LOBBY, "open password submission")
    if len(session.players) < settings.MIN_PLAYERS:
        raise NotEnoughPlayers(
            f"At least {settings.MIN_PLAYERS} players are needed, {len(session.players)} joined"
        )
    draft = _draft(session)
    draft.phase = PHASE_SUBMITTING
    return _commit(draft)


# -------------------- setup --------------------

def submit_passwords(session: Session, player_name: str, words: Iterable[str]) -> Session:
    """Store a player's (cleaned) passwords; a later submission replaces the earlier one."""
    _require_phase(session, PHASE_SUBMITTING, "submit passwords")
    player = _require_player(session, player_name)
    cleaned = clean_submission(words)
    if not cleaned:
        raise EmptySubmission("Submit at least one non-empty password")

    draft = _draft(session)
    target = draft.players[player.name]
    target.submitted_passwords = cleaned
    target.setup_complete = True
    return _commit(draft)


def start_playing(session: Session, rng: Optional[random.Random] = None) -> Session:
    """Deal one password per player (none of their own) and hand the first turn out."""
    _require_phase(session, PHASE_SUBMITTING, "start playing")
    missing = [p.name for p in session.turn_order() if not p.setup_complete]
    if missing:
        raise IncompleteSetup(f"Still waiting for passwords from: {', '.join(missing)}")

    assigned = assign_passwords(session.turn_order(), rng=rng)

    draft = _draft(session)
    for name, word in assigned.items():
        draft.players[name].assigned_password = word
    draft.phase = PHASE_PLAYING
    draft.active_player_index = 0
    return _commit(draft)


# -------------------- play --------------------

def ask_question(session: Session, asker_name: str, text: str) -> Session:
    """
    The active player asks a question.
    If it contains a token of the asker's own password the game ends in their favour,
    otherwise an open question is appended for everyone else to answer.
    """
    asker_name = normalize_name(asker_name)
    _require_phase(session, PHASE_PLAYING, "ask a question")
    active = session.active_player()
    if active is None or active.name != asker_name:
        raise NotYourTurn(f"It is {active.name if active else 'nobody'}'s turn, not {asker_name!r}'s")
    question_text = (text or "").strip()
    if not question_text:
        raise InvalidInput("Question must not be empty")
    pending = session.pending_question()
    if pending is not None:
        raise QuestionPending(f"Question #{pending.id} is still waiting for answers")

    draft = _draft(session)
    question = Question(id=session.next_question_id(), asker=asker_name, text=question_text)

    token = find_matching_token(active.assigned_password, question_text)
    if token is not None:
        question.is_complete = True
        question.matched_token = token
        draft.phase = PHASE_FINISHED
        draft.winner = asker_name

    draft.questions.append(question)
    return _commit(draft)


def answer_question(session: Session, question_id: int, responder_name: str, answer_text: str) -> Session:
    """Record one answer; once everybody but the asker answered, the turn moves on."""
    responder_name = normalize_name(responder_name)
    _require_phase(session, PHASE_PLAYING, "answer a question")
    question = session.question(question_id)
    if question is None:
        raise UnknownQuestion(f"No question #{question_id} in session {session.code}")
    if responder_name not in session.players:
        raise NotExpectedResponder(f"{responder_name!r} is not a player of this session")
    if responder_name == question.asker:
        raise NotExpectedResponder("The asker cannot answer their own question")
    if question.is_complete or responder_name in question.answers:
        raise NotExpectedResponder(f"{responder_name!r} already answered question #{question_id}")
    answer = (answer_text or "").strip()
    if not answer:
        raise InvalidInput("Answer must not be empty")

    draft = _draft(session)
    target = draft.question(question_id)
    target.answers[responder_name] = answer
    if not target.missing_responders(draft.turn_order_names()):
        target.is_complete = True
        draft.active_player_index = (draft.active_player_index + 1) % len(draft.players)
    return _commit(draft)


# -------------------- local --------------------

def reset_session() -> LocalView:
    """Fresh, empty local view. The shared record is left alone."""
    return LocalView()
