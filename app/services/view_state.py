"""
Service: view_state.py
Role:
- Derive what one participant should see from a session snapshot (recomputed on every push).
- Hold a participant's local view (`LocalView`), the only thing ResetSession clears.

Notes:
- A player never sees their own assigned password while the game runs (it is the word
  on their forehead); everyone else's is visible, and all are revealed once finished.
  This is presentation only: the raw record stays readable.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from app.models.player import normalize_name
from app.models.session import PHASE_FINISHED, PHASE_PLAYING, PHASE_SUBMITTING, Session


def build_view(session: Session, viewer: Optional[str] = None) -> Dict[str, Any]:
    """Derived state for `viewer` (None = spectator)."""
    viewer = normalize_name(viewer) or None
    order = session.turn_order_names()
    active = session.active_player()
    pending = session.pending_question()
    awaiting = pending.missing_responders(order) if pending else []
    me = session.players.get(viewer) if viewer else None

    passwords = {
        name: player.assigned_password
        for name, player in session.players.items()
        if (name != viewer or session.phase == PHASE_FINISHED)
        and player.assigned_password is not None
    }

    return {
        "viewer": viewer,
        "is_player": me is not None,
        "is_host": bool(me and me.is_host),
        "phase": session.phase,
        "turn_order": order,
        "active_player": active.name if active else None,
        "pending_question_id": pending.id if pending else None,
        "awaiting_answers_from": awaiting,
        "can_ask": bool(
            me and active and active.name == me.name and pending is None
        ),
        "can_answer": bool(me and me.name in awaiting),
        "needs_passwords": bool(
            me and session.phase == PHASE_SUBMITTING and not me.setup_complete
        ),
        "waiting_for_setup": [
            name for name in order if not session.players[name].setup_complete
        ] if session.phase == PHASE_SUBMITTING else [],
        "visible_passwords": passwords if session.phase != PHASE_SUBMITTING else {},
        "my_password_hidden": bool(me and me.assigned_password and session.phase == PHASE_PLAYING),
        "winner": session.winner,
    }


@dataclass
class LocalView:
    """What one client currently holds: the session it follows and the latest snapshot."""
    code: Optional[str] = None
    player_name: Optional[str] = None
    session: Optional[Session] = None
    view: Dict[str, Any] = field(default_factory=dict)

    def follow(self, code: str, player_name: Optional[str] = None) -> None:
        self.code = code
        self.player_name = player_name
        self.session = None
        self.view = {}

    def apply(self, session: Optional[Session]) -> Dict[str, Any]:
        """Take a pushed snapshot (None = record deleted) and recompute the derived view."""
        self.session = session
        self.view = build_view(session, self.player_name) if session is not None else {}
        return self.view

    def reset(self) -> None:
        self.code = None
        self.player_name = None
        self.session = None
        self.view = {}

    @property
    def is_empty(self) -> bool:
        return self.code is None and self.session is None
