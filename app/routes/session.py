"""
Routes de session (scope joueurs).

Objectifs :
- Créer / lire / supprimer une session de jeu identifiée par son code court.
- Un endpoint par action joueur ; chacun exécute une seule transition via le
  session service et renvoie le snapshot publié.

Pas d'authentification : le joueur qui agit se nomme dans le body (`player_name`),
les actions réservées à l'hôte comparent ce nom avec l'hôte de la session.
"""
from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional

from fastapi import APIRouter, HTTPException, Query
from pydantic import BaseModel, Field

from app.models.session import Session
from app.services.errors import GameError
from app.services.session_service import SERVICE
from app.services.session_store import SessionStoreError
from app.services.view_state import build_view

router = APIRouter(prefix="/session", tags=["session"])


# ---------------------------------------------------------------------------
# Pydantic models
# ---------------------------------------------------------------------------
class SessionCreatePayload(BaseModel):
    host_name: str = Field(..., description="Name of the player creating the session")


class PlayerPayload(BaseModel):
    player_name: str = Field(..., description="Acting player")


class PasswordsPayload(PlayerPayload):
    words: List[str] = Field(default_factory=list, description="Passwords put into the pool")


class TextPayload(PlayerPayload):
    text: str = Field(..., description="Question or answer text")


class SessionResponse(BaseModel):
    ok: bool = True
    code: str
    session: Dict[str, Any]
    view: Dict[str, Any]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def _normalize_code(code: str) -> str:
    return (code or "").strip().upper()


def _respond(session: Session, viewer: Optional[str] = None) -> SessionResponse:
    return SessionResponse(
        code=session.code,
        session=session.to_wire(),
        view=build_view(session, viewer),
    )


def _run(action: Callable[[], Session], viewer: Optional[str] = None) -> SessionResponse:
    """Exécute un appel au service et mappe les erreurs domaine/store en erreurs HTTP."""
    try:
        session = action()
    except GameError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.to_detail()) from exc
    except SessionStoreError as exc:
        raise HTTPException(
            status_code=503, detail={"error": "StoreUnavailable", "message": str(exc)}
        ) from exc
    return _respond(session, viewer)


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------
@router.post("", response_model=SessionResponse)
def session_create(payload: SessionCreatePayload):
    """Crée une session dans le lobby ; l'appelant en devient l'hôte."""
    return _run(lambda: SERVICE.create(payload.host_name), viewer=payload.host_name)


@router.get("/{code}", response_model=SessionResponse)
def session_get(code: str, viewer: Optional[str] = Query(default=None, description="Player whose view to compute")):
    """Snapshot courant + vue dérivée de `viewer`."""
    return _run(lambda: SERVICE.get(_normalize_code(code)), viewer=viewer)


@router.delete("/{code}")
def session_delete(code: str, payload: PlayerPayload):
    """Supprime l'enregistrement partagé (hôte seulement) ; les abonnés reçoivent `session_deleted`."""
    sid = _normalize_code(code)
    try:
        SERVICE.delete(sid, payload.player_name)
    except GameError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.to_detail()) from exc
    except SessionStoreError as exc:
        raise HTTPException(
            status_code=503, detail={"error": "StoreUnavailable", "message": str(exc)}
        ) from exc
    return {"ok": True, "code": sid, "deleted": True}


# ---------------------------------------------------------------------------
# Lobby
# ---------------------------------------------------------------------------
@router.post("/{code}/join", response_model=SessionResponse)
def session_join(code: str, payload: PlayerPayload):
    return _run(lambda: SERVICE.join(_normalize_code(code), payload.player_name), payload.player_name)


@router.post("/{code}/leave", response_model=SessionResponse)
def session_leave(code: str, payload: PlayerPayload):
    return _run(lambda: SERVICE.leave(_normalize_code(code), payload.player_name))


@router.post("/{code}/advance", response_model=SessionResponse)
def session_advance(code: str, payload: PlayerPayload):
    """L'hôte ferme le lobby et ouvre la saisie des mots de passe."""
    return _run(lambda: SERVICE.advance(_normalize_code(code), payload.player_name), payload.player_name)


# ---------------------------------------------------------------------------
# Setup & play
# ---------------------------------------------------------------------------
@router.post("/{code}/passwords", response_model=SessionResponse)
def session_passwords(code: str, payload: PasswordsPayload):
    return _run(
        lambda: SERVICE.submit_passwords(_normalize_code(code), payload.player_name, payload.words),
        payload.player_name,
    )


@router.post("/{code}/start", response_model=SessionResponse)
def session_start(code: str, payload: PlayerPayload):
    """L'hôte distribue les mots de passe et lance le premier tour."""
    return _run(lambda: SERVICE.start(_normalize_code(code), payload.player_name), payload.player_name)


@router.post("/{code}/questions", response_model=SessionResponse)
def session_ask(code: str, payload: TextPayload):
    return _run(
        lambda: SERVICE.ask(_normalize_code(code), payload.player_name, payload.text),
        payload.player_name,
    )


@router.post("/{code}/questions/{question_id}/answers", response_model=SessionResponse)
def session_answer(code: str, question_id: int, payload: TextPayload):
    return _run(
        lambda: SERVICE.answer(_normalize_code(code), question_id, payload.player_name, payload.text),
        payload.player_name,
    )
