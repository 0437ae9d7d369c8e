"""
Service: session_service.py
Rôle:
- Frontière de publication entre les actions joueurs et le store partagé.
- Chaque action : lecture (session, version) -> une opération du moteur -> put conditionnel.
  Une écriture périmée signifie qu'un autre client a publié avant : on relit et on rejoue l'action,
  les deux effets survivent au lieu que le dernier écrivain écrase le premier.
- Les contrôles de rôle côté appelant (actions réservées à l'hôte) vivent ici, pas dans le moteur.

API utilisée par les routes :
- create(host_name) / get(code) / delete(code, player_name)
- join / leave / advance / submit_passwords / start / ask / answer
"""
from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from typing import Callable, Iterable, Optional

from app.config.settings import settings
from app.models.player import normalize_name
from app.models.session import Session
from app.services import transition_engine as engine
from app.services.errors import (
    GameError,
    InsufficientPasswords,
    NotHost,
    SessionNotFound,
    StaleWrite,
)
from app.services.session_store import ABSENT_VERSION, StaleWriteError, generate_code, get_store

logger = logging.getLogger(__name__)

Operation = Callable[[Session], Session]


def _require_host(session: Session, player_name: str) -> None:
    if session.host != normalize_name(player_name):
        raise NotHost(f"Only the host ({session.host}) can do that")


@dataclass
class SessionService:
    store: object = None
    rng: random.Random = field(default_factory=random.Random)

    def _store(self):
        return self.store if self.store is not None else get_store()

    # -----------------------------
    # Boucle de publication
    # -----------------------------
    def apply(self, code: str, action: str, operation: Operation) -> Session:
        """
        Exécute `operation` sur le dernier enregistrement et publie le résultat.
        Les erreurs du moteur remontent telles quelles ; l'enregistrement reste alors inchangé.
        """
        store = self._store()
        attempts = max(1, settings.PUBLISH_MAX_RETRIES)
        for attempt in range(1, attempts + 1):
            current, version = store.get_versioned(code)
            if current is None:
                raise SessionNotFound(f"No session with code {code}")
            try:
                updated = operation(current)
            except GameError as exc:
                logger.info(
                    "Action rejected",
                    extra={"session_code": code, "action": action, "error": exc.kind},
                )
                raise

            expected = version if settings.OPTIMISTIC_CONCURRENCY else None
            try:
                store.put(code, updated, expected_version=expected)
            except StaleWriteError:
                logger.warning(
                    "Stale write, re-applying action",
                    extra={"session_code": code, "action": action, "attempt": attempt},
                )
                continue

            logger.info(
                "Action applied",
                extra={"session_code": code, "action": action, "phase": updated.phase},
            )
            return updated

        raise StaleWrite(f"Session {code} kept changing; {action} was not applied")

    # -----------------------------
    # Cycle de vie de la session
    # -----------------------------
    def create(self, host_name: str) -> Session:
        store = self._store()
        for _ in range(max(1, settings.PUBLISH_MAX_RETRIES)):
            code = generate_code()
            session = engine.create_session(host_name, code)
            try:
                store.put(code, session, expected_version=ABSENT_VERSION)
            except StaleWriteError:
                logger.warning("Session code collision, drawing another", extra={"session_code": code})
                continue
            logger.info("Session created", extra={"session_code": code, "host": session.host})
            return session
        raise StaleWrite("Could not allocate a free session code")

    def get(self, code: str) -> Session:
        session = self._store().get(code)
        if session is None:
            raise SessionNotFound(f"No session with code {code}")
        return session

    def delete(self, code: str, player_name: str) -> None:
        session = self.get(code)
        _require_host(session, player_name)
        self._store().delete(code)
        logger.info("Session deleted", extra={"session_code": code})

    # -----------------------------
    # Actions joueurs
    # -----------------------------
    def join(self, code: str, player_name: str) -> Session:
        return self.apply(code, "join", lambda s: engine.join_session(s, player_name))

    def leave(self, code: str, player_name: str) -> Session:
        return self.apply(code, "leave", lambda s: engine.leave_session(s, player_name))

    def advance(self, code: str, player_name: str) -> Session:
        def _op(session: Session) -> Session:
            _require_host(session, player_name)
            return engine.advance_to_password_submission(session)

        return self.apply(code, "advance", _op)

    def submit_passwords(self, code: str, player_name: str, words: Iterable[str]) -> Session:
        words = list(words)
        return self.apply(code, "submit_passwords", lambda s: engine.submit_passwords(s, player_name, words))

    def start(self, code: str, player_name: str) -> Session:
        def _op(session: Session) -> Session:
            _require_host(session, player_name)
            last_error: Optional[InsufficientPasswords] = None
            # le tirage glouton peut échouer là où un autre tirage passerait
            for _ in range(max(1, settings.ASSIGNMENT_ATTEMPTS)):
                try:
                    return engine.start_playing(session, rng=self.rng)
                except InsufficientPasswords as exc:
                    last_error = exc
            raise last_error

        return self.apply(code, "start", _op)

    def ask(self, code: str, player_name: str, text: str) -> Session:
        return self.apply(code, "ask", lambda s: engine.ask_question(s, player_name, text))

    def answer(self, code: str, question_id: int, player_name: str, text: str) -> Session:
        return self.apply(
            code, "answer", lambda s: engine.answer_question(s, question_id, player_name, text)
        )


SERVICE = SessionService()
