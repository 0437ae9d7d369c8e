# app/services/ws_manager.py
"""
Service: ws_manager.py
- Registre des abonnés WebSocket par code de session.
- Un seul abonnement au store par session suivie, partagé par toutes ses sockets
  (pris au premier abonné, libéré avec le dernier).
- Les listeners du store peuvent tourner dans n'importe quel thread : les trames sont confiées
  à la loop de chaque abonné via `call_soon_threadsafe`, dans une queue par socket vidée par la route.
  Une queue par socket garde l'ordre de publication.
- Chaque trame porte l'état dérivé du viewer (cf. view_state.build_view).
- Admin: stats(), close_all().
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from threading import RLock
from typing import Any, Callable, Dict, List, Optional

from app.models.event import SessionEvent
from app.models.session import Session
from app.services.session_store import get_store
from app.services.view_state import build_view

logger = logging.getLogger(__name__)


def session_frame(code: str, session: Optional[Session], viewer: Optional[str] = None) -> Dict[str, Any]:
    """Trame décrivant l'enregistrement courant (ou sa suppression) pour un viewer."""
    if session is None:
        return SessionEvent(type="session_deleted", code=code).to_frame()
    return SessionEvent(
        type="session_state",
        code=code,
        session=session.to_wire(),
        view=build_view(session, viewer),
    ).to_frame()


@dataclass(eq=False)
class Subscriber:
    code: str
    viewer: Optional[str]
    loop: asyncio.AbstractEventLoop
    queue: asyncio.Queue = field(default_factory=asyncio.Queue)

    def offer(self, frame: Dict[str, Any]) -> None:
        """Enqueue thread-safe (sans effet une fois la loop de la socket fermée)."""
        if self.loop.is_closed():
            return
        try:
            self.loop.call_soon_threadsafe(self.queue.put_nowait, frame)
        except RuntimeError:
            # loop fermée entre le test et l'appel
            pass


@dataclass
class WSManager:
    _lock: RLock = field(default_factory=RLock, init=False, repr=False)
    # code de session -> abonnés
    subscribers: Dict[str, List[Subscriber]] = field(default_factory=dict)
    # code de session -> désabonnement du store
    _unsubscribers: Dict[str, Callable[[], None]] = field(default_factory=dict)

    def register(self, code: str, viewer: Optional[str] = None) -> Subscriber:
        """Attache un abonné à `code` (à appeler depuis la loop de la socket)."""
        sub = Subscriber(code=code, viewer=viewer, loop=asyncio.get_running_loop())
        with self._lock:
            bucket = self.subscribers.setdefault(code, [])
            bucket.append(sub)
            if code not in self._unsubscribers:
                self._unsubscribers[code] = get_store().subscribe(code, self._on_store_update)
        return sub

    def unregister(self, sub: Subscriber) -> None:
        with self._lock:
            bucket = self.subscribers.get(sub.code)
            if bucket and sub in bucket:
                bucket.remove(sub)
            if not bucket:
                self.subscribers.pop(sub.code, None)
                unsubscribe = self._unsubscribers.pop(sub.code, None)
            else:
                unsubscribe = None
        if unsubscribe:
            unsubscribe()

    def identify(self, sub: Subscriber, viewer: Optional[str]) -> None:
        with self._lock:
            sub.viewer = viewer

    # ---------- snapshots immuables ----------
    def _snapshot(self, code: str) -> List[Subscriber]:
        with self._lock:
            return list(self.subscribers.get(code, []))

    # ---------- diffusion ----------
    def _on_store_update(self, code: str, session: Optional[Session]) -> None:
        subs = self._snapshot(code)
        for sub in subs:
            sub.offer(session_frame(code, session, sub.viewer))
        logger.debug("Session pushed", extra={"session_code": code, "subscribers": len(subs)})

    # ---------- admin ----------
    def stats(self) -> dict:
        with self._lock:
            per_session = {code: len(subs) for code, subs in self.subscribers.items()}
            return {"sessions": per_session, "subscribers_total": sum(per_session.values())}

    def close_all(self) -> dict:
        """Coupe tous les abonnements (utilisé à l'arrêt)."""
        with self._lock:
            unsubscribers = list(self._unsubscribers.values())
            self._unsubscribers.clear()
            self.subscribers.clear()
        for unsubscribe in unsubscribers:
            unsubscribe()
        return self.stats()


WS = WSManager()
