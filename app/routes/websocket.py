# app/routes/websocket.py
"""
WebSocket endpoint.

- /ws/session/{code}?viewer=<nom> : flux live d'une session.
  * première trame : snapshot courant (type=session_state) ou une erreur si le code est inconnu,
  * puis une trame par changement publié, `session_deleted` quand l'enregistrement disparaît,
  * messages client : {"type":"identify","player_name":"..."} (change de viewer), {"type":"ping"}.
"""
from __future__ import annotations

import asyncio
import json
from typing import Optional

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from app.models.event import SessionEvent
from app.models.player import normalize_name
from app.services.io_utils import dumps_text
from app.services.session_store import get_store
from app.services.ws_manager import WS, Subscriber, session_frame

router = APIRouter()


def _normalize_code(code: Optional[str]) -> str:
    return (code or "").strip().upper()


async def _pump(ws: WebSocket, sub: Subscriber) -> None:
    """Transmet les trames en file vers la socket, dans l'ordre."""
    while True:
        frame = await sub.queue.get()
        await ws.send_text(dumps_text(frame))
        if frame.get("type") == "session_deleted":
            return


async def _listen(ws: WebSocket, sub: Subscriber) -> None:
    """Traite les messages client : identify / ping ; le reste est ignoré."""
    while True:
        raw = await ws.receive_text()
        try:
            msg = json.loads(raw)
        except ValueError:
            continue
        if not isinstance(msg, dict):
            continue

        mtype = msg.get("type")
        if mtype == "identify":
            name = normalize_name(msg.get("player_name")) or None
            WS.identify(sub, name)
            session = await asyncio.to_thread(get_store().get, sub.code)
            frame = session_frame(sub.code, session, name)
            frame["type"] = "identified" if session is not None else frame["type"]
            sub.queue.put_nowait(frame)
        elif mtype == "ping":
            sub.queue.put_nowait(SessionEvent(type="pong", code=sub.code).to_frame())


@router.websocket("/ws/session/{code}")
async def websocket_session_stream(ws: WebSocket, code: str, viewer: Optional[str] = None):
    normalized = _normalize_code(code)
    await ws.accept()

    # s'abonner avant la première lecture : aucun changement ne passe entre snapshot et flux
    sub = WS.register(normalized, viewer)
    try:
        session = await asyncio.to_thread(get_store().get, normalized)
        if session is None:
            await ws.send_text(dumps_text(
                SessionEvent(type="error", code=normalized, error="SessionNotFound").to_frame()
            ))
            return
        await ws.send_text(dumps_text(session_frame(normalized, session, viewer)))

        tasks = {asyncio.create_task(_pump(ws, sub)), asyncio.create_task(_listen(ws, sub))}
        done, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
        for task in pending:
            task.cancel()
        for task in done:
            exc = task.exception()
            if exc is not None and not isinstance(exc, WebSocketDisconnect):
                raise exc
    except WebSocketDisconnect:
        pass
    finally:
        WS.unregister(sub)
        try:
            await ws.close()
        except Exception:
            pass
