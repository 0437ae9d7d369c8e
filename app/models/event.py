"""
Models / event.py
Role:
- Frame pushed to WebSocket subscribers of a session.

Notes:
- `type` is restricted to a Literal to avoid typos between server and front.
- `session` is the raw record (camelCase wire shape), `view` the viewer's derived state.
"""
from datetime import datetime, timezone
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, Field

EventType = Literal["session_state", "session_deleted", "identified", "pong", "error"]


class SessionEvent(BaseModel):
    type: EventType
    code: str
    session: Optional[Dict[str, Any]] = None
    view: Dict[str, Any] = Field(default_factory=dict)
    error: Optional[str] = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def to_frame(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)
