"""
Models / player.py
Role:
- One participant of a session. The player's `name` is also its key in `Session.players`.

Fields:
- name: unique within the session.
- is_host: exactly one player per session carries it.
- joined_at: logical join sequence number (turn order = ascending joined_at, then name).
- submitted_passwords: words/phrases this player put into the pool.
- assigned_password: the secret this player must guess (drawn from the others' submissions).
- setup_complete: True once at least one password was submitted.
"""
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def normalize_name(name: Optional[str]) -> str:
    """Trim and collapse inner whitespace; every incoming player name goes through here."""
    return " ".join((name or "").split())


class Player(BaseModel):
    """Player record as stored inside the shared session document."""
    name: str
    is_host: bool = False
    joined_at: int = 0
    submitted_passwords: List[str] = Field(default_factory=list)
    assigned_password: Optional[str] = None
    setup_complete: bool = False

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    def submitted_folded(self) -> set[str]:
        """Case-folded submissions, used to keep a player away from their own words."""
        return {word.casefold() for word in self.submitted_passwords}
