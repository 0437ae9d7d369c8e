"""
Models / session.py
Role:
- The shared session record: the single aggregate every client reads and replaces as a whole.
- Structural invariants are checked by a model validator, so any record built by the engine
  or read back from the store is either consistent or rejected.

Wire format:
- camelCase JSON keys (`activePlayerIndex`, `submittedPasswords`...), see `to_wire()`.
- Missing keys fall back to defaults: the Realtime Database drops empty lists/objects and nulls.
"""
from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from app.models.player import Player
from app.models.question import Question

# Session phases (strictly forward)
PHASE_LOBBY = "lobby"
PHASE_SUBMITTING = "submitting-passwords"
PHASE_PLAYING = "playing"
PHASE_FINISHED = "finished"

PHASES = (PHASE_LOBBY, PHASE_SUBMITTING, PHASE_PLAYING, PHASE_FINISHED)

Phase = Literal["lobby", "submitting-passwords", "playing", "finished"]


def phase_rank(phase: str) -> int:
    """Position of a phase in the forward-only lifecycle."""
    return PHASES.index(phase)


class Session(BaseModel):
    """Canonical game record, keyed by its short `code`."""
    code: str
    host: str
    phase: Phase = PHASE_LOBBY
    players: Dict[str, Player] = Field(default_factory=dict)
    questions: List[Question] = Field(default_factory=list)
    active_player_index: int = 0
    winner: Optional[str] = None
    created_at: float = 0.0

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    @field_validator("questions", mode="before")
    @classmethod
    def _questions_from_store(cls, value: Any) -> Any:
        # The Realtime Database may hand back a list as {"0": {...}, "1": {...}} or with holes.
        if value is None:
            return []
        if isinstance(value, dict):
            value = [value[key] for key in sorted(value, key=lambda k: int(k))]
        return [item for item in value if item is not None]

    @model_validator(mode="after")
    def _check_invariants(self) -> "Session":
        problems = self.invariant_errors()
        if problems:
            raise ValueError("; ".join(problems))
        return self

    def invariant_errors(self) -> List[str]:
        """List every structural invariant the record violates (empty when consistent)."""
        problems: List[str] = []
        for key, player in self.players.items():
            if key != player.name:
                problems.append(f"player key {key!r} does not match name {player.name!r}")

        hosts = [p.name for p in self.players.values() if p.is_host]
        if hosts != [self.host]:
            problems.append(f"expected exactly one host {self.host!r}, found {hosts}")

        if self.phase == PHASE_PLAYING and not 0 <= self.active_player_index < len(self.players):
            problems.append(f"activePlayerIndex {self.active_player_index} out of range")

        if self.phase == PHASE_FINISHED:
            if self.winner not in self.players:
                problems.append(f"finished session has no valid winner ({self.winner!r})")
        elif self.winner is not None:
            problems.append("winner set before the game finished")

        ids = [q.id for q in self.questions]
        if any(b <= a for a, b in zip(ids, ids[1:])):
            problems.append("question ids are not strictly increasing")
        return problems

    # -----------------------------
    # Derived accessors
    # -----------------------------
    def turn_order(self) -> List[Player]:
        return sorted(self.players.values(), key=lambda p: (p.joined_at, p.name))

    def turn_order_names(self) -> List[str]:
        return [p.name for p in self.turn_order()]

    def active_player(self) -> Optional[Player]:
        if self.phase != PHASE_PLAYING:
            return None
        return self.turn_order()[self.active_player_index]

    def question(self, question_id: int) -> Optional[Question]:
        for question in self.questions:
            if question.id == question_id:
                return question
        return None

    def pending_question(self) -> Optional[Question]:
        """The open question of the current turn, if any."""
        for question in reversed(self.questions):
            if not question.is_complete:
                return question
        return None

    def next_question_id(self) -> int:
        return self.questions[-1].id + 1 if self.questions else 1

    def next_join_seq(self) -> int:
        return max((p.joined_at for p in self.players.values()), default=-1) + 1

    # -----------------------------
    # Serialization
    # -----------------------------
    def to_wire(self) -> Dict[str, Any]:
        """JSON-ready dict with camelCase keys (the stored document shape)."""
        return self.model_dump(mode="json", by_alias=True)

    @classmethod
    def from_wire(cls, data: Dict[str, Any]) -> "Session":
        return cls.model_validate(data)
