"""
Service: errors.py
Role:
- Error taxonomy of the game. Every rejected action raises exactly one `GameError`.
- `kind` is the stable identifier sent to clients, `status_code` the HTTP mapping used by routes.

Notes:
- These are user-input errors: callers surface them to the acting participant,
  nothing retries them automatically except `InsufficientPasswords` (see session_service).
"""
from __future__ import annotations


class GameError(ValueError):
    """Base class of every rejected player action."""

    kind: str = "GameError"
    status_code: int = 400
    retryable: bool = False

    def to_detail(self) -> dict:
        return {"error": self.kind, "message": str(self)}


class InvalidInput(GameError):
    kind = "InvalidInput"


class EmptySubmission(GameError):
    kind = "EmptySubmission"


class DuplicateName(GameError):
    kind = "DuplicateName"
    status_code = 409


class InvalidPhase(GameError):
    kind = "InvalidPhase"
    status_code = 409


class NotYourTurn(GameError):
    kind = "NotYourTurn"
    status_code = 409


class NotEnoughPlayers(GameError):
    kind = "NotEnoughPlayers"
    status_code = 409


class IncompleteSetup(GameError):
    kind = "IncompleteSetup"
    status_code = 409


class InsufficientPasswords(GameError):
    kind = "InsufficientPasswords"
    status_code = 409
    retryable = True


class QuestionPending(GameError):
    kind = "QuestionPending"
    status_code = 409


class UnknownQuestion(GameError):
    kind = "UnknownQuestion"
    status_code = 404


class UnknownPlayer(GameError):
    kind = "UnknownPlayer"
    status_code = 404


class NotExpectedResponder(GameError):
    kind = "NotExpectedResponder"
    status_code = 409


class NotHost(GameError):
    kind = "NotHost"
    status_code = 403


class SessionNotFound(GameError):
    kind = "SessionNotFound"
    status_code = 404


class StaleWrite(GameError):
    """Publish retries exhausted: the record kept changing underneath us."""

    kind = "StaleWrite"
    status_code = 409
    retryable = True
