from __future__ import annotations

from enum import Enum


class TournamentErrorCode(str, Enum):
    NOT_FOUND = "NOT_FOUND"
    UNAUTHORIZED = "UNAUTHORIZED"
    INVALID_STATUS = "INVALID_STATUS"
    INVALID_REGISTRATION_END = "INVALID_REGISTRATION_END"
    INVALID_START_TIME = "INVALID_START_TIME"
    INVALID_PLAYER_LIMITS = "INVALID_PLAYER_LIMITS"
    INVALID_MATCH_DEADLINE = "INVALID_MATCH_DEADLINE"
    INVALID_MATCH_RESULT = "INVALID_MATCH_RESULT"
    REGISTRATION_CLOSED = "REGISTRATION_CLOSED"
    ALREADY_REGISTERED = "ALREADY_REGISTERED"
    TOURNAMENT_FULL = "TOURNAMENT_FULL"
    NOT_REGISTERED = "NOT_REGISTERED"


class TournamentError(Exception):
    """Domain validation failure with a stable code. Never retried."""

    code: TournamentErrorCode = TournamentErrorCode.INVALID_STATUS
    default_message = "tournament operation rejected"

    def __init__(self, message: str | None = None, *, code: TournamentErrorCode | None = None) -> None:
        if code is not None:
            self.code = code
        self.message = message or self.default_message
        super().__init__(self.message)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self.code.value!r}, message={self.message!r})"


class TournamentNotFoundError(TournamentError):
    code = TournamentErrorCode.NOT_FOUND
    default_message = "tournament not found"


class MatchNotFoundError(TournamentError):
    code = TournamentErrorCode.NOT_FOUND
    default_message = "match not found"


class TournamentAccessError(TournamentError):
    code = TournamentErrorCode.UNAUTHORIZED
    default_message = "user is not allowed to perform this action"


class TournamentInvalidStatusError(TournamentError):
    code = TournamentErrorCode.INVALID_STATUS
    default_message = "operation not allowed in the current status"


class TournamentInvalidConfigError(TournamentError):
    code = TournamentErrorCode.INVALID_PLAYER_LIMITS
    default_message = "invalid tournament configuration"


class TournamentClosedError(TournamentError):
    code = TournamentErrorCode.REGISTRATION_CLOSED
    default_message = "registration is closed"


class TournamentAlreadyRegisteredError(TournamentError):
    code = TournamentErrorCode.ALREADY_REGISTERED
    default_message = "already registered for this tournament"


class TournamentFullError(TournamentError):
    code = TournamentErrorCode.TOURNAMENT_FULL
    default_message = "tournament is full"


class TournamentNotRegisteredError(TournamentError):
    code = TournamentErrorCode.NOT_REGISTERED
    default_message = "not registered for this tournament"


class MatchResultError(TournamentError):
    code = TournamentErrorCode.INVALID_MATCH_RESULT
    default_message = "invalid match result"
