"""
UniMatch — Service-layer exceptions.

Services raise these instead of HTTP errors so that the same operation can
be driven from a REST route, a WebSocket frame or a maintenance script.
Each carries a stable ``code`` that the WebSocket relay puts on the wire.
"""

from __future__ import annotations


class ServiceError(Exception):
    """Base class for expected, caller-facing failures."""

    code: str = "service_error"

    def __init__(self, message: str, **context: object) -> None:
        super().__init__(message)
        self.message = message
        self.context = context


class UserNotFoundError(ServiceError):
    code = "user_not_found"


class InvalidSwipeError(ServiceError):
    code = "invalid_swipe"


class MatchNotFoundError(ServiceError):
    code = "match_not_found"


class NotMatchParticipantError(ServiceError):
    code = "not_a_participant"


class InvalidMessageError(ServiceError):
    code = "invalid_message"
