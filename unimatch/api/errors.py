"""
UniMatch — Service error to HTTP status translation.
"""

from fastapi import HTTPException, status

from unimatch.services.exceptions import (
    InvalidMessageError,
    InvalidSwipeError,
    MatchNotFoundError,
    NotMatchParticipantError,
    ServiceError,
    UserNotFoundError,
)

_STATUS_BY_ERROR: dict[type[ServiceError], int] = {
    UserNotFoundError: status.HTTP_404_NOT_FOUND,
    MatchNotFoundError: status.HTTP_404_NOT_FOUND,
    NotMatchParticipantError: status.HTTP_403_FORBIDDEN,
    InvalidSwipeError: status.HTTP_400_BAD_REQUEST,
    InvalidMessageError: status.HTTP_400_BAD_REQUEST,
}


def http_error(exc: ServiceError) -> HTTPException:
    return HTTPException(
        status_code=_STATUS_BY_ERROR.get(type(exc), status.HTTP_400_BAD_REQUEST),
        detail=exc.message,
    )
