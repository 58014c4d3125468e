"""
Operational error kinds raised by the rating and points services.

Routers never translate these by hand: ``academy.main`` registers a handler
that turns any ``AcademyError`` into a JSON response carrying the kind name.
"""
from fastapi import status


class AcademyError(Exception):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Request could not be processed"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    @property
    def kind(self) -> str:
        return type(self).__name__


class NotFound(AcademyError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found"


class InvalidInput(AcademyError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid input"


class InsufficientPoints(AcademyError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Insufficient points"


class AlreadyClaimed(AcademyError):
    status_code = status.HTTP_409_CONFLICT
    default_message = "Reward already claimed"


class AlreadyCompleted(AcademyError):
    status_code = status.HTTP_409_CONFLICT
    default_message = "Task already completed"


class PreviousRewardRequired(AcademyError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Must claim previous rewards first"


class Conflict(AcademyError):
    status_code = status.HTTP_409_CONFLICT
    default_message = "Concurrent update, please retry"
