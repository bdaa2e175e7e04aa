"""Errors raised by the scheduling engine and its stores."""

from fastapi import HTTPException, status


class SchedulingError(Exception):
    """Base class for scheduling failures surfaced to callers."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    retryable = False

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)

    def to_http_exception(self) -> HTTPException:
        return HTTPException(status_code=self.status_code, detail=self.message)


class InvalidArgument(SchedulingError):
    """Malformed duration, date, time, or rule definition."""

    status_code = status.HTTP_400_BAD_REQUEST


class NotFound(SchedulingError):
    status_code = status.HTTP_404_NOT_FOUND


class InvalidState(SchedulingError):
    """The booking is not in the status the operation requires."""

    status_code = status.HTTP_409_CONFLICT


class Conflict(SchedulingError):
    """A concurrent writer changed the booking first. Retrying once is safe."""

    status_code = status.HTTP_409_CONFLICT
    retryable = True


class Timeout(SchedulingError):
    status_code = status.HTTP_504_GATEWAY_TIMEOUT
    retryable = True


class Unavailable(SchedulingError):
    """The database could not be reached or rejected the transaction."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    retryable = True
