from fastapi import HTTPException


class ConsoleRentalException(Exception):
    """Base for every per-operation engine error. None of them are fatal."""

    status_code = 400

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message or self.__class__.__name__


class ConflictError(ConsoleRentalException):
    status_code = 409


class NotFoundError(ConsoleRentalException):
    status_code = 404


class ValidationError(ConsoleRentalException):
    status_code = 422


class PermissionDeniedError(ConsoleRentalException):
    status_code = 403


class PersistenceError(ConsoleRentalException):
    status_code = 503


class IneligiblePackageError(ConsoleRentalException):
    """Informational: the member has no usable package for this console.

    Never raised out of ``open``; carried back as the session's warning.
    """

    status_code = 200

    EXPIRED = "expired"
    EXHAUSTED = "exhausted"
    WRONG_TYPE = "wrong_type"
    NO_PACKAGE = "no_package"

    MESSAGES = {
        EXPIRED: "Membership expired.",
        EXHAUSTED: "No valid minutes left on the package.",
        WRONG_TYPE: "No package covers this console type.",
        NO_PACKAGE: "Member has no package.",
    }

    def __init__(self, reason: str):
        super().__init__(self.MESSAGES.get(reason, reason))
        self.reason = reason


def to_http_exception(exc: ConsoleRentalException) -> HTTPException:
    return HTTPException(status_code=exc.status_code, detail=exc.message)


def internal_error_exception(exc: Exception) -> HTTPException:
    return HTTPException(status_code=500, detail=str(exc))
