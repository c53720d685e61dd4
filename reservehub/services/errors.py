"""
Domain errors raised by the service layer.
Routes never see SQLAlchemy exceptions; they see one of these.
"""


class ServiceError(Exception):
    """Base class; `message` is safe to show to the end user."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(ServiceError):
    status_code = 404


class PreconditionError(ServiceError):
    status_code = 409


class DuplicateError(PreconditionError):
    """A uniqueness constraint in the store rejected the write."""


class PermissionDeniedError(ServiceError):
    status_code = 403


class TransactionError(ServiceError):
    """The store failed mid-transaction; nothing was committed."""
