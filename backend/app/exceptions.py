"""
Business errors raised by the service layer.

Every error is a ValueError carrying the HTTP status the API answers with.
Routers let them bubble up; the handler registered in app.main renders the
error envelope.
"""


class ServiceError(ValueError):
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class BadRequestError(ServiceError):
    status_code = 400


class InvalidStateError(ServiceError):
    """Operation attempted from a status that does not allow it."""
    status_code = 400


class UnauthorizedError(ServiceError):
    status_code = 401


class ForbiddenError(ServiceError):
    status_code = 403


class NotFoundError(ServiceError):
    status_code = 404


class ConflictError(ServiceError):
    status_code = 409


class StorageError(ServiceError):
    """Object storage rejected or failed an upload."""
    status_code = 502
