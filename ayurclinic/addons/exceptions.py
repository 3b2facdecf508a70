class ApiError(Exception):
    """Base exception for business rule violations surfaced to API clients."""

    status_code = 400

    def __init__(self, message, status_code=None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self):
        return {"status": self.status_code, "error": self.message}


class ValidationError(ApiError):
    """Raised when input data is missing or malformed."""

    status_code = 400


class ConflictError(ApiError):
    """Raised when the current state of a record forbids the operation."""

    status_code = 400


class NotFoundError(ApiError):
    """Raised when a referenced row does not exist in the caller's clinic."""

    status_code = 404


class AuthorizationError(ApiError):
    """Raised when a user lacks permission for an action."""

    status_code = 403
