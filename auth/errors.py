"""Typed failures raised by the auth core and mapped to HTTP statuses in api.errors."""


class AuthServiceError(Exception):
    status_code = 500
    code = "INTERNAL_ERROR"
    default_message = "An unexpected error occurred"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message


class ConflictError(AuthServiceError):
    status_code = 409
    code = "CONFLICT"
    default_message = "Username already exists"


class AuthError(AuthServiceError):
    status_code = 401
    code = "UNAUTHORIZED"
    default_message = "Invalid credentials"


class InvalidToken(AuthError):
    # same message for expired, revoked, unknown and forged tokens
    status_code = 403
    code = "FORBIDDEN"
    default_message = "Invalid or expired token"


class UserNotFound(AuthError):
    default_message = "Invalid token - user not found"


class StorageError(AuthServiceError):
    default_message = "Storage failure"


class HashingError(AuthServiceError):
    # resource exhaustion; the client may retry later
    status_code = 429
    code = "TOO_MANY_REQUESTS"
    default_message = "Unable to hash credentials"
