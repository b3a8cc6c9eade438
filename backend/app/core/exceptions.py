"""
Exception hierarchy for MP Connect.

Every exception carries a human readable ``message`` (rendered to the client)
and optional ``details`` (logged only). ``status_code`` is the HTTP status the
application boundary converts the error into.
"""

from typing import Any


class MPConnectException(Exception):
    """Base class for application errors."""

    status_code = 500
    error_type = "application_error"

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class MissingParameter(MPConnectException):
    """The provider redirect lacked a required query parameter."""

    status_code = 400
    error_type = "missing_parameter"


class CryptoUnavailable(MPConnectException):
    """No secure random source or SHA-256 primitive on this platform."""

    status_code = 500
    error_type = "crypto_unavailable"


class Misconfigured(MPConnectException):
    """Client id or secret is not configured."""

    status_code = 500
    error_type = "misconfigured"


class TokenExchangeFailed(MPConnectException):
    """Non-2xx, unparsable or failed request to the provider token endpoint."""

    status_code = 502
    error_type = "token_exchange_failed"

    def __init__(
        self,
        message: str,
        payload: Any = None,
        status: int | None = None,
    ):
        super().__init__(message, details={"payload": payload, "status": status})
        self.payload = payload
        self.status = status


class ProfilePersistenceFailed(MPConnectException):
    """The user-profile collaborator could not be read or written."""

    status_code = 502
    error_type = "profile_persistence_failed"


class AuthenticationError(MPConnectException):
    """The current marketplace user could not be identified."""

    status_code = 401
    error_type = "authentication_error"


class ServiceUnavailable(MPConnectException):
    """The service refuses requests until it is configured."""

    status_code = 503
    error_type = "service_unavailable"
