"""Domain exceptions mapped to HTTP responses by ``app.errors``."""
from __future__ import annotations


class ServiceError(Exception):
    status_code = 500
    code = "service_error"

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ConfigurationError(ServiceError):
    """A required environment setting is missing."""

    code = "configuration_error"


class ProviderError(ServiceError):
    """Stripe or the database failed; webhook deliveries should be retried."""

    code = "provider_error"


class ProfileNotFoundError(ServiceError):
    status_code = 400
    code = "profile_not_found"


class MissingCustomerError(ServiceError):
    status_code = 400
    code = "missing_customer"


class SignatureVerificationError(ServiceError):
    status_code = 400
    code = "invalid_signature"


class ArchiveError(ServiceError):
    """Upstream archive request failed; ``status_code`` is what the client sees."""

    status_code = 502
    code = "archive_error"


class IdentityError(ServiceError):
    """The identity provider rejected or could not process a request."""

    status_code = 401
    code = "identity_error"


class IdentityUnavailableError(IdentityError):
    status_code = 503
    code = "identity_unavailable"
