"""Custom exceptions for the PropBrain application."""
from __future__ import annotations


class PropBrainError(Exception):
    """Base exception for all application errors."""

    code = "application_error"


# =============================================================================
# Configuration Errors
# =============================================================================


class ConfigurationError(PropBrainError):
    """Raised when required configuration is missing or invalid."""

    code = "configuration_error"


class MissingCredentialsError(ConfigurationError):
    """Raised when required API credentials are not configured."""

    pass


# =============================================================================
# Database Errors
# =============================================================================


class DatabaseError(PropBrainError):
    """Raised when a write against the backing store fails."""

    code = "database_error"


# =============================================================================
# Domain Errors
# =============================================================================


class ValidationError(PropBrainError):
    """Raised when input data is invalid."""

    code = "validation_error"


class NotFoundError(PropBrainError):
    """Raised when a referenced entity does not exist or is not visible."""

    code = "not_found"


class PermissionDeniedError(PropBrainError):
    """Raised when the caller's role or folder access forbids an action."""

    code = "permission_denied"


class FolderRequiredError(PropBrainError):
    """Raised when a property would be created with no folder to hold it."""

    code = "folder_required"


class ConfirmationRequiredError(PropBrainError):
    """Raised when a destructive action is attempted without confirmation."""

    code = "confirmation_required"


class VisitCompletionError(PropBrainError):
    """Raised when the coupled visit/property write of a visit completion fails.

    ``inconsistent`` is True when the compensating write also failed and the
    visit and property no longer agree.
    """

    code = "visit_completion_failed"

    def __init__(self, message: str, visit_id: str, property_id: str, inconsistent: bool = False):
        super().__init__(message)
        self.visit_id = visit_id
        self.property_id = property_id
        self.inconsistent = inconsistent


# =============================================================================
# Intake Errors
# =============================================================================


class IntakeError(PropBrainError):
    """Base exception for intake session errors."""

    code = "intake_error"


class InvalidTransitionError(IntakeError):
    """Raised when an intake action is not allowed in the current stage."""

    code = "invalid_transition"


class CommitBlockedError(IntakeError):
    """Base for conditions that block an intake commit."""

    code = "commit_blocked"


class AddressRequiredError(CommitBlockedError):
    """The exact address is empty."""

    code = "address_required"


class ValidationPendingError(CommitBlockedError):
    """The address validator has not resolved yet."""

    code = "validation_pending"


class AddressConfirmationRequiredError(CommitBlockedError):
    """The address was judged invalid and the user has not confirmed it."""

    code = "address_confirmation_required"


# =============================================================================
# LLM Errors
# =============================================================================


class LLMError(PropBrainError):
    """Base exception for LLM-related errors."""

    code = "llm_error"


class LLMAPIError(LLMError):
    """Raised when the LLM API returns an error."""

    pass


class LLMRateLimitError(LLMAPIError):
    """Raised when the LLM API rate limit is exceeded."""

    pass


class LLMTimeoutError(LLMAPIError):
    """Raised when the LLM API request times out."""

    pass


# =============================================================================
# External Service Errors
# =============================================================================


class ExternalServiceError(PropBrainError):
    """Base exception for all external service errors."""

    code = "external_service_error"


class GeocodeError(ExternalServiceError):
    """Raised when the geocoder lookup fails."""

    pass


class LinkPreviewError(ExternalServiceError):
    """Raised when the screenshot/metadata preview API fails."""

    pass


class RateLimitError(ExternalServiceError):
    """Raised when an external API rate limit is hit."""

    code = "rate_limit_exceeded"


class ServiceUnavailableError(ExternalServiceError):
    """Raised when an external service is temporarily unavailable."""

    code = "service_unavailable"


__all__ = [
    "PropBrainError",
    "ConfigurationError",
    "MissingCredentialsError",
    "DatabaseError",
    "ValidationError",
    "NotFoundError",
    "PermissionDeniedError",
    "FolderRequiredError",
    "ConfirmationRequiredError",
    "VisitCompletionError",
    "IntakeError",
    "InvalidTransitionError",
    "CommitBlockedError",
    "AddressRequiredError",
    "ValidationPendingError",
    "AddressConfirmationRequiredError",
    "LLMError",
    "LLMAPIError",
    "LLMRateLimitError",
    "LLMTimeoutError",
    "ExternalServiceError",
    "GeocodeError",
    "LinkPreviewError",
    "RateLimitError",
    "ServiceUnavailableError",
]
