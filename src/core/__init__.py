"""Core module exports."""
from __future__ import annotations

from core.config import Settings, get_settings, reload_settings
from core.db import Base, SessionLocal, flush_or_raise, get_readonly_session, get_session, init_db
from core.exceptions import (
    # Base
    PropBrainError,
    # Configuration
    ConfigurationError,
    MissingCredentialsError,
    # Database
    DatabaseError,
    # Domain
    ValidationError,
    NotFoundError,
    PermissionDeniedError,
    FolderRequiredError,
    ConfirmationRequiredError,
    VisitCompletionError,
    # Intake
    IntakeError,
    InvalidTransitionError,
    CommitBlockedError,
    AddressRequiredError,
    ValidationPendingError,
    AddressConfirmationRequiredError,
    # LLM
    LLMError,
    LLMAPIError,
    LLMRateLimitError,
    LLMTimeoutError,
    # External Services
    ExternalServiceError,
    GeocodeError,
    LinkPreviewError,
    RateLimitError,
    ServiceUnavailableError,
)
from core.logging_config import (
    setup_logging,
    get_logger,
    get_context_logger,
    external_call,
    JSONFormatter,
    ContextLogger,
)
from core.models import (
    Folder,
    Property,
    RenovationItem,
    Visit,
    PendingLink,
    PropertyDocument,
    FolderShare,
    SharedItinerary,
)
from core.types import CascadeSummary

__all__ = [
    # Config
    "Settings",
    "get_settings",
    "reload_settings",
    # Database
    "Base",
    "SessionLocal",
    "get_session",
    "get_readonly_session",
    "flush_or_raise",
    "init_db",
    # Exceptions
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
    # Logging
    "setup_logging",
    "get_logger",
    "get_context_logger",
    "external_call",
    "JSONFormatter",
    "ContextLogger",
    # Models
    "Folder",
    "Property",
    "RenovationItem",
    "Visit",
    "PendingLink",
    "PropertyDocument",
    "FolderShare",
    "SharedItinerary",
    # Types
    "CascadeSummary",
]
