from typing import Any, Optional


class TutorAPIException(Exception):
    """Base exception for all tutor gateway errors."""

    pass


class MissingFieldError(TutorAPIException):
    """Raised when a required request field is absent or empty."""

    def __init__(self, field: str, message: Optional[str] = None):
        super().__init__(message or f"{field} is required")
        self.field = field


class AuthRequiredError(TutorAPIException):
    """Raised when an anonymous caller hits an endpoint that needs a signed-in user."""

    def __init__(self, login_url: str):
        super().__init__("Please sign in to continue asking questions.")
        self.login_url = login_url


class QuotaExceededError(TutorAPIException):
    """Raised when the global or per-identity daily budget is exhausted."""

    def __init__(self, message: str, reason: str, metadata: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.reason = reason
        self.metadata = metadata or {}


class ProviderError(TutorAPIException):
    """Base exception for model provider errors."""

    def __init__(self, message: str, provider_name: str = None):
        super().__init__(message)
        self.provider_name = provider_name


class RateLimitError(ProviderError):
    """Raised when a provider's own rate limit or quota is exceeded."""

    pass


class UpstreamUnavailableError(TutorAPIException):
    """Raised when the selected model fails and no further fallback exists."""

    def __init__(self, model_name: str):
        super().__init__(f"{model_name} is currently unavailable. Please try again in a few minutes.")
        self.model_name = model_name


class StorageNotConfiguredError(TutorAPIException):
    """Raised when a storage collaborator has no connection settings."""

    def __init__(self, what: str):
        super().__init__(f"{what} not configured")
        self.what = what
