"""Domain exceptions raised by services and translated by the API layer."""


class EmailFlowError(Exception):
    """Base class for EmailFlow errors."""


class IntegrationUnavailableError(EmailFlowError):
    """Raised when a required integration connection is missing, inactive or expired."""

    def __init__(self, provider: str, reason: str):
        self.provider = provider
        self.reason = reason
        super().__init__(f"{provider} connection unavailable: {reason}")


class InvalidEmailError(EmailFlowError):
    """Raised when an email cannot be used for the requested operation."""


class VariantsExistError(InvalidEmailError):
    """Raised when variants are generated for an email that already has them."""


class OAuthError(EmailFlowError):
    """Raised when an OAuth code exchange or token refresh fails."""
