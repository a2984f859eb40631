class DomainError(Exception):
    """Base class for domain-specific errors."""

    pass


class ConfigurationError(DomainError):
    """Exception raised when the application cannot start with current settings."""

    pass


class ConversationNotFoundError(DomainError):
    """Exception raised when a conversation id is unknown."""

    pass
