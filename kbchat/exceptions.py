"""Exception hierarchy for KBChat.

Startup failures (configuration, store connection, schema) are fatal and
propagate to the CLI. Per-request failures (embedding, completion) are
contained within a single chat turn.
"""


class KBChatError(Exception):
    """Base exception for all KBChat errors."""


class ConfigError(KBChatError, ValueError):
    """Raised when a required setting is missing, a placeholder, or invalid.

    Attributes:
        setting: Name of the offending environment variable.
    """

    def __init__(self, setting: str, message: str | None = None) -> None:
        """Initialize with the offending setting and an optional message."""
        self.setting = setting
        super().__init__(message or f"{setting} is missing or invalid")


class VectorStoreConnectionError(KBChatError, ConnectionError):
    """Raised when the vector store backend cannot be reached."""


class SchemaError(KBChatError):
    """Raised when a collection's vector dimension does not match."""


class IngestionWarning(KBChatError):
    """Raised for a single file or folder that could not be loaded."""


class EmbeddingError(KBChatError):
    """Raised when the embeddings API call fails."""


class CompletionError(KBChatError):
    """Raised when the chat-completion API call fails."""
