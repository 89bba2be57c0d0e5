"""Exceptions raised by the vector storage layer."""


class VectorDBError(Exception):
    """Base class for vector storage errors."""


class ConfigurationError(VectorDBError):
    """Raised when the backend or embedder is disabled or misconfigured."""


class InvalidArgumentError(VectorDBError, ValueError):
    """Raised when a required parameter is missing."""


class NamespaceNotFoundError(VectorDBError):
    """Raised when a namespace must exist but does not."""

    def __init__(self, namespace: str | None) -> None:
        super().__init__("Namespace by that name does not exist.")
        self.namespace = namespace


class EmbeddingFailureError(VectorDBError):
    """Raised when the embedder returns no vectors for a non-empty input."""
