"""Error taxonomy of the context vector pipeline.

Clients raise the typed errors below; only the service boundary
(ContextVectorService) converts them into OperationResult values.
ConfigurationError is the one kind allowed to escape, at startup.
"""

from enum import Enum


class ErrorKind(str, Enum):
    """Classification used by OperationResult and the boundary log lines."""

    EXTRACTION_SKIPPED = "extraction_skipped"
    EMBEDDING_PROVIDER_FAILURE = "embedding_provider_failure"
    STORE_FAILURE = "store_failure"


class ContextVectorError(Exception):
    """Base class for every error raised inside the pipeline."""

    kind: ErrorKind | None = None

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class EmbeddingProviderError(ContextVectorError):
    """The embedding provider rejected a request, was unreachable or answered with an unusable body."""

    kind = ErrorKind.EMBEDDING_PROVIDER_FAILURE


class StoreError(ContextVectorError):
    """The vector store failed a create, exists, upsert, delete or search call."""

    kind = ErrorKind.STORE_FAILURE


class ConfigurationError(ContextVectorError):
    """Connection parameters could not be resolved or verified at startup."""
