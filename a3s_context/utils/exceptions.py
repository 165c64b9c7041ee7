"""
Custom exception hierarchy for A3S Context.

Provides structured error types for storage, indexing and the external
collaborators (embedder, digest LLM, reranker). All exceptions inherit from
A3SError for easy catching.
"""


class A3SError(Exception):
    """
    Base exception for all A3S Context errors.
    All custom exceptions should inherit from this class.
    """

    def __init__(self, message: str, context: dict | None = None):
        """
        Initialize A3S error.
        Args:
            message: Error message
            context: Optional context dictionary with additional error details
        """
        super().__init__(message)
        self.message = message
        self.context = context or {}


class InvalidPathwayError(A3SError):
    """
    Malformed address.
    Caller error, never retried.
    """

    pass


class NotFoundError(A3SError):
    """
    Resource not found errors.
    Raised when a requested node or pathway doesn't exist.
    """

    pass


class ConflictError(NotFoundError):
    """
    Operation conflicts with the current tree shape.
    Raised when a non-recursive delete targets a pathway that has children.
    """

    pass


class StorageError(A3SError):
    """
    Node store I/O errors.
    Retryable at the caller's discretion; never leaves a half-written record.
    """

    pass


class VectorIndexError(A3SError):
    """
    Vector index inconsistency (dimension mismatch, non-finite values).
    Fatal to the operation, not to the process.
    """

    pass


class ValidationError(A3SError):
    """
    Validation errors.
    Raised when input validation fails or data is invalid.
    """

    pass


class ConfigurationError(A3SError):
    """
    Configuration errors.
    Raised when configuration is invalid or missing required values.
    """

    pass


class SessionError(A3SError):
    """
    Session lifecycle errors.
    Raised when a committed session is mutated or committed again.
    """

    pass


class CollaboratorError(A3SError):
    """
    Failure of an external collaborator call.

    `transient` distinguishes rate limits, timeouts and outages (retryable
    with backoff) from invalid input or auth failures (surfaced immediately).
    """

    def __init__(self, message: str, transient: bool = False, context: dict | None = None):
        super().__init__(message, context)
        self.transient = transient


class EmbeddingError(CollaboratorError):
    """
    Embedding generation errors.
    Raised when embedding generation fails.
    """

    pass


class LLMError(CollaboratorError):
    """
    LLM operation errors.
    Raised when LLM operations fail (API errors, timeouts, etc.).
    """

    pass


class DigestGenerationError(CollaboratorError):
    """
    Digest generation errors.
    Raised by the digest manager when a Brief or Summary cannot be produced.
    """

    pass


class ProviderError(CollaboratorError):
    """
    Reranker provider errors.
    """

    pass
