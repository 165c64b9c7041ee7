"""Utility modules for A3S Context."""

from a3s_context.utils.exceptions import (
    A3SError,
    CollaboratorError,
    ConfigurationError,
    ConflictError,
    DigestGenerationError,
    EmbeddingError,
    InvalidPathwayError,
    LLMError,
    NotFoundError,
    ProviderError,
    SessionError,
    StorageError,
    ValidationError,
    VectorIndexError,
)
from a3s_context.utils.id_generator import generate_node_id, generate_session_id
from a3s_context.utils.locks import KeyedLock
from a3s_context.utils.logger import get_logger, setup_logging
from a3s_context.utils.retry import retry_transient, with_timeout

__all__ = [
    # Logging
    "get_logger",
    "setup_logging",
    # ID Generators
    "generate_node_id",
    "generate_session_id",
    # Concurrency
    "KeyedLock",
    "retry_transient",
    "with_timeout",
    # Exceptions
    "A3SError",
    "InvalidPathwayError",
    "NotFoundError",
    "ConflictError",
    "StorageError",
    "VectorIndexError",
    "ValidationError",
    "ConfigurationError",
    "SessionError",
    "CollaboratorError",
    "EmbeddingError",
    "LLMError",
    "DigestGenerationError",
    "ProviderError",
]
