"""
Services for A3S Context.

High-level services:
- ContextEngine: Unified interface for all context operations
- DigestManager: Brief/Summary generation, caching and staleness
- RetrievalEngine: Vector + hierarchical search with reranking
- SessionManager / Session: Conversation logs under a3s://session
"""

from a3s_context.services.context_engine import ContextEngine
from a3s_context.services.digest_manager import DigestManager
from a3s_context.services.retrieval_engine import RetrievalEngine
from a3s_context.services.session import Session, SessionManager

__all__ = [
    "ContextEngine",
    "DigestManager",
    "RetrievalEngine",
    "Session",
    "SessionManager",
]
