"""
A3S Context - hierarchical context store and retrieval engine for agents.
"""

from a3s_context.config import Config
from a3s_context.models import (
    DigestLevel,
    Match,
    MessageRole,
    Namespace,
    Node,
    NodeType,
    Pathway,
    QueryOptions,
    QueryResult,
)
from a3s_context.services import ContextEngine, Session, SessionManager

__version__ = "0.1.0"

__all__ = [
    "Config",
    "ContextEngine",
    "DigestLevel",
    "Match",
    "MessageRole",
    "Namespace",
    "Node",
    "NodeType",
    "Pathway",
    "QueryOptions",
    "QueryResult",
    "Session",
    "SessionManager",
]
