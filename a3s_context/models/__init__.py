"""
Data models for A3S Context.

Core models:
- Pathway, Namespace, PathwayPattern: hierarchical addressing
- Node, NodeType: stored content with Brief/Summary digests
- Digest, DigestEntry, DigestLevel: per-level digests with staleness
- Relation, RelationType: typed links between pathways
- Message, MessageRole, SessionState, SessionInfo: conversation sessions
- QueryOptions, Match, QueryResult: retrieval
- RerankDocument, RerankResult: reranker contract
- DigestView, BatchResult, StoreStats: bookkeeping
"""

from a3s_context.models.node import (
    CONTAINER_TYPES,
    Digest,
    DigestEntry,
    DigestLevel,
    Node,
    NodeType,
    Relation,
    RelationType,
    compute_content_hash,
)
from a3s_context.models.pathway import SCHEME, Namespace, Pathway, PathwayPattern
from a3s_context.models.retrieval import (
    BatchResult,
    DigestView,
    Match,
    MatchSource,
    QueryOptions,
    QueryResult,
    RerankDocument,
    RerankResult,
    StoreStats,
)
from a3s_context.models.session import Message, MessageRole, SessionInfo, SessionState

__all__ = [
    # Addressing
    "SCHEME",
    "Namespace",
    "Pathway",
    "PathwayPattern",
    # Nodes
    "Node",
    "NodeType",
    "CONTAINER_TYPES",
    "Digest",
    "DigestEntry",
    "DigestLevel",
    "Relation",
    "RelationType",
    "compute_content_hash",
    # Sessions
    "Message",
    "MessageRole",
    "SessionInfo",
    "SessionState",
    # Retrieval
    "QueryOptions",
    "Match",
    "MatchSource",
    "QueryResult",
    "RerankDocument",
    "RerankResult",
    # Bookkeeping
    "DigestView",
    "BatchResult",
    "StoreStats",
]
