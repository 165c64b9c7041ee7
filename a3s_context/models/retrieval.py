"""
Query, result and bookkeeping models.
"""

from enum import Enum

from pydantic import BaseModel, Field, field_serializer, field_validator

from a3s_context.models.node import DigestLevel, NodeType
from a3s_context.models.pathway import Namespace, Pathway


class MatchSource(str, Enum):
    """How a match entered the candidate set."""

    VECTOR = "vector"  # direct vector search hit
    HIERARCHY = "hierarchy"  # ancestor scored from its matched descendants
    SIBLING = "sibling"  # sibling of a hit, scored against the query


class QueryOptions(BaseModel):
    """
    Options for a retrieval query.

    Fields left as None take the engine's configured defaults.
    """

    namespace: Namespace | None = Field(default=None, description="Restrict to one namespace")
    limit: int | None = Field(default=None, ge=1, description="Max results (default 10)")
    threshold: float | None = Field(default=None, description="Min similarity (default 0.5)")
    include_content: bool = False
    include_summary: bool = False
    pathway_filter: str | None = Field(default=None, description="Glob over pathways")
    hierarchical: bool | None = None
    max_depth: int | None = Field(default=None, ge=0)
    rerank: bool | None = None
    rerank_required: bool = False
    ef: int | None = Field(default=None, ge=1, description="Search beam width override")


class Match(BaseModel):
    """A ranked retrieval result."""

    pathway: Pathway
    node_type: NodeType
    score: float
    via: MatchSource = MatchSource.VECTOR
    brief: str | None = None
    stale_brief: bool = False
    rerank_score: float | None = None
    content: str | None = None
    summary: str | None = None

    @field_validator("pathway", mode="before")
    @classmethod
    def parse_pathway(cls, v):
        return Pathway.parse(v) if isinstance(v, str) else v

    @field_serializer("pathway")
    def serialize_pathway(self, pathway: Pathway) -> str:
        return str(pathway)


class QueryResult(BaseModel):
    """Matches plus diagnostics of the query that produced them."""

    matches: list[Match] = Field(default_factory=list)
    total_candidates: int = 0
    reranked: bool = False
    degraded: list[str] = Field(
        default_factory=list, description="Optional steps that failed and were skipped"
    )
    embed_ms: float = 0.0
    search_ms: float = 0.0

    @property
    def pathways(self) -> list[Pathway]:
        return [m.pathway for m in self.matches]


class RerankDocument(BaseModel):
    """Candidate handed to a reranker."""

    id: str
    text: str


class RerankResult(BaseModel):
    """Reranker verdict for one candidate."""

    id: str
    index: int = Field(..., description="Position of the document in the request")
    score: float


class DigestView(BaseModel):
    """Digest read result, flagged when the text is stale or missing."""

    pathway: str
    level: DigestLevel
    text: str | None = None
    stale: bool = False
    available: bool = True


class BatchResult(BaseModel):
    """Outcome of a bounded-parallel batch operation."""

    succeeded: list[str] = Field(default_factory=list)
    failed: dict[str, str] = Field(default_factory=dict, description="pathway -> error message")

    @property
    def ok(self) -> bool:
        return not self.failed


class StoreStats(BaseModel):
    """Node store statistics."""

    total_nodes: int = 0
    by_namespace: dict[str, int] = Field(default_factory=dict)
    by_type: dict[str, int] = Field(default_factory=dict)
    with_embedding: int = 0
    with_brief: int = 0
    with_summary: int = 0
    stale_digests: int = 0
    content_bytes: int = 0
    index_size: int | None = None
