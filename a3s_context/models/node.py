"""
Node model with per-level digests and access tracking.
"""

import hashlib
from datetime import UTC, datetime
from enum import Enum

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    computed_field,
    field_serializer,
    field_validator,
    model_validator,
)

from a3s_context.models.pathway import Pathway
from a3s_context.utils.exceptions import ValidationError
from a3s_context.utils.id_generator import generate_node_id


class NodeType(str, Enum):
    """Kinds of stored content."""

    DIRECTORY = "directory"
    DOCUMENT = "document"
    CODE = "code"
    MARKDOWN = "markdown"
    MEMORY = "memory"
    CAPABILITY = "capability"
    MESSAGE = "message"  # Session message container
    DATA = "data"

    @property
    def is_container(self) -> bool:
        """Whether nodes of this type may hold child nodes."""
        return self in CONTAINER_TYPES


CONTAINER_TYPES = frozenset({NodeType.DIRECTORY, NodeType.MESSAGE})


class DigestLevel(str, Enum):
    """Summarization levels, in increasing fidelity."""

    BRIEF = "brief"  # ~50 tokens, relevance triage
    SUMMARY = "summary"  # ~500 tokens, planning
    FULL = "full"  # verbatim content

    @classmethod
    def for_budget(cls, max_tokens: int) -> "DigestLevel":
        """Pick the richest level that fits a token budget."""
        if max_tokens < 100:
            return cls.BRIEF
        if max_tokens < 1000:
            return cls.SUMMARY
        return cls.FULL


class RelationType(str, Enum):
    """Typed links between nodes."""

    REFERENCES = "references"
    DERIVED_FROM = "derived_from"
    RELATED_TO = "related_to"
    DEPENDS_ON = "depends_on"
    CUSTOM = "custom"


def compute_content_hash(content: str) -> str:
    """
    Compute SHA256 hash of content.

    The hash is prefixed with "sha256:" for easy identification of the algorithm used.
    Content is hashed verbatim so that any edit invalidates derived digests.

    Args:
        content: Text content to hash

    Returns:
        Hash string in format "sha256:hexdigest"
    """
    hash_bytes = hashlib.sha256(content.encode("utf-8")).hexdigest()
    return f"sha256:{hash_bytes}"


def _parse_pathway(v):
    if isinstance(v, str):
        return Pathway.parse(v)
    return v


class Relation(BaseModel):
    """Directed link from a node to another pathway."""

    type: RelationType
    target: Pathway
    label: str | None = Field(default=None, description="Name for custom relations")

    @field_validator("target", mode="before")
    @classmethod
    def parse_target(cls, v):
        return _parse_pathway(v)

    @field_serializer("target")
    def serialize_target(self, target: Pathway) -> str:
        return str(target)


class DigestEntry(BaseModel):
    """One generated digest level, bound to the content it was derived from."""

    text: str
    source_hash: str = Field(..., description="content_hash of the content this was derived from")
    generated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


class Digest(BaseModel):
    """Brief and Summary entries of a node. Full is the node content itself."""

    brief: DigestEntry | None = None
    summary: DigestEntry | None = None

    def get(self, level: DigestLevel) -> DigestEntry | None:
        if level == DigestLevel.BRIEF:
            return self.brief
        if level == DigestLevel.SUMMARY:
            return self.summary
        raise ValidationError(f"Digest level {level.value} is not stored separately")

    def set(self, level: DigestLevel, entry: DigestEntry) -> None:
        if level == DigestLevel.BRIEF:
            self.brief = entry
        elif level == DigestLevel.SUMMARY:
            self.summary = entry
        else:
            raise ValidationError(f"Digest level {level.value} is not stored separately")

    def is_stale(self, level: DigestLevel, content_hash: str) -> bool:
        """True if the level exists but was generated from other content."""
        entry = self.get(level)
        return entry is not None and entry.source_hash != content_hash

    def needs_generation(self, level: DigestLevel, content_hash: str) -> bool:
        """True if the level is absent or stale."""
        entry = self.get(level)
        return entry is None or entry.source_hash != content_hash


class Node(BaseModel):
    """
    The unit of stored content.

    The id is derived from the pathway, so a pathway always maps to the same
    id. `content` is the Full digest level; Brief and Summary live in
    `digest` and are stale once `content_hash` moves past their source hash.
    """

    model_config = ConfigDict(json_encoders={datetime: lambda v: v.isoformat()})

    pathway: Pathway
    type: NodeType = NodeType.DOCUMENT
    content: str = ""
    content_hash: str = Field(default="", description="SHA256 of content, recomputed on load")
    digest: Digest = Field(default_factory=Digest)
    embedding: list[float] | None = Field(default=None, description="Vector embedding")

    metadata: dict[str, str] = Field(default_factory=dict)
    tags: list[str] = Field(default_factory=list)
    relations: list[Relation] = Field(default_factory=list)

    # Access tracking
    access_count: int = Field(default=0, ge=0)
    last_accessed: datetime | None = None

    # Timestamps
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @field_validator("pathway", mode="before")
    @classmethod
    def parse_pathway(cls, v):
        return _parse_pathway(v)

    @field_serializer("pathway")
    def serialize_pathway(self, pathway: Pathway) -> str:
        return str(pathway)

    @model_validator(mode="after")
    def sync_content_hash(self) -> "Node":
        self.content_hash = compute_content_hash(self.content)
        return self

    @computed_field
    @property
    def id(self) -> str:
        return generate_node_id(str(self.pathway))

    @property
    def full(self) -> str:
        return self.content

    @property
    def is_container(self) -> bool:
        return self.type.is_container

    @property
    def parent_pathway(self) -> Pathway | None:
        return self.pathway.parent

    def update_content(self, content: str) -> None:
        """
        Replace content.

        Refreshes the hash and timestamp and clears the embedding; digest
        entries are kept but become stale.
        """
        self.content = content
        self.content_hash = compute_content_hash(content)
        self.embedding = None
        self.updated_at = datetime.now(UTC)

    def get_digest(self, level: DigestLevel) -> str | None:
        """Text at a level (possibly stale), None if never generated."""
        if level == DigestLevel.FULL:
            return self.content
        entry = self.digest.get(level)
        return entry.text if entry else None

    def set_digest(self, level: DigestLevel, text: str) -> None:
        """Store a generated level against the current content."""
        self.digest.set(level, DigestEntry(text=text, source_hash=self.content_hash))

    def is_digest_stale(self, level: DigestLevel) -> bool:
        if level == DigestLevel.FULL:
            return False
        return self.digest.is_stale(level, self.content_hash)

    def needs_digest(self, level: DigestLevel) -> bool:
        if level == DigestLevel.FULL:
            return False
        return self.digest.needs_generation(level, self.content_hash)

    def mark_accessed(self) -> None:
        self.access_count += 1
        self.last_accessed = datetime.now(UTC)
