"""
Pathway addressing.

A pathway is the hierarchical address of a node: `a3s://namespace/seg/seg`.
Parent/child is a pure function of the address; nothing stores back-pointers.
"""

from enum import Enum
from fnmatch import fnmatchcase
from urllib.parse import quote, unquote

from pydantic import BaseModel, ConfigDict, Field, field_validator

from a3s_context.utils.exceptions import InvalidPathwayError

SCHEME = "a3s://"

# Characters left unescaped in the canonical text form (RFC 3986 pchar minus "/")
_SAFE_CHARS = "-._~!$&'()*+,;=:@"


class Namespace(str, Enum):
    """Top-level isolation categories."""

    KNOWLEDGE = "knowledge"
    MEMORY = "memory"
    CAPABILITY = "capability"
    SESSION = "session"

    @property
    def rank(self) -> int:
        """Declaration order, used for pathway ordering."""
        return _NAMESPACE_RANK[self]


_NAMESPACE_RANK = {ns: i for i, ns in enumerate(Namespace)}


def _check_segment(segment: str) -> str:
    if not segment:
        raise InvalidPathwayError("Empty pathway segment")
    if "/" in segment or "\x00" in segment:
        raise InvalidPathwayError(
            f"Pathway segment contains a separator or NUL: {segment!r}",
            context={"segment": segment},
        )
    return segment


def _split_address(text: str) -> tuple[str, list[str]]:
    """Strip scheme and trailing slash, return (namespace text, raw segments)."""
    if not isinstance(text, str):
        raise InvalidPathwayError(f"Pathway must be a string, got {type(text).__name__}")

    body = text.strip()
    if body.startswith(SCHEME):
        body = body[len(SCHEME) :]
    elif "://" in body:
        raise InvalidPathwayError(f"Unknown scheme in pathway: {text!r}", context={"text": text})

    if body.endswith("/"):
        body = body[:-1]
    if not body:
        raise InvalidPathwayError(f"Pathway has no namespace: {text!r}", context={"text": text})

    namespace, *segments = body.split("/")
    return namespace, segments


class Pathway(BaseModel):
    """
    Immutable hierarchical address of a node.

    Equality and hashing are by (namespace, segments). Ordering is
    namespace in declaration order, then segments lexicographically with a
    prefix sorting before its extensions.
    """

    model_config = ConfigDict(frozen=True)

    namespace: Namespace
    segments: tuple[str, ...] = Field(default_factory=tuple)

    @field_validator("segments")
    @classmethod
    def validate_segments(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        for segment in v:
            _check_segment(segment)
        return v

    @classmethod
    def parse(cls, text: "str | Pathway") -> "Pathway":
        """
        Parse a pathway from its text form.

        Accepts `a3s://namespace/seg/...` and the scheme-less
        `namespace/seg/...`. Surrounding whitespace and one trailing slash are
        tolerated; segments are percent-decoded.

        Raises:
            InvalidPathwayError: Unknown namespace, empty segment, or a segment
                that decodes to a separator or NUL
        """
        if isinstance(text, Pathway):
            return text

        raw_namespace, raw_segments = _split_address(text)
        try:
            namespace = Namespace(raw_namespace)
        except ValueError as e:
            raise InvalidPathwayError(
                f"Unknown namespace: {raw_namespace!r}",
                context={"text": text, "namespace": raw_namespace},
            ) from e

        segments = []
        for raw in raw_segments:
            if not raw:
                raise InvalidPathwayError(
                    f"Empty segment in pathway: {text!r}", context={"text": text}
                )
            segments.append(_check_segment(unquote(raw)))

        return cls(namespace=namespace, segments=tuple(segments))

    @classmethod
    def root(cls, namespace: Namespace | str) -> "Pathway":
        return cls(namespace=Namespace(namespace))

    @classmethod
    def knowledge(cls, *segments: str) -> "Pathway":
        return cls(namespace=Namespace.KNOWLEDGE, segments=segments)

    @classmethod
    def memory(cls, *segments: str) -> "Pathway":
        return cls(namespace=Namespace.MEMORY, segments=segments)

    @classmethod
    def capability(cls, *segments: str) -> "Pathway":
        return cls(namespace=Namespace.CAPABILITY, segments=segments)

    @classmethod
    def session(cls, *segments: str) -> "Pathway":
        return cls(namespace=Namespace.SESSION, segments=segments)

    @property
    def depth(self) -> int:
        """Number of segments (0 for a namespace root)."""
        return len(self.segments)

    @property
    def is_root(self) -> bool:
        return not self.segments

    @property
    def name(self) -> str:
        """Last segment, or the namespace name for a root."""
        return self.segments[-1] if self.segments else self.namespace.value

    @property
    def parent(self) -> "Pathway | None":
        if not self.segments:
            return None
        return Pathway(namespace=self.namespace, segments=self.segments[:-1])

    def ancestors(self, max_depth: int | None = None) -> list["Pathway"]:
        """
        Ancestors nearest first, optionally limited to max_depth hops.

        The namespace root is included.
        """
        result = []
        current = self.parent
        while current is not None and (max_depth is None or len(result) < max_depth):
            result.append(current)
            current = current.parent
        return result

    def join(self, *segments: str) -> "Pathway":
        """Append one or more segments."""
        for segment in segments:
            _check_segment(segment)
        return Pathway(namespace=self.namespace, segments=self.segments + tuple(segments))

    def is_ancestor_of(self, other: "Pathway") -> bool:
        return (
            self.namespace == other.namespace
            and len(other.segments) > len(self.segments)
            and other.segments[: len(self.segments)] == self.segments
        )

    def is_descendant_of(self, other: "Pathway") -> bool:
        return other.is_ancestor_of(self)

    def is_parent_of(self, other: "Pathway") -> bool:
        return other.parent == self

    @property
    def sort_key(self) -> tuple[int, tuple[str, ...]]:
        return (self.namespace.rank, self.segments)

    def __lt__(self, other: "Pathway") -> bool:
        if not isinstance(other, Pathway):
            return NotImplemented
        return self.sort_key < other.sort_key

    def __le__(self, other: "Pathway") -> bool:
        if not isinstance(other, Pathway):
            return NotImplemented
        return self.sort_key <= other.sort_key

    def __gt__(self, other: "Pathway") -> bool:
        if not isinstance(other, Pathway):
            return NotImplemented
        return self.sort_key > other.sort_key

    def __ge__(self, other: "Pathway") -> bool:
        if not isinstance(other, Pathway):
            return NotImplemented
        return self.sort_key >= other.sort_key

    def __str__(self) -> str:
        parts = [self.namespace.value]
        parts.extend(quote(segment, safe=_SAFE_CHARS) for segment in self.segments)
        return SCHEME + "/".join(parts)

    def __repr__(self) -> str:
        return f"Pathway({str(self)!r})"


class PathwayPattern:
    """
    Segment-wise glob over pathways.

    - `*` matches exactly one segment
    - a trailing `**` matches zero or more trailing segments
    - other segments may use fnmatch wildcards within the segment (`api*`)
    - the namespace may be `*`

    Example:
        >>> PathwayPattern.compile("a3s://knowledge/docs/**").matches(
        ...     Pathway.parse("a3s://knowledge/docs/api/v2"))
        True
    """

    def __init__(self, namespace: str, segments: tuple[str, ...], recursive: bool, text: str):
        self.namespace = namespace
        self.segments = segments
        self.recursive = recursive
        self.text = text

    @classmethod
    def compile(cls, text: str) -> "PathwayPattern":
        raw_namespace, raw_segments = _split_address(text)
        if raw_namespace != "*":
            try:
                Namespace(raw_namespace)
            except ValueError as e:
                raise InvalidPathwayError(
                    f"Unknown namespace in pattern: {raw_namespace!r}",
                    context={"pattern": text},
                ) from e

        segments = [unquote(raw) for raw in raw_segments]
        if any(not segment for segment in segments):
            raise InvalidPathwayError(f"Empty segment in pattern: {text!r}", context={"pattern": text})

        recursive = bool(segments) and segments[-1] == "**"
        if recursive:
            segments = segments[:-1]
        if "**" in segments:
            raise InvalidPathwayError(
                f"'**' is only allowed as the last segment: {text!r}",
                context={"pattern": text},
            )

        return cls(raw_namespace, tuple(segments), recursive, text.strip())

    def matches(self, pathway: Pathway) -> bool:
        if self.namespace != "*" and pathway.namespace.value != self.namespace:
            return False

        if self.recursive:
            if len(pathway.segments) < len(self.segments):
                return False
        elif len(pathway.segments) != len(self.segments):
            return False

        for pattern, segment in zip(self.segments, pathway.segments):
            if pattern != "*" and not fnmatchcase(segment, pattern):
                return False
        return True

    def __repr__(self) -> str:
        return f"PathwayPattern({self.text!r})"
