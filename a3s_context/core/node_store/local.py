"""
Local filesystem node store.

Layout mirrors the pathway hierarchy:

    <root>/<namespace>/<seg>/<seg>/_node.json

Each record is self-describing (schema version plus every node field, digest
entries and embedding included). Segments are percent-encoded; names starting
with "_" are reserved for records, so a segment beginning with "_" has that
character encoded too.

Writes go to a temporary file in the node directory and are moved into place
with os.replace from a worker thread. The locked write section is shielded
from cancellation: once started it completes, and the read cache is updated
only after the file is in place.
"""

import asyncio
import json
import os
from pathlib import Path
from urllib.parse import quote
from uuid import uuid4

from pydantic import ValidationError as PydanticValidationError

from a3s_context.core.node_store.memory import InMemoryNodeStore
from a3s_context.models.node import Node
from a3s_context.models.pathway import Pathway
from a3s_context.utils.exceptions import StorageError
from a3s_context.utils.logger import get_logger

logger = get_logger(__name__)

RECORD_FILE = "_node.json"
TEMP_PREFIX = f"{RECORD_FILE}.tmp-"
SCHEMA_VERSION = 1


def encode_segment(segment: str) -> str:
    """Map a pathway segment to a safe directory name."""
    encoded = quote(segment, safe="")
    if encoded in (".", ".."):
        return encoded.replace(".", "%2E")
    if encoded.startswith("_"):
        return "%5F" + encoded[1:]
    return encoded


class LocalNodeStore(InMemoryNodeStore):
    """
    Node store persisted as one JSON record per node directory.

    All records are loaded into the in-memory map by initialize(); reads are
    served from it and never touch the disk.
    """

    def __init__(self, root: str | Path = "./a3s_data"):
        """
        Initialize local node store.

        Args:
            root: Storage root directory
        """
        super().__init__()
        self.root = Path(root)

    def _node_dir(self, pathway: Pathway) -> Path:
        path = self.root / pathway.namespace.value
        for segment in pathway.segments:
            path = path / encode_segment(segment)
        return path

    def record_path(self, pathway: Pathway) -> Path:
        return self._node_dir(pathway) / RECORD_FILE

    async def initialize(self) -> None:
        """Create the root directory and load every record into memory."""
        try:
            records = await asyncio.to_thread(self._scan)
        except OSError as e:
            logger.error(
                f"Failed to open node store at {self.root}: {e}",
                extra={"root": str(self.root), "error_type": type(e).__name__},
            )
            raise StorageError(f"Failed to open node store at {self.root}: {e}") from e

        for node in records:
            self._commit(node)

        logger.info(
            f"Loaded {len(records)} node(s) from {self.root}",
            extra={"root": str(self.root), "count": len(records)},
        )

    def _scan(self) -> list[Node]:
        self.root.mkdir(parents=True, exist_ok=True)

        # Leftovers of writes interrupted by a crash
        for temp in self.root.rglob(f"{TEMP_PREFIX}*"):
            temp.unlink(missing_ok=True)

        nodes = []
        for record in sorted(self.root.rglob(RECORD_FILE)):
            nodes.append(self._read_record(record))
        return nodes

    def _read_record(self, record: Path) -> Node:
        try:
            data = json.loads(record.read_text(encoding="utf-8"))
            version = data.get("schema_version")
            if version != SCHEMA_VERSION:
                raise StorageError(
                    f"Unsupported record schema version {version} in {record}",
                    context={"path": str(record), "schema_version": version},
                )
            return Node.model_validate(data["node"])
        except (json.JSONDecodeError, KeyError, PydanticValidationError) as e:
            raise StorageError(
                f"Corrupt node record {record}: {e}", context={"path": str(record)}
            ) from e

    # ═══════════════════════════════════════════════════════════
    # PERSISTENCE HOOKS
    # ═══════════════════════════════════════════════════════════

    async def _persist(self, node: Node) -> None:
        payload = json.dumps(
            {"schema_version": SCHEMA_VERSION, "node": node.model_dump(mode="json")},
            ensure_ascii=False,
            indent=2,
        )
        path = self.record_path(node.pathway)
        try:
            await asyncio.to_thread(self._write_record, path, payload)
        except OSError as e:
            logger.error(
                f"Failed to write node {node.pathway}: {e}",
                extra={"pathway": str(node.pathway), "path": str(path)},
            )
            raise StorageError(
                f"Failed to write node {node.pathway}: {e}",
                context={"pathway": str(node.pathway), "path": str(path)},
            ) from e

    @staticmethod
    def _write_record(path: Path, payload: str) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        temp = path.with_name(f"{TEMP_PREFIX}{uuid4().hex}")
        try:
            with open(temp, "w", encoding="utf-8") as f:
                f.write(payload)
                f.flush()
                os.fsync(f.fileno())
            os.replace(temp, path)
        except BaseException:
            temp.unlink(missing_ok=True)
            raise

    async def _unpersist(self, pathway: Pathway) -> None:
        try:
            await asyncio.to_thread(self._remove_record, pathway)
        except OSError as e:
            logger.error(
                f"Failed to delete node {pathway}: {e}",
                extra={"pathway": str(pathway), "path": str(self.record_path(pathway))},
            )
            raise StorageError(
                f"Failed to delete node {pathway}: {e}",
                context={"pathway": str(pathway), "path": str(self.record_path(pathway))},
            ) from e

    def _remove_record(self, pathway: Pathway) -> None:
        self.record_path(pathway).unlink(missing_ok=True)
        self._prune_empty_dirs(self._node_dir(pathway))

    def _prune_empty_dirs(self, directory: Path) -> None:
        namespace_dir_depth = len(self.root.parts) + 1
        while len(directory.parts) > namespace_dir_depth:
            try:
                directory.rmdir()
            except OSError:
                # Not empty, or already gone
                return
            directory = directory.parent
