"""
Sessions - append-only conversation logs under the session namespace.

A session lives at `a3s://session/<id>` as a single MESSAGE node whose content
is the ordered JSON list of its messages. Messages accumulate in memory on an
open session; `commit()` flushes the whole list with one node write, so a
partial commit is never observable. A committed handle is immutable; re-open
the session by id to continue it.
"""

from collections.abc import Awaitable, Callable
from datetime import UTC, datetime, timedelta

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from a3s_context.config import SessionConfig
from a3s_context.core.node_store.base import NodeStore
from a3s_context.models.node import Node, NodeType
from a3s_context.models.pathway import Namespace, Pathway
from a3s_context.models.session import Message, MessageRole, SessionInfo, SessionState
from a3s_context.utils.exceptions import NotFoundError, SessionError
from a3s_context.utils.id_generator import generate_session_id
from a3s_context.utils.logger import get_logger

logger = get_logger(__name__)

MESSAGE_LIST = TypeAdapter(list[Message])

# Write path for a session node; returns the stored node, or None for a bare store
NodeWriter = Callable[[Node], Awaitable[Node | None]]
# Removal path for a session pathway; returns the number of nodes removed
NodeRemover = Callable[[Pathway], Awaitable[int]]


class Session:
    """Handle on one conversation."""

    def __init__(
        self,
        write: NodeWriter,
        session_id: str,
        messages: list[Message] | None = None,
        created_at: datetime | None = None,
    ):
        self._write = write
        self.session_id = session_id
        self.pathway = Pathway.session(session_id)
        self.created_at = created_at or datetime.now(UTC)
        self._messages: list[Message] = list(messages or [])
        self._state = SessionState.OPEN

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def committed(self) -> bool:
        return self._state == SessionState.COMMITTED

    @property
    def messages(self) -> list[Message]:
        """Copy of the message history, in order."""
        return [m.model_copy() for m in self._messages]

    def add_message(
        self,
        role: MessageRole | str,
        text: str,
        contexts_used: list[str] | None = None,
    ) -> Message:
        """
        Append a message in memory; nothing is written until commit().

        Raises:
            SessionError: If the session is already committed
        """
        if self.committed:
            raise SessionError(
                f"Session {self.session_id} is committed; open it again to continue",
                context={"session_id": self.session_id},
            )
        message = Message(role=MessageRole(role), text=text, contexts_used=contexts_used or [])
        self._messages.append(message)
        return message

    async def commit(self) -> Node:
        """
        Write the full message list as one node.

        On failure the session stays open and can be committed again.

        Returns:
            The stored session node

        Raises:
            SessionError: If the session is already committed
            StorageError: If the write fails
            EmbeddingError: If the session was stored but could not be embedded
        """
        if self.committed:
            raise SessionError(
                f"Session {self.session_id} is already committed",
                context={"session_id": self.session_id},
            )

        node = Node(
            pathway=self.pathway,
            type=NodeType.MESSAGE,
            content=MESSAGE_LIST.dump_json(self._messages).decode("utf-8"),
            metadata={"message_count": str(len(self._messages))},
            created_at=self.created_at,
        )
        stored = await self._write(node)
        if stored is not None:
            node = stored
        self._state = SessionState.COMMITTED

        logger.info(
            f"Committed session {self.session_id} with {len(self._messages)} message(s)",
            extra={"session_id": self.session_id, "message_count": len(self._messages)},
        )
        return node

    def __len__(self) -> int:
        return len(self._messages)

    def __repr__(self) -> str:
        return f"Session({self.session_id!r}, messages={len(self)}, state={self._state.value})"


class SessionManager:
    """
    Opens, lists and removes sessions.

    Args:
        store: Node store holding the session nodes
        config: Session configuration
        write: Write path for committed sessions (defaults to store.put)
        remove: Removal path for deleted sessions (defaults to a store delete)
    """

    def __init__(
        self,
        store: NodeStore,
        config: SessionConfig | None = None,
        write: NodeWriter | None = None,
        remove: NodeRemover | None = None,
    ):
        self.store = store
        self.config = config or SessionConfig()
        self._write = write or store.put
        self._remove = remove or self._delete_from_store

    async def _delete_from_store(self, pathway: Pathway) -> int:
        return await self.store.delete(pathway, recursive=True)

    @staticmethod
    def _decode(node: Node) -> list[Message]:
        if node.type != NodeType.MESSAGE:
            raise SessionError(
                f"{node.pathway} is a {node.type.value} node, not a session",
                context={"pathway": str(node.pathway)},
            )
        if not node.content:
            return []
        try:
            return MESSAGE_LIST.validate_json(node.content)
        except PydanticValidationError as e:
            raise SessionError(
                f"Corrupt session history at {node.pathway}: {e}",
                context={"pathway": str(node.pathway)},
            ) from e

    async def open(self, session_id: str | None = None) -> Session:
        """
        Open a session.

        Args:
            session_id: Existing id to continue, or None for a new session

        Returns:
            Open session; an existing session carries its committed history
            in original order

        Raises:
            InvalidPathwayError: If session_id is not a valid segment
            SessionError: If the id holds something other than a session
        """
        if session_id is None:
            session = Session(self._write, generate_session_id())
            logger.debug(f"Opened new session {session.session_id}")
            return session

        pathway = Pathway.session(session_id)
        node = await self.store.get(pathway)
        if node is None:
            return Session(self._write, session_id)

        messages = self._decode(node)
        logger.debug(
            f"Reopened session {session_id} with {len(messages)} message(s)",
            extra={"session_id": session_id, "message_count": len(messages)},
        )
        return Session(self._write, session_id, messages, created_at=node.created_at)

    async def delete(self, session_id: str) -> bool:
        """Remove a stored session; False if it did not exist."""
        try:
            await self._remove(Pathway.session(session_id))
        except NotFoundError:
            return False
        logger.info(f"Deleted session {session_id}", extra={"session_id": session_id})
        return True

    async def list_sessions(self) -> list[SessionInfo]:
        """Stored sessions in id order."""
        sessions = []
        for node in await self.store.list(Pathway.root(Namespace.SESSION)):
            if node.type != NodeType.MESSAGE:
                continue
            sessions.append(
                SessionInfo(
                    session_id=node.pathway.name,
                    pathway=str(node.pathway),
                    message_count=int(node.metadata.get("message_count", "0")),
                    created_at=node.created_at,
                    updated_at=node.updated_at,
                )
            )
        return sessions

    async def expire(self, ttl_hours: float | None = None) -> list[str]:
        """
        Delete sessions not updated within the TTL.

        Args:
            ttl_hours: Override of config.ttl_hours

        Returns:
            Ids of the removed sessions
        """
        ttl = ttl_hours if ttl_hours is not None else self.config.ttl_hours
        if ttl is None:
            return []

        cutoff = datetime.now(UTC) - timedelta(hours=ttl)
        expired = []
        for info in await self.list_sessions():
            if info.updated_at < cutoff and await self.delete(info.session_id):
                expired.append(info.session_id)

        if expired:
            logger.info(
                f"Expired {len(expired)} session(s)",
                extra={"expired": len(expired), "ttl_hours": ttl},
            )
        return expired
