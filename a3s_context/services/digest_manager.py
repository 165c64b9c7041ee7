"""
Digest Manager - derives and caches Brief and Summary digests.

Full is the node content itself. Brief and Summary are generated from Full by
an LLM (or an extractive fallback when no LLM is configured) and stored on the
node with the hash of the content they came from, so any content change makes
them stale per level.

Generation is:
- eager at write time when `digest.eager` is set, else lazy on first read
- serialized per node, so concurrent requests never generate the same level twice
- discarded if the content changed while the LLM was working
"""

import asyncio
import re

from a3s_context.config import DigestConfig, DigestReadPolicy
from a3s_context.core.llm.base import LLMProvider
from a3s_context.core.node_store.base import NodeStore
from a3s_context.core.tokenizer import Tokenizer
from a3s_context.models.node import DigestLevel, Node
from a3s_context.models.pathway import Pathway
from a3s_context.models.retrieval import BatchResult, DigestView
from a3s_context.utils.exceptions import (
    A3SError,
    DigestGenerationError,
    LLMError,
    NotFoundError,
    ValidationError,
)
from a3s_context.utils.locks import KeyedLock
from a3s_context.utils.logger import get_logger
from a3s_context.utils.retry import retry_transient, with_timeout

logger = get_logger(__name__)

DEFAULT_LEVELS = frozenset({DigestLevel.BRIEF, DigestLevel.SUMMARY})

# Brief before Summary: a cheap level is available as early as possible
GENERATION_ORDER = (DigestLevel.BRIEF, DigestLevel.SUMMARY)

SENTENCE_END = re.compile(r"[.!?](?=\s)")
MAX_BRIEF_CHARS = 200

BRIEF_PROMPT = """Summarize the following {node_type} in one concise sentence (at most {budget} tokens).
Answer with the sentence only.

{content}"""

SUMMARY_PROMPT = """Provide a summary of the following {node_type} in at most {budget} tokens.
Include the key points, main concepts and important details. Answer with the summary only.

{content}"""


def first_sentence(text: str) -> str:
    """First sentence of text, capped at 200 characters."""
    text = text.strip()
    if not text:
        return ""
    match = SENTENCE_END.search(text)
    end = match.end() if match else len(text)
    return text[: min(end, MAX_BRIEF_CHARS)].strip()


class DigestManager:
    """
    Produces, caches and serves digest levels.

    Args:
        store: Node store holding the nodes
        llm: Digest LLM, or None for the extractive fallback
        tokenizer: Token counter for budgets
        config: Digest configuration
    """

    def __init__(
        self,
        store: NodeStore,
        llm: LLMProvider | None = None,
        tokenizer: Tokenizer | None = None,
        config: DigestConfig | None = None,
    ):
        self.store = store
        self.llm = llm
        self.tokenizer = tokenizer or Tokenizer()
        self.config = config or DigestConfig()

        self._locks = KeyedLock()
        self._pending: dict[Pathway, asyncio.Task] = {}
        # Levels the pending task of a pathway will leave fresh
        self._pending_levels: dict[Pathway, frozenset[DigestLevel]] = {}
        self._background: set[asyncio.Task] = set()
        # pathway -> last background failure
        self.failed: dict[str, str] = {}

    # ═══════════════════════════════════════════════════════════
    # GENERATION
    # ═══════════════════════════════════════════════════════════

    def _budget(self, level: DigestLevel) -> int:
        return self.config.brief_tokens if level == DigestLevel.BRIEF else self.config.summary_tokens

    def _extractive(self, content: str, level: DigestLevel) -> str:
        if level == DigestLevel.BRIEF:
            return self.tokenizer.truncate(first_sentence(content), self.config.brief_tokens)
        return self.tokenizer.truncate(content.strip(), self.config.summary_tokens)

    def _prompt(self, node: Node, level: DigestLevel) -> str:
        template = BRIEF_PROMPT if level == DigestLevel.BRIEF else SUMMARY_PROMPT
        return template.format(
            node_type=node.type.value,
            budget=self._budget(level),
            content=self.tokenizer.truncate(node.content, self.config.max_input_tokens),
        )

    async def _generate(self, node: Node, level: DigestLevel) -> str:
        if not node.content.strip():
            return ""
        if self.llm is None:
            return self._extractive(node.content, level)

        operation = f"digest {level.value} for {node.pathway}"
        prompt = self._prompt(node, level)

        async def call() -> str:
            try:
                return await with_timeout(
                    self.llm.complete(prompt, max_tokens=self._budget(level), temperature=0.0),
                    self.config.timeout,
                    DigestGenerationError,
                    operation,
                )
            except LLMError as e:
                raise DigestGenerationError(
                    f"Failed to generate {operation}: {e}",
                    transient=e.transient,
                    context={"pathway": str(node.pathway), "level": level.value},
                ) from e
            except ValidationError as e:
                raise DigestGenerationError(
                    f"Failed to generate {operation}: {e}",
                    context={"pathway": str(node.pathway), "level": level.value},
                ) from e

        text = await retry_transient(
            call, operation, self.config.max_retries, self.config.retry_delay
        )
        return text.strip()

    async def ensure(
        self, target: Node | Pathway | str, levels: set[DigestLevel] | frozenset | None = None
    ) -> Node:
        """
        Generate every requested level that is absent or stale.

        The node is re-read from the store, so generation always works from
        the durably stored Full content. Content is never modified.

        Args:
            target: Node or pathway
            levels: Subset of {BRIEF, SUMMARY} (default both)

        Returns:
            The node with the requested levels fresh

        Raises:
            NotFoundError: If the node does not exist
            DigestGenerationError: If generation fails, or (transient) if the
                content changed while generating
        """
        pathway = target.pathway if isinstance(target, Node) else Pathway.parse(target)
        wanted = set(levels if levels is not None else DEFAULT_LEVELS)

        async with self._locks.acquire(str(pathway)):
            node = await self.store.get(pathway)
            if node is None:
                raise NotFoundError(f"Node not found: {pathway}", context={"pathway": str(pathway)})

            missing = [level for level in GENERATION_ORDER if level in wanted and node.needs_digest(level)]
            if not missing:
                return node

            source_hash = node.content_hash
            generated = {level: await self._generate(node, level) for level in missing}

            def apply(current: Node) -> None:
                if current.content_hash != source_hash:
                    raise DigestGenerationError(
                        f"Content of {pathway} changed during digest generation",
                        transient=True,
                        context={"pathway": str(pathway)},
                    )
                for level, text in generated.items():
                    current.set_digest(level, text)

            try:
                updated = await self.store.update(pathway, apply)
            except NotFoundError as e:
                raise DigestGenerationError(
                    f"Node {pathway} was deleted during digest generation",
                    context={"pathway": str(pathway)},
                ) from e

        self.failed.pop(str(pathway), None)
        logger.debug(
            f"Generated {', '.join(level.value for level in missing)} for {pathway}",
            extra={
                "pathway": str(pathway),
                "levels": [level.value for level in missing],
                "llm": self.llm is not None,
            },
        )
        return updated

    async def ensure_many(
        self,
        targets: list[Node | Pathway | str],
        levels: set[DigestLevel] | None = None,
        concurrency: int | None = None,
    ) -> BatchResult:
        """
        Ensure digests for many nodes in parallel with bounded concurrency.

        Failures are collected per pathway instead of aborting the batch.
        """
        semaphore = asyncio.Semaphore(max(1, concurrency or self.config.concurrency))
        result = BatchResult()

        async def run(target: Node | Pathway | str) -> None:
            key = str(target.pathway if isinstance(target, Node) else target)
            async with semaphore:
                try:
                    await self.ensure(target, levels)
                    result.succeeded.append(key)
                except A3SError as e:
                    result.failed[key] = str(e)

        await asyncio.gather(*(run(target) for target in targets))

        if result.failed:
            logger.warning(
                f"Digest generation failed for {len(result.failed)}/{len(targets)} node(s)",
                extra={"failed": len(result.failed), "total": len(targets)},
            )
        return result

    # ═══════════════════════════════════════════════════════════
    # READS
    # ═══════════════════════════════════════════════════════════

    async def read(
        self,
        pathway: Pathway | str,
        level: DigestLevel,
        policy: DigestReadPolicy | None = None,
    ) -> DigestView:
        """
        Read a digest level.

        With GENERATE the caller waits until the level is fresh. With
        BEST_EFFORT the current text is returned at once, flagged stale or
        unavailable, and regeneration is scheduled in the background.

        Raises:
            NotFoundError: If the node does not exist
            DigestGenerationError: Under GENERATE, if generation fails
        """
        pathway = Pathway.parse(pathway)
        policy = policy or self.config.read_policy

        node = await self.store.get(pathway)
        if node is None:
            raise NotFoundError(f"Node not found: {pathway}", context={"pathway": str(pathway)})

        if level == DigestLevel.FULL or not node.needs_digest(level):
            return DigestView(pathway=str(pathway), level=level, text=node.get_digest(level))

        if policy == DigestReadPolicy.GENERATE:
            node = await self.ensure(pathway, {level})
            return DigestView(pathway=str(pathway), level=level, text=node.get_digest(level))

        self.schedule(pathway, {level})
        text = node.get_digest(level)
        return DigestView(
            pathway=str(pathway),
            level=level,
            text=text,
            stale=text is not None,
            available=text is not None,
        )

    # ═══════════════════════════════════════════════════════════
    # BACKGROUND REGENERATION
    # ═══════════════════════════════════════════════════════════

    def schedule(self, pathway: Pathway | str, levels: set[DigestLevel] | None = None) -> asyncio.Task:
        """
        Schedule background generation; one pending task per node.

        A request for levels the pending task does not cover queues a
        follow-up task that runs once the pending one has finished.
        """
        pathway = Pathway.parse(pathway)
        wanted = frozenset(levels if levels is not None else DEFAULT_LEVELS)

        pending = self._pending.get(pathway)
        if pending is not None and not pending.done():
            covered = self._pending_levels.get(pathway, frozenset())
            if wanted <= covered:
                return pending
            task = asyncio.create_task(self._after(pending, pathway, wanted - covered))
            wanted = wanted | covered
        else:
            task = asyncio.create_task(self.ensure(pathway, wanted))

        self._pending[pathway] = task
        self._pending_levels[pathway] = wanted
        self._background.add(task)
        task.add_done_callback(lambda t: self._on_background_done(pathway, t))
        return task

    async def _after(
        self, previous: asyncio.Task, pathway: Pathway, levels: frozenset[DigestLevel]
    ) -> Node:
        # previous reports its own failure
        await asyncio.wait({previous})
        return await self.ensure(pathway, levels)

    def _on_background_done(self, pathway: Pathway, task: asyncio.Task) -> None:
        self._background.discard(task)
        if self._pending.get(pathway) is task:
            del self._pending[pathway]
            del self._pending_levels[pathway]
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            self.failed[str(pathway)] = str(error)
            logger.warning(
                f"Background digest generation failed for {pathway}: {error}",
                extra={"pathway": str(pathway), "error_type": type(error).__name__},
            )

    @property
    def pending(self) -> int:
        return len(self._pending)

    async def drain(self) -> None:
        """Wait for all scheduled background generation to finish."""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    async def close(self) -> None:
        for task in list(self._background):
            task.cancel()
        await self.drain()
