"""
Tests for the digest manager.

Tests cover:
1. Extractive fallback without an LLM
2. LLM generation, idempotence and staleness
3. Error mapping and transient retries
4. Read policies and background regeneration
5. Batch generation
"""

import asyncio
from unittest.mock import AsyncMock

import pytest

from a3s_context.config import DigestConfig, DigestReadPolicy, TokenizerConfig
from a3s_context.core.llm.base import LLMProvider
from a3s_context.core.tokenizer import Tokenizer
from a3s_context.models.node import DigestLevel, Node
from a3s_context.services.digest_manager import DigestManager, first_sentence
from a3s_context.utils.exceptions import DigestGenerationError, LLMError, NotFoundError

PATHWAY = "a3s://knowledge/docs/guide"
CONTENT = "Tokens expire after one hour. Refresh them with the refresh endpoint."


@pytest.fixture
def llm():
    """Mock LLM answering every prompt with a fixed digest."""
    mock = AsyncMock(spec=LLMProvider)
    mock.complete.return_value = "  Generated digest.  "
    return mock


@pytest.fixture
def make_manager(store):
    def factory(llm=None, **digest) -> DigestManager:
        return DigestManager(
            store,
            llm=llm,
            tokenizer=Tokenizer(TokenizerConfig(provider="approximate")),
            config=DigestConfig(retry_delay=0.0, **digest),
        )

    return factory


@pytest.mark.unit
class TestFirstSentence:
    """Tests for the extractive sentence splitter."""

    def test_first_sentence(self):
        assert first_sentence(CONTENT) == "Tokens expire after one hour."

    def test_no_terminator(self):
        assert first_sentence("  a single line  ") == "a single line"

    def test_capped_length(self):
        assert len(first_sentence("word " * 100)) <= 200

    def test_empty(self):
        assert first_sentence("   ") == ""


@pytest.mark.unit
@pytest.mark.asyncio
class TestEnsure:
    """Tests for generating digest levels."""

    async def test_extractive_without_llm(self, store, make_manager):
        """Test brief is the first sentence and summary the content."""
        await store.put(Node(pathway=PATHWAY, content=CONTENT))
        manager = make_manager()

        node = await manager.ensure(PATHWAY)

        assert node.get_digest(DigestLevel.BRIEF) == "Tokens expire after one hour."
        assert node.get_digest(DigestLevel.SUMMARY) == CONTENT
        assert not node.needs_digest(DigestLevel.BRIEF)
        assert not node.needs_digest(DigestLevel.SUMMARY)

    async def test_summary_truncated_to_budget(self, store, make_manager):
        """Test the extractive summary respects summary_tokens."""
        await store.put(Node(pathway=PATHWAY, content="word " * 400))
        manager = make_manager(summary_tokens=10)

        node = await manager.ensure(PATHWAY, {DigestLevel.SUMMARY})

        assert len(node.get_digest(DigestLevel.SUMMARY)) <= 40

    async def test_missing_node(self, make_manager):
        """Test ensuring a missing node raises NotFoundError."""
        with pytest.raises(NotFoundError):
            await make_manager().ensure("a3s://knowledge/missing")

    async def test_llm_generation_stripped(self, store, make_manager, llm):
        """Test LLM output is stored without surrounding whitespace."""
        await store.put(Node(pathway=PATHWAY, content=CONTENT))
        manager = make_manager(llm)

        node = await manager.ensure(PATHWAY)

        assert node.get_digest(DigestLevel.BRIEF) == "Generated digest."
        assert node.get_digest(DigestLevel.SUMMARY) == "Generated digest."
        assert llm.complete.call_count == 2

    async def test_budget_passed_to_llm(self, store, make_manager, llm):
        """Test the brief prompt is bounded by brief_tokens."""
        await store.put(Node(pathway=PATHWAY, content=CONTENT))
        manager = make_manager(llm, brief_tokens=30)

        await manager.ensure(PATHWAY, {DigestLevel.BRIEF})

        args, kwargs = llm.complete.call_args
        assert kwargs["max_tokens"] == 30
        assert CONTENT in args[0]

    async def test_fresh_levels_not_regenerated(self, store, make_manager, llm):
        """Test ensure is idempotent while content is unchanged."""
        await store.put(Node(pathway=PATHWAY, content=CONTENT))
        manager = make_manager(llm)

        await manager.ensure(PATHWAY)
        await manager.ensure(PATHWAY)

        assert llm.complete.call_count == 2

    async def test_content_change_makes_digest_stale(self, store, make_manager, llm):
        """Test a content update triggers regeneration."""
        await store.put(Node(pathway=PATHWAY, content=CONTENT))
        manager = make_manager(llm)
        await manager.ensure(PATHWAY)

        updated = await store.update(PATHWAY, lambda n: n.update_content("New content."))
        assert updated.is_digest_stale(DigestLevel.BRIEF)

        node = await manager.ensure(PATHWAY)

        assert llm.complete.call_count == 4
        assert not node.is_digest_stale(DigestLevel.BRIEF)
        assert node.content == "New content."

    async def test_concurrent_ensure_generates_once(self, store, make_manager, llm):
        """Test concurrent requests for one node share a single generation."""
        await store.put(Node(pathway=PATHWAY, content=CONTENT))
        manager = make_manager(llm)

        await asyncio.gather(*(manager.ensure(PATHWAY) for _ in range(5)))

        assert llm.complete.call_count == 2

    async def test_content_never_modified(self, store, make_manager, llm):
        """Test generation leaves Full content untouched."""
        await store.put(Node(pathway=PATHWAY, content=CONTENT))

        node = await make_manager(llm).ensure(PATHWAY)

        assert node.content == CONTENT
        assert node.get_digest(DigestLevel.FULL) == CONTENT


@pytest.mark.unit
@pytest.mark.asyncio
class TestEnsureErrors:
    """Tests for generation failures."""

    async def test_permanent_llm_error(self, store, make_manager, llm):
        """Test permanent LLM errors are wrapped without retrying."""
        await store.put(Node(pathway=PATHWAY, content=CONTENT))
        llm.complete.side_effect = LLMError("invalid model")

        with pytest.raises(DigestGenerationError) as exc_info:
            await make_manager(llm).ensure(PATHWAY)

        assert exc_info.value.transient is False
        assert llm.complete.call_count == 1
        assert (await store.get(PATHWAY)).digest.brief is None

    async def test_transient_llm_error_retried(self, store, make_manager, llm):
        """Test transient errors are retried and then succeed."""
        await store.put(Node(pathway=PATHWAY, content=CONTENT))
        llm.complete.side_effect = [LLMError("rate limited", transient=True), "Brief.", "Summary."]

        node = await make_manager(llm).ensure(PATHWAY)

        assert llm.complete.call_count == 3
        assert node.get_digest(DigestLevel.BRIEF) == "Brief."
        assert node.get_digest(DigestLevel.SUMMARY) == "Summary."

    async def test_transient_exhausted(self, store, make_manager, llm):
        """Test retries stop at max_retries."""
        await store.put(Node(pathway=PATHWAY, content=CONTENT))
        llm.complete.side_effect = LLMError("overloaded", transient=True)

        with pytest.raises(DigestGenerationError) as exc_info:
            await make_manager(llm, max_retries=2).ensure(PATHWAY)

        assert exc_info.value.transient is True
        assert llm.complete.call_count == 2

    async def test_content_changed_during_generation(self, store, make_manager, llm):
        """Test a digest computed from superseded content is discarded."""
        await store.put(Node(pathway=PATHWAY, content=CONTENT))

        async def edit_while_generating(prompt, **kwargs):
            await store.update(PATHWAY, lambda n: n.update_content("Edited meanwhile."))
            return "Outdated brief."

        llm.complete.side_effect = edit_while_generating

        with pytest.raises(DigestGenerationError) as exc_info:
            await make_manager(llm).ensure(PATHWAY, {DigestLevel.BRIEF})

        assert exc_info.value.transient is True
        node = await store.get(PATHWAY)
        assert node.content == "Edited meanwhile."
        assert node.digest.brief is None


@pytest.mark.unit
@pytest.mark.asyncio
class TestRead:
    """Tests for read policies."""

    async def test_read_full(self, store, make_manager, llm):
        """Test Full is served from content without generation."""
        await store.put(Node(pathway=PATHWAY, content=CONTENT))

        view = await make_manager(llm).read(PATHWAY, DigestLevel.FULL)

        assert view.text == CONTENT
        assert view.available and not view.stale
        llm.complete.assert_not_called()

    async def test_read_missing(self, make_manager):
        """Test reading a missing node raises NotFoundError."""
        with pytest.raises(NotFoundError):
            await make_manager().read("a3s://knowledge/missing", DigestLevel.BRIEF)

    async def test_generate_policy_waits(self, store, make_manager, llm):
        """Test GENERATE returns a fresh digest."""
        await store.put(Node(pathway=PATHWAY, content=CONTENT))

        view = await make_manager(llm).read(PATHWAY, DigestLevel.BRIEF, DigestReadPolicy.GENERATE)

        assert view.text == "Generated digest."
        assert view.available and not view.stale
        assert llm.complete.call_count == 1

    async def test_best_effort_absent(self, store, make_manager):
        """Test BEST_EFFORT marks a never-generated level unavailable."""
        await store.put(Node(pathway=PATHWAY, content=CONTENT))
        manager = make_manager()

        view = await manager.read(PATHWAY, DigestLevel.BRIEF, DigestReadPolicy.BEST_EFFORT)

        assert view.text is None
        assert view.available is False
        assert view.stale is False

        await manager.drain()
        refreshed = await manager.read(PATHWAY, DigestLevel.BRIEF, DigestReadPolicy.BEST_EFFORT)
        assert refreshed.text == "Tokens expire after one hour."
        assert refreshed.available and not refreshed.stale

    async def test_best_effort_stale(self, store, make_manager):
        """Test BEST_EFFORT returns the stale text flagged, then refreshes it."""
        await store.put(Node(pathway=PATHWAY, content=CONTENT))
        manager = make_manager()
        await manager.ensure(PATHWAY)
        await store.update(PATHWAY, lambda n: n.update_content("Rotated keys. Nothing else."))

        view = await manager.read(PATHWAY, DigestLevel.BRIEF, DigestReadPolicy.BEST_EFFORT)

        assert view.text == "Tokens expire after one hour."
        assert view.stale is True
        assert view.available is True

        await manager.drain()
        assert manager.pending == 0
        assert (await manager.read(PATHWAY, DigestLevel.BRIEF)).text == "Rotated keys."

    async def test_best_effort_second_level_queued(self, store, make_manager):
        """Test a level requested while another is pending is still generated."""
        await store.put(Node(pathway=PATHWAY, content=CONTENT))
        manager = make_manager()

        await manager.read(PATHWAY, DigestLevel.BRIEF, DigestReadPolicy.BEST_EFFORT)
        view = await manager.read(PATHWAY, DigestLevel.SUMMARY, DigestReadPolicy.BEST_EFFORT)
        assert view.available is False

        await manager.drain()

        node = await store.get(PATHWAY)
        assert node.get_digest(DigestLevel.BRIEF) == "Tokens expire after one hour."
        assert node.get_digest(DigestLevel.SUMMARY) == CONTENT
        assert manager.pending == 0

    async def test_schedule_reuses_covering_task(self, store, make_manager):
        """Test a request covered by the pending task does not queue another."""
        await store.put(Node(pathway=PATHWAY, content=CONTENT))
        manager = make_manager()

        first = manager.schedule(PATHWAY)
        again = manager.schedule(PATHWAY, {DigestLevel.BRIEF})
        follow_up = manager.schedule("a3s://knowledge/docs/guide", {DigestLevel.SUMMARY})

        assert again is first
        assert follow_up is first
        await manager.drain()

    async def test_schedule_follow_up_task(self, store, make_manager):
        """Test an uncovered level gets a task that runs after the pending one."""
        await store.put(Node(pathway=PATHWAY, content=CONTENT))
        manager = make_manager()

        first = manager.schedule(PATHWAY, {DigestLevel.BRIEF})
        second = manager.schedule(PATHWAY, {DigestLevel.SUMMARY})

        assert second is not first
        node = await second
        assert first.done()
        assert node.get_digest(DigestLevel.SUMMARY) == CONTENT
        await manager.drain()
        assert manager.pending == 0

    async def test_background_failure_recorded(self, store, make_manager, llm):
        """Test a failed background generation is recorded, not raised."""
        await store.put(Node(pathway=PATHWAY, content=CONTENT))
        llm.complete.side_effect = LLMError("invalid model")
        manager = make_manager(llm)

        view = await manager.read(PATHWAY, DigestLevel.SUMMARY, DigestReadPolicy.BEST_EFFORT)
        await manager.drain()

        assert view.available is False
        assert PATHWAY in manager.failed

    async def test_default_policy_from_config(self, store, make_manager):
        """Test the configured read policy applies when none is given."""
        await store.put(Node(pathway=PATHWAY, content=CONTENT))
        manager = make_manager(read_policy=DigestReadPolicy.BEST_EFFORT)

        view = await manager.read(PATHWAY, DigestLevel.BRIEF)

        assert view.available is False
        await manager.close()


@pytest.mark.unit
@pytest.mark.asyncio
class TestEnsureMany:
    """Tests for batch generation."""

    async def test_collects_failures(self, store, make_manager):
        """Test one failing node does not abort the batch."""
        await store.put(Node(pathway="a3s://knowledge/a", content="Alpha. More."))
        await store.put(Node(pathway="a3s://knowledge/b", content="Beta. More."))

        result = await make_manager().ensure_many(
            ["a3s://knowledge/a", "a3s://knowledge/missing", "a3s://knowledge/b"], concurrency=2
        )

        assert sorted(result.succeeded) == ["a3s://knowledge/a", "a3s://knowledge/b"]
        assert list(result.failed) == ["a3s://knowledge/missing"]
        assert result.ok is False
        assert (await store.get("a3s://knowledge/b")).get_digest(DigestLevel.BRIEF) == "Beta."
