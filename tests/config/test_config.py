"""
Tests for configuration management.

Tests config loading from:
1. Environment variables
2. YAML files
3. Combined (env overrides YAML)
"""

import os

import pytest
import yaml

from a3s_context.config import (
    Config,
    DigestReadPolicy,
    EmbedderConfig,
    EmbedSource,
    LLMConfig,
    RetrievalConfig,
    SimilarityMetric,
    StorageBackendType,
    VectorIndexConfig,
)


@pytest.fixture
def clean_env(monkeypatch):
    """Remove every A3S_ variable from the environment."""
    for key in list(os.environ.keys()):
        if key.startswith("A3S_"):
            monkeypatch.delenv(key, raising=False)
    return monkeypatch


class TestConfigDefaults:
    """Test default configuration values."""

    def test_default_config_creation(self):
        """Test creating config with defaults."""
        config = Config()

        # Storage defaults
        assert config.storage.backend == StorageBackendType.LOCAL
        assert config.storage.path == "./a3s_data"
        assert config.storage.vector_index.metric == SimilarityMetric.COSINE
        assert config.storage.vector_index.m == 16

        # Providers
        assert config.llm.provider == "none"
        assert config.embedder.provider == "ollama"
        assert config.embedder.dimension is None  # Auto-detect

        # Digests
        assert config.digest.eager is True
        assert config.digest.read_policy == DigestReadPolicy.GENERATE
        assert config.digest.brief_tokens == 50
        assert config.digest.summary_tokens == 500

        # Retrieval
        assert config.retrieval.default_limit == 10
        assert config.retrieval.score_threshold == 0.5
        assert config.retrieval.hierarchical is True
        assert config.retrieval.max_depth == 3
        assert config.retrieval.hierarchy_decay == 0.8
        assert config.retrieval.rerank is False
        assert config.retrieval.embed_source == EmbedSource.CONTENT

        # Sessions never expire by default
        assert config.session.ttl_hours is None

    def test_llm_config_creation(self):
        """Test creating LLM config."""
        llm_config = LLMConfig(
            provider="openai",
            model="gpt-4o",
            api_key="sk-test",
            temperature=0.7,
        )

        assert llm_config.provider == "openai"
        assert llm_config.model == "gpt-4o"
        assert llm_config.api_key == "sk-test"
        assert llm_config.temperature == 0.7

    def test_embedder_config_with_dimension(self):
        """Test embedder config with explicit dimension."""
        embedder_config = EmbedderConfig(
            provider="openai",
            model="text-embedding-3-small",
            dimension=1536,
        )

        assert embedder_config.dimension == 1536

    def test_invalid_values_rejected(self):
        """Test field constraints."""
        with pytest.raises(ValueError):
            RetrievalConfig(hierarchy_decay=0.0)
        with pytest.raises(ValueError):
            VectorIndexConfig(m=1)
        with pytest.raises(ValueError):
            Config(storage={"backend": "redis"})


class TestConfigFromEnv:
    """Test loading configuration from environment variables."""

    def test_from_env_basic(self, clean_env):
        """Test loading basic config from environment."""
        clean_env.setenv("A3S_LLM_PROVIDER", "openai")
        clean_env.setenv("A3S_LLM_MODEL", "gpt-4o-mini")
        clean_env.setenv("A3S_LLM_API_KEY", "sk-test-key")
        clean_env.setenv("A3S_EMBEDDER_PROVIDER", "openai")
        clean_env.setenv("A3S_EMBEDDER_MODEL", "text-embedding-3-small")

        config = Config.from_env()

        assert config.llm.provider == "openai"
        assert config.llm.model == "gpt-4o-mini"
        assert config.llm.api_key == "sk-test-key"
        assert config.embedder.provider == "openai"
        assert config.embedder.model == "text-embedding-3-small"

    def test_from_env_with_numbers(self, clean_env):
        """Test loading numeric values from environment."""
        clean_env.setenv("A3S_LLM_TEMPERATURE", "0.7")
        clean_env.setenv("A3S_LLM_MAX_TOKENS", "4000")
        clean_env.setenv("A3S_EMBEDDER_DIMENSION", "1536")
        clean_env.setenv("A3S_INDEX_EF_SEARCH", "128")
        clean_env.setenv("A3S_RETRIEVAL_THRESHOLD", "0.25")

        config = Config.from_env()

        assert config.llm.temperature == 0.7
        assert config.llm.max_tokens == 4000
        assert config.embedder.dimension == 1536
        assert config.storage.vector_index.ef_search == 128
        assert config.retrieval.score_threshold == 0.25

    def test_from_env_with_booleans(self, clean_env):
        """Test loading boolean values from environment."""
        clean_env.setenv("A3S_DIGEST_EAGER", "false")
        clean_env.setenv("A3S_RETRIEVAL_HIERARCHICAL", "0")
        clean_env.setenv("A3S_RERANK", "yes")

        config = Config.from_env()

        assert config.digest.eager is False
        assert config.retrieval.hierarchical is False
        assert config.retrieval.rerank is True

    def test_from_env_enums(self, clean_env):
        """Test enum-valued settings from environment."""
        clean_env.setenv("A3S_STORAGE_BACKEND", "memory")
        clean_env.setenv("A3S_INDEX_METRIC", "inner_product")
        clean_env.setenv("A3S_DIGEST_READ_POLICY", "best_effort")

        config = Config.from_env()

        assert config.storage.backend == StorageBackendType.MEMORY
        assert config.storage.vector_index.metric == SimilarityMetric.INNER_PRODUCT
        assert config.digest.read_policy == DigestReadPolicy.BEST_EFFORT

    def test_from_env_rerank_config(self, clean_env):
        """Test reranker settings from environment."""
        clean_env.setenv("A3S_RERANK_PROVIDER", "jina")
        clean_env.setenv("A3S_RERANK_API_KEY", "jina-key")
        clean_env.setenv("A3S_RERANK_TOP_N", "5")

        config = Config.from_env()

        assert config.retrieval.rerank_config.provider == "jina"
        assert config.retrieval.rerank_config.api_key == "jina-key"
        assert config.retrieval.rerank_config.top_n == 5

    def test_from_env_with_dotenv_file(self, clean_env, tmp_path):
        """Test loading from .env file."""
        env_file = tmp_path / ".env.test"
        env_file.write_text(
            """
A3S_LLM_PROVIDER=openai
A3S_LLM_MODEL=gpt-4o
A3S_LLM_API_KEY=sk-from-file
A3S_STORAGE_PATH=/var/lib/a3s
"""
        )

        config = Config.from_env(env_file=str(env_file))

        assert config.llm.provider == "openai"
        assert config.llm.model == "gpt-4o"
        assert config.llm.api_key == "sk-from-file"
        assert config.storage.path == "/var/lib/a3s"

    def test_from_env_missing_optional_values(self, clean_env):
        """Test that missing optional values use defaults."""
        clean_env.setenv("A3S_LLM_PROVIDER", "ollama")

        config = Config.from_env()

        assert config.llm.model == "llama3.1:8b"
        assert config.embedder.provider == "ollama"
        assert config.storage.backend == StorageBackendType.LOCAL

    def test_empty_env_vars_use_defaults(self, clean_env):
        """Test that empty env vars don't override defaults."""
        clean_env.setenv("A3S_LLM_PROVIDER", "")

        config = Config.from_env()

        assert config.llm.provider == "none"


class TestConfigFromYAML:
    """Test loading configuration from YAML files."""

    def test_from_yaml_basic(self, tmp_path):
        """Test loading config from YAML file."""
        yaml_file = tmp_path / "config.yaml"
        config_data = {
            "llm": {
                "provider": "openai",
                "model": "gpt-4o",
                "api_key": "sk-yaml-key",
                "temperature": 0.5,
            },
            "embedder": {
                "provider": "openai",
                "model": "text-embedding-3-large",
                "dimension": 3072,
            },
        }
        yaml_file.write_text(yaml.dump(config_data))

        config = Config.from_yaml(str(yaml_file))

        assert config.llm.provider == "openai"
        assert config.llm.api_key == "sk-yaml-key"
        assert config.llm.temperature == 0.5
        assert config.embedder.dimension == 3072

    def test_from_yaml_full_config(self, tmp_path):
        """Test loading nested sections from YAML."""
        yaml_file = tmp_path / "config.yaml"
        config_data = {
            "storage": {
                "backend": "local",
                "path": "/data/a3s",
                "vector_index": {"m": 32, "ef_construction": 400, "ef_search": 100},
            },
            "digest": {"eager": False, "read_policy": "best_effort", "brief_tokens": 40},
            "retrieval": {
                "default_limit": 5,
                "max_depth": 2,
                "hierarchy_decay": 0.5,
                "embed_source": "brief",
                "rerank": True,
                "rerank_config": {"provider": "cohere", "top_n": 3},
            },
            "session": {"ttl_hours": 48},
            "logging": {"level": "DEBUG"},
        }
        yaml_file.write_text(yaml.dump(config_data))

        config = Config.from_yaml(str(yaml_file))

        assert config.storage.path == "/data/a3s"
        assert config.storage.vector_index.m == 32
        assert config.storage.vector_index.ef_construction == 400
        assert config.digest.eager is False
        assert config.digest.read_policy == DigestReadPolicy.BEST_EFFORT
        assert config.digest.brief_tokens == 40
        assert config.retrieval.default_limit == 5
        assert config.retrieval.hierarchy_decay == 0.5
        assert config.retrieval.embed_source == EmbedSource.BRIEF
        assert config.retrieval.rerank_config.provider == "cohere"
        assert config.retrieval.rerank_config.top_n == 3
        assert config.session.ttl_hours == 48
        assert config.logging.level == "DEBUG"

    def test_from_yaml_partial_config(self, tmp_path):
        """Test loading partial config with defaults."""
        yaml_file = tmp_path / "config.yaml"
        yaml_file.write_text(yaml.dump({"llm": {"model": "llama3.2:latest"}}))

        config = Config.from_yaml(str(yaml_file))

        assert config.llm.model == "llama3.2:latest"
        assert config.llm.provider == "none"  # default
        assert config.embedder.model == "nomic-embed-text"  # default

    def test_from_yaml_empty_file(self, tmp_path):
        """Test an empty YAML file yields defaults."""
        yaml_file = tmp_path / "config.yaml"
        yaml_file.write_text("")

        assert Config.from_yaml(str(yaml_file)) == Config()

    def test_from_yaml_file_not_found(self):
        """Test loading from non-existent file."""
        with pytest.raises(FileNotFoundError):
            Config.from_yaml("/nonexistent/config.yaml")

    def test_from_yaml_invalid_yaml(self, tmp_path):
        """Test loading invalid YAML file."""
        yaml_file = tmp_path / "bad.yaml"
        yaml_file.write_text("invalid: yaml: content: [")

        with pytest.raises(yaml.YAMLError):
            Config.from_yaml(str(yaml_file))


class TestConfigFromEnvOrYAML:
    """Test combined loading (env overrides YAML)."""

    def test_env_overrides_yaml(self, tmp_path, clean_env):
        """Test that environment variables override YAML values."""
        yaml_file = tmp_path / "config.yaml"
        config_data = {
            "llm": {"provider": "ollama", "model": "llama3.1:8b", "temperature": 0.0},
            "storage": {"path": "/from/yaml"},
        }
        yaml_file.write_text(yaml.dump(config_data))

        clean_env.setenv("A3S_LLM_PROVIDER", "openai")
        clean_env.setenv("A3S_LLM_MODEL", "gpt-4o")

        config = Config.from_env_or_yaml(yaml_path=str(yaml_file))

        # Environment should win
        assert config.llm.provider == "openai"
        assert config.llm.model == "gpt-4o"
        # YAML value preserved where no env override
        assert config.llm.temperature == 0.0
        assert config.storage.path == "/from/yaml"

    def test_env_override_keeps_other_yaml_fields(self, tmp_path, clean_env):
        """Test one env field does not discard the rest of its YAML section."""
        yaml_file = tmp_path / "config.yaml"
        config_data = {
            "retrieval": {
                "expansion_factor": 7,
                "rerank_config": {"provider": "jina", "top_n": 4},
            },
        }
        yaml_file.write_text(yaml.dump(config_data))

        clean_env.setenv("A3S_RERANK", "true")
        clean_env.setenv("A3S_RERANK_API_KEY", "jina-key")

        config = Config.from_env_or_yaml(yaml_path=str(yaml_file))

        assert config.retrieval.rerank is True
        assert config.retrieval.expansion_factor == 7
        assert config.retrieval.rerank_config.provider == "jina"
        assert config.retrieval.rerank_config.top_n == 4
        assert config.retrieval.rerank_config.api_key == "jina-key"

    def test_yaml_only_when_no_env(self, tmp_path, clean_env):
        """Test YAML values used when no environment variables."""
        yaml_file = tmp_path / "config.yaml"
        config_data = {
            "llm": {"provider": "openai", "model": "gpt-4o-mini"},
            "embedder": {"dimension": 1536},
        }
        yaml_file.write_text(yaml.dump(config_data))

        config = Config.from_env_or_yaml(yaml_path=str(yaml_file))

        assert config.llm.provider == "openai"
        assert config.llm.model == "gpt-4o-mini"
        assert config.embedder.dimension == 1536

    def test_env_only_when_no_yaml(self, clean_env):
        """Test environment values used when no YAML file."""
        clean_env.setenv("A3S_LLM_PROVIDER", "openai")
        clean_env.setenv("A3S_LLM_MODEL", "gpt-4o")

        config = Config.from_env_or_yaml(yaml_path="/nonexistent.yaml")

        assert config.llm.provider == "openai"
        assert config.llm.model == "gpt-4o"

    def test_defaults_when_no_yaml_or_env(self, clean_env):
        """Test defaults used when neither YAML nor env vars."""
        config = Config.from_env_or_yaml(yaml_path="/nonexistent.yaml")

        assert config.llm.provider == "none"
        assert config.embedder.provider == "ollama"
        assert config.storage.backend == StorageBackendType.LOCAL


class TestConfigEdgeCases:
    """Test edge cases."""

    def test_config_mutable_after_creation(self):
        """Test that config can be modified after creation."""
        config = Config()

        config.retrieval.max_depth = 5
        assert config.retrieval.max_depth == 5

    def test_multiple_config_instances_independent(self):
        """Test that multiple config instances are independent."""
        config1 = Config()
        config2 = Config()

        config1.retrieval.default_limit = 1
        config2.retrieval.default_limit = 2

        assert config1.retrieval.default_limit == 1
        assert config2.retrieval.default_limit == 2
