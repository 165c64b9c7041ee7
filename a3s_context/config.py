"""
Configuration for A3S Context.

Supports loading from:
1. Environment variables (highest priority)
2. YAML config file
3. Default values (fallback)

Every component receives its section explicitly at construction; there is no
process-wide config object read by the core.
"""

import os
from enum import Enum
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field


class StorageBackendType(str, Enum):
    """Node store backends."""

    LOCAL = "local"
    MEMORY = "memory"


class SimilarityMetric(str, Enum):
    """Similarity metric used by the vector index."""

    COSINE = "cosine"
    INNER_PRODUCT = "inner_product"


class DigestReadPolicy(str, Enum):
    """What a digest read does when the requested level is absent or stale."""

    GENERATE = "generate"  # suspend the caller until the level is regenerated
    BEST_EFFORT = "best_effort"  # return immediately, flagged, regenerate in background


class EmbedSource(str, Enum):
    """Which representation of a node gets embedded."""

    CONTENT = "content"
    BRIEF = "brief"


class VectorIndexConfig(BaseModel):
    """HNSW index parameters."""

    metric: SimilarityMetric = SimilarityMetric.COSINE
    m: int = Field(default=16, ge=2)
    ef_construction: int = Field(default=200, ge=1)
    ef_search: int = Field(default=64, ge=1)
    seed: int = 42


class StorageConfig(BaseModel):
    """Node store configuration."""

    backend: StorageBackendType = StorageBackendType.LOCAL
    path: str = "./a3s_data"
    vector_index: VectorIndexConfig = Field(default_factory=VectorIndexConfig)


class LLMConfig(BaseModel):
    """LLM provider configuration (digest generation)."""

    provider: str = "none"  # none, ollama, openai
    model: str = "llama3.1:8b"
    base_url: str | None = "http://localhost:11434"
    api_key: str | None = None
    temperature: float = 0.0
    max_tokens: int = 1000
    timeout: float = 120.0


class EmbedderConfig(BaseModel):
    """Embedder configuration."""

    provider: str = "ollama"  # ollama, openai, mock
    model: str = "nomic-embed-text"
    base_url: str | None = "http://localhost:11434"
    api_key: str | None = None
    timeout: float = 120.0
    batch_size: int = 32
    # Optional: embedding dimension (fallback to auto-detect)
    dimension: int | None = None


class TokenizerConfig(BaseModel):
    """Token counting configuration."""

    provider: str = "tiktoken"  # tiktoken, approximate
    model: str = "cl100k_base"
    chars_per_token: float = 4.0


class DigestConfig(BaseModel):
    """Digest lifecycle configuration."""

    eager: bool = True
    read_policy: DigestReadPolicy = DigestReadPolicy.GENERATE
    brief_tokens: int = 50
    summary_tokens: int = 500
    # Max content tokens handed to the LLM per prompt
    max_input_tokens: int = 4000
    concurrency: int = 4
    timeout: float = 120.0
    max_retries: int = Field(default=3, ge=1)
    retry_delay: float = 1.0


class RerankConfig(BaseModel):
    """Reranker provider configuration."""

    provider: str = "mock"  # mock, jina, cohere, openai
    api_base: str | None = None
    api_key: str | None = None
    model: str | None = None
    top_n: int = 10
    timeout: float = 30.0


class RetrievalConfig(BaseModel):
    """Retrieval engine configuration."""

    default_limit: int = 10
    score_threshold: float = 0.5
    hierarchical: bool = True
    max_depth: int = 3
    # Oversampling factor for the vector search
    expansion_factor: int = 3
    # Per-hop decay applied to descendant scores when scoring ancestors
    hierarchy_decay: float = Field(default=0.8, gt=0.0, le=1.0)
    rerank: bool = False
    embed_source: EmbedSource = EmbedSource.CONTENT
    timeout: float = 60.0
    max_retries: int = Field(default=3, ge=1)
    retry_delay: float = 0.5
    concurrency: int = 8
    rerank_config: RerankConfig = Field(default_factory=RerankConfig)


class SessionConfig(BaseModel):
    """Session lifecycle configuration."""

    # Committed sessions older than this are removed by expire(); None disables
    ttl_hours: float | None = None


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "INFO"
    log_to_file: bool = False
    log_dir: str = "logs"
    file_rotation: str = "10 MB"
    file_retention: str = "7 days"
    compression: str = "zip"
    serialize: bool = True


class Config(BaseModel):
    """Main configuration."""

    storage: StorageConfig = Field(default_factory=StorageConfig)
    embedder: EmbedderConfig = Field(default_factory=EmbedderConfig)
    llm: LLMConfig = Field(default_factory=LLMConfig)
    tokenizer: TokenizerConfig = Field(default_factory=TokenizerConfig)
    digest: DigestConfig = Field(default_factory=DigestConfig)
    retrieval: RetrievalConfig = Field(default_factory=RetrievalConfig)
    session: SessionConfig = Field(default_factory=SessionConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def from_env(cls, env_file: str | Path | None = None) -> "Config":
        """
        Load configuration from environment variables.

        Priority: .env file -> system environment variables -> defaults

        Args:
            env_file: Optional path to .env file (default: .env in working directory)

        Returns:
            Config instance

        Environment variables:
            A3S_STORAGE_BACKEND: local or memory
            A3S_STORAGE_PATH: Root directory of the local backend
            A3S_INDEX_METRIC: cosine or inner_product
            A3S_INDEX_M / A3S_INDEX_EF_CONSTRUCTION / A3S_INDEX_EF_SEARCH: HNSW parameters
            A3S_EMBEDDER_PROVIDER / _MODEL / _BASE_URL / _API_KEY / _DIMENSION
            A3S_LLM_PROVIDER / _MODEL / _BASE_URL / _API_KEY
            A3S_DIGEST_EAGER: Generate digests at write time
            A3S_DIGEST_READ_POLICY: generate or best_effort
            A3S_RETRIEVAL_LIMIT / A3S_RETRIEVAL_THRESHOLD / A3S_RETRIEVAL_MAX_DEPTH
            A3S_RERANK / A3S_RERANK_PROVIDER / A3S_RERANK_API_KEY
            A3S_LOG_LEVEL: Log level
        """
        # Load .env file if provided or exists
        if env_file:
            load_dotenv(env_file)
        elif Path(".env").exists():
            load_dotenv()

        def get_env(key: str, default: Any = None) -> Any:
            """Get environment variable with type conversion."""
            value = os.getenv(key)
            if value is None or value == "":
                return default
            if isinstance(default, bool):
                return str(value).lower() in ("true", "1", "yes")
            if isinstance(default, int):
                return int(value)
            if isinstance(default, float):
                return float(value)
            return value

        dimension = get_env("A3S_EMBEDDER_DIMENSION")

        return cls(
            storage=StorageConfig(
                backend=get_env("A3S_STORAGE_BACKEND", "local"),
                path=get_env("A3S_STORAGE_PATH", "./a3s_data"),
                vector_index=VectorIndexConfig(
                    metric=get_env("A3S_INDEX_METRIC", "cosine"),
                    m=get_env("A3S_INDEX_M", 16),
                    ef_construction=get_env("A3S_INDEX_EF_CONSTRUCTION", 200),
                    ef_search=get_env("A3S_INDEX_EF_SEARCH", 64),
                ),
            ),
            embedder=EmbedderConfig(
                provider=get_env("A3S_EMBEDDER_PROVIDER", "ollama"),
                model=get_env("A3S_EMBEDDER_MODEL", "nomic-embed-text"),
                base_url=get_env("A3S_EMBEDDER_BASE_URL", "http://localhost:11434"),
                api_key=get_env("A3S_EMBEDDER_API_KEY"),
                timeout=get_env("A3S_EMBEDDER_TIMEOUT", 120.0),
                dimension=int(dimension) if dimension is not None else None,
            ),
            llm=LLMConfig(
                provider=get_env("A3S_LLM_PROVIDER", "none"),
                model=get_env("A3S_LLM_MODEL", "llama3.1:8b"),
                base_url=get_env("A3S_LLM_BASE_URL", "http://localhost:11434"),
                api_key=get_env("A3S_LLM_API_KEY"),
                temperature=get_env("A3S_LLM_TEMPERATURE", 0.0),
                max_tokens=get_env("A3S_LLM_MAX_TOKENS", 1000),
                timeout=get_env("A3S_LLM_TIMEOUT", 120.0),
            ),
            digest=DigestConfig(
                eager=get_env("A3S_DIGEST_EAGER", True),
                read_policy=get_env("A3S_DIGEST_READ_POLICY", "generate"),
            ),
            retrieval=RetrievalConfig(
                default_limit=get_env("A3S_RETRIEVAL_LIMIT", 10),
                score_threshold=get_env("A3S_RETRIEVAL_THRESHOLD", 0.5),
                hierarchical=get_env("A3S_RETRIEVAL_HIERARCHICAL", True),
                max_depth=get_env("A3S_RETRIEVAL_MAX_DEPTH", 3),
                rerank=get_env("A3S_RERANK", False),
                rerank_config=RerankConfig(
                    provider=get_env("A3S_RERANK_PROVIDER", "mock"),
                    api_base=get_env("A3S_RERANK_API_BASE"),
                    api_key=get_env("A3S_RERANK_API_KEY"),
                    model=get_env("A3S_RERANK_MODEL"),
                    top_n=get_env("A3S_RERANK_TOP_N", 10),
                ),
            ),
            logging=LoggingConfig(
                level=get_env("A3S_LOG_LEVEL", "INFO"),
                log_to_file=get_env("A3S_LOG_TO_FILE", False),
                log_dir=get_env("A3S_LOG_DIR", "logs"),
            ),
        )

    @classmethod
    def from_yaml(cls, yaml_path: str | Path) -> "Config":
        """
        Load configuration from YAML file.

        Args:
            yaml_path: Path to YAML configuration file

        Returns:
            Config instance

        Raises:
            FileNotFoundError: If YAML file doesn't exist
            yaml.YAMLError: If YAML is invalid
        """
        yaml_path = Path(yaml_path)
        if not yaml_path.exists():
            raise FileNotFoundError(f"Config file not found: {yaml_path}")

        with open(yaml_path) as f:
            data = yaml.safe_load(f) or {}

        return cls(**data)

    @classmethod
    def from_env_or_yaml(
        cls, yaml_path: str | Path | None = None, env_file: str | Path | None = None
    ) -> "Config":
        """
        Load configuration with priority: env vars > YAML > defaults.

        Env-derived fields that differ from the defaults override the
        matching YAML fields; other YAML fields in the same section stay.

        Args:
            yaml_path: Optional path to YAML config
            env_file: Optional path to .env file

        Returns:
            Config instance
        """
        if yaml_path and Path(yaml_path).exists():
            with open(yaml_path) as f:
                config_dict = yaml.safe_load(f) or {}
        else:
            config_dict = {}

        env_config = cls.from_env(env_file)
        overrides = _changed_fields(env_config.model_dump(), cls().model_dump())

        return cls(**_deep_merge(config_dict, overrides))


def _changed_fields(values: dict, defaults: dict) -> dict:
    """Entries of values that differ from defaults, recursing into sections."""
    changed = {}
    for key, value in values.items():
        default = defaults.get(key)
        if isinstance(value, dict) and isinstance(default, dict):
            nested = _changed_fields(value, default)
            if nested:
                changed[key] = nested
        elif value != default:
            changed[key] = value
    return changed


def _deep_merge(base: dict, overrides: dict) -> dict:
    merged = dict(base)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged
