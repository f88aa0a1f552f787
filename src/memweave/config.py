from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, SecretStr


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="MEMWEAVE_",
        extra="ignore"
    )

    DB_URL: str = Field(
        "sqlite:///.memweave/intelligence.db",
        description="SQLAlchemy URL of the intelligence store"
    )
    LOG_LEVEL: str = Field("INFO", description="Root log level")

    # Embeddings
    EMBEDDING_DIM: int = Field(384, description="Dimension every stored vector must have")
    EMBEDDING_PROVIDER: str = Field("hash", description="'hash' (offline) or 'openai'")
    OPENAI_API_KEY: SecretStr | None = Field(None, description="OpenAI API Key")
    OPENAI_EMBEDDING_MODEL: str = Field(
        "text-embedding-3-small",
        description="Model for embeddings (must support the dimensions parameter)"
    )
    BACKFILL_MEMORY_EMBEDDINGS: bool = Field(
        False,
        description="Write generated vectors back onto memories that had none"
    )

    # Semantic edges, per-interaction call site
    EVENT_SAME_TYPE_THRESHOLD: float = Field(0.85)
    EVENT_CROSS_TYPE_THRESHOLD: float = Field(0.55)
    EVENT_MAX_EDGES_PER_NODE: int = Field(5)
    EVENT_WINDOW: int = Field(20, description="Recent memories considered per interaction")

    # Semantic edges, consolidation sweep call site
    SWEEP_SAME_TYPE_THRESHOLD: float = Field(0.85)
    SWEEP_CROSS_TYPE_THRESHOLD: float = Field(0.75)
    SWEEP_MAX_EDGES_PER_NODE: int = Field(10)
    SWEEP_WINDOW: int = Field(300, description="Recent memories considered per sweep")
    PATTERN_MEMORY_THRESHOLD: float = Field(0.80)
    PATTERN_SEMANTIC_WINDOW: int = Field(
        200,
        description="Recent patterns, and recent memories, compared in the pattern pass"
    )
    SEMANTIC_ANOMALY_MIN_WINDOW: int = Field(
        5,
        description="Vectors needed before a zero-edge semantic pass is reported"
    )

    # Deterministic edges
    TEMPORAL_PAIRS: int = Field(10)
    FILE_COEDIT_RECORDS: int = Field(3)
    TRAJECTORY_WINDOW: int = Field(10)
    TRAJECTORY_LINK_LIMIT: int = Field(5)
    TRAJECTORY_TOLERANCE_SECONDS: float = Field(60.0)
    PATTERN_EDGE_RECORDS: int = Field(3)

    # Pattern extraction
    PATTERN_WINDOW: int = Field(30, description="Recent memories scanned for patterns")

    # Compression
    COMPRESSOR_MAX_PATTERNS: int = Field(1000)

# Singleton instance
settings = Settings()
