from memweave.embeddings.codec import (
    DecodedEmbedding,
    EmbeddingKind,
    ValidationResult,
    decode,
    parse,
    serialize,
    validate,
)
from memweave.embeddings.providers import Embedder, HashEmbedder, OpenAIEmbedder, get_embedder

__all__ = [
    "DecodedEmbedding",
    "EmbeddingKind",
    "ValidationResult",
    "decode",
    "parse",
    "serialize",
    "validate",
    "Embedder",
    "HashEmbedder",
    "OpenAIEmbedder",
    "get_embedder",
]
