"""
Content -> vector generation for rows that hold no usable embedding.

HashEmbedder is deterministic and offline. OpenAIEmbedder asks the OpenAI
embeddings API for vectors of the configured dimension.
"""
from abc import ABC, abstractmethod
from typing import List, Optional

import numpy as np

from memweave.config import Settings, settings as default_settings
from memweave.embeddings.codec import validate
from memweave.errors import MalformedInputError
from memweave.logging import logger


class Embedder(ABC):
    dimension: int

    @abstractmethod
    def embed(self, text: str) -> np.ndarray: ...

    def embed_batch(self, texts: List[str]) -> List[np.ndarray]:
        return [self.embed(t) for t in texts]

    def _checked(self, vector) -> np.ndarray:
        check = validate(vector, self.dimension)
        if not check.valid:
            raise MalformedInputError(f"Embedder returned an invalid vector: {check.reason}")
        return np.asarray(vector, dtype=np.float32)


class HashEmbedder(Embedder):
    """
    Character-position hashing into a fixed number of buckets, L2 normalised.

    Similar strings share buckets, so near-duplicate content lands close
    together; unrelated content is mostly orthogonal.
    """

    def __init__(self, dimension: int = 384, passes: int = 3):
        self.dimension = dimension
        self.passes = passes

    def embed(self, text: str) -> np.ndarray:
        codes = np.frombuffer(str(text or "").encode("utf-32-le"), dtype="<u4").astype(np.int64)
        vec = np.zeros(self.dimension, dtype=np.float64)
        if codes.size:
            positions = np.arange(codes.size, dtype=np.int64)
            for p in range(self.passes):
                idx = (positions * 31 + codes * 17 + p * 127) % self.dimension
                np.add.at(vec, idx, (1.0 / (p + 1)) * (codes / 128.0))
        norm = np.linalg.norm(vec) or 1.0
        return self._checked((vec / norm).astype(np.float32))


class OpenAIEmbedder(Embedder):
    """Batch calls to the OpenAI Embeddings API."""

    def __init__(self, model: str, dimension: int, api_key: Optional[str] = None, client=None):
        self.model = model
        self.dimension = dimension
        if client is None:
            from openai import OpenAI
            client = OpenAI(api_key=api_key)
        self.client = client

    def embed_batch(self, texts: List[str]) -> List[np.ndarray]:
        if not texts:
            return []
        try:
            response = self.client.embeddings.create(
                input=texts,
                model=self.model,
                dimensions=self.dimension,
            )
        except Exception as e:
            logger.error(f"OpenAI Embedding API failed: {e}")
            raise MalformedInputError(f"OpenAI embedding request failed: {e}") from e
        # Ensure order is preserved
        return [self._checked(d.embedding) for d in response.data]

    def embed(self, text: str) -> np.ndarray:
        return self.embed_batch([text])[0]


def get_embedder(cfg: Settings | None = None) -> Embedder:
    cfg = cfg or default_settings
    provider = cfg.EMBEDDING_PROVIDER.lower()
    if provider == "openai":
        api_key = cfg.OPENAI_API_KEY.get_secret_value() if cfg.OPENAI_API_KEY else None
        return OpenAIEmbedder(cfg.OPENAI_EMBEDDING_MODEL, cfg.EMBEDDING_DIM, api_key=api_key)
    if provider != "hash":
        logger.warning(f"Unknown EMBEDDING_PROVIDER '{cfg.EMBEDDING_PROVIDER}', using hash embedder")
    return HashEmbedder(cfg.EMBEDDING_DIM)
