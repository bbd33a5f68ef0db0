"""
Embedding service adapter.

Wraps any LangChain ``Embeddings`` (Google Generative AI by default) as
the pipeline's EmbeddingService. Vectors are held to a fixed dimension:
longer vectors are truncated and re-normalized (Gemini embeddings are
Matryoshka-trained), shorter ones are rejected.

Dependencies: langchain_core, langchain_google_genai, python-dotenv
System role: Query embedding for vector search
"""

import asyncio
import logging
import math

from dotenv import load_dotenv
from langchain_core.embeddings import Embeddings
from langchain_google_genai import GoogleGenerativeAIEmbeddings

from rag_pipeline.configs.collaborators import CollaboratorSettings
from rag_pipeline.core.exceptions import (
    CollaboratorError,
    OperationTimeoutError,
    ValidationError,
)

logger = logging.getLogger(__name__)


def fit_dimension(vector: list[float], dimension: int) -> list[float]:
    """
    Truncate a vector to ``dimension`` and L2-normalize it.

    Raises:
        ValidationError: Vector shorter than the target dimension
    """
    if len(vector) == dimension:
        return vector
    if len(vector) < dimension:
        raise ValidationError(
            f"Embedding has {len(vector)} dimensions, expected {dimension}",
            field="embedding",
        )
    truncated = vector[:dimension]
    norm = math.sqrt(sum(v * v for v in truncated))
    if norm == 0:
        return truncated
    return [v / norm for v in truncated]


class LangChainEmbeddingService:
    """
    EmbeddingService over a LangChain Embeddings model.

    Usage:
        service = LangChainEmbeddingService(GoogleGenerativeAIEmbeddings(...), 1024)
        vector = await service.aembed_query("Klimaschutz")
    """

    def __init__(
        self,
        embeddings: Embeddings,
        dimension: int = 1024,
        timeout_s: float = 10.0,
    ) -> None:
        self._embeddings = embeddings
        self._dimension = dimension
        self._timeout_s = timeout_s

    @property
    def dimension(self) -> int:
        return self._dimension

    async def aembed_query(self, text: str) -> list[float]:
        """
        Embed a search query.

        Args:
            text: Query text

        Returns:
            list[float]: Vector of exactly ``dimension`` floats

        Raises:
            ValidationError: Empty text or undersized vector
            OperationTimeoutError: Embedding call overran
            CollaboratorError: Provider failure
        """
        if not text or not text.strip():
            raise ValidationError("Cannot embed empty text", field="text")
        try:
            vector = await asyncio.wait_for(
                self._embeddings.aembed_query(text),
                timeout=self._timeout_s,
            )
        except asyncio.TimeoutError as e:
            raise OperationTimeoutError(
                "Embedding timed out",
                operation="embed_query",
                timeout_s=self._timeout_s,
            ) from e
        except Exception as e:
            logger.error(f"{__name__}:aembed_query - {type(e).__name__}: {e}")
            raise CollaboratorError(f"Embedding failed: {e}", collaborator="embeddings") from e
        return fit_dimension(list(vector), self._dimension)


def build_embedding_service(
    settings: CollaboratorSettings,
    dimension: int,
    timeout_s: float = 10.0,
) -> LangChainEmbeddingService:
    """Default Gemini-backed embedding service."""
    logger.info(
        f"{__name__}:build_embedding_service - model={settings.embedding_model}, dimension={dimension}"
    )
    # GOOGLE_API_KEY is read from the environment by the client
    load_dotenv()
    embeddings = GoogleGenerativeAIEmbeddings(model=settings.embedding_model)
    return LangChainEmbeddingService(embeddings, dimension=dimension, timeout_s=timeout_s)
