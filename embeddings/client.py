#!/usr/bin/env python3
"""
OpenAI embedding client for the script indexer.
Single-text and batched embedding with truncation, retries and per-item results.
"""

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence

import openai
from openai import OpenAI

from config.settings import (
    EMBEDDING_BATCH_SIZE,
    EMBEDDING_DIMENSIONS,
    EMBEDDING_MAX_ATTEMPTS,
    EMBEDDING_MAX_INPUT_CHARS,
    EMBEDDING_MODEL,
    REQUEST_TIMEOUT,
)
from core.errors import EmbeddingError
from core.retry import retry_with_backoff

logger = logging.getLogger(__name__)


def is_transient_error(error: BaseException) -> bool:
    """Rate limits, network failures, timeouts and 5xx responses are retried."""
    if isinstance(error, (openai.RateLimitError, openai.APIConnectionError)):
        return True
    if isinstance(error, openai.APIStatusError):
        return error.status_code >= 500
    return False


def truncate_text(text: str, max_chars: int) -> str:
    """
    Keep the first max_chars characters of text.

    Head truncation: the leading documentation and imports carry most of a
    script's meaning. The result depends only on (text, max_chars).
    """
    if len(text) <= max_chars:
        return text
    return text[:max_chars]


@dataclass
class EmbeddingOutcome:
    """Result for one input of embed_batch."""

    index: int
    vector: Optional[List[float]] = None
    error: Optional[EmbeddingError] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.vector is not None


class EmbeddingClient:
    """
    OpenAI embedding client.

    Generates vector embeddings for text using OpenAI's embedding models.
    Provides both single-text and batch embedding generation.
    """

    def __init__(self, api_key: str = None, model: str = EMBEDDING_MODEL,
                 dimensions: int = EMBEDDING_DIMENSIONS, batch_size: int = EMBEDDING_BATCH_SIZE,
                 max_attempts: int = EMBEDDING_MAX_ATTEMPTS,
                 max_input_chars: int = EMBEDDING_MAX_INPUT_CHARS,
                 timeout: float = REQUEST_TIMEOUT, base_delay: float = 1.0,
                 client=None, sleep: Callable[[float], None] = None):
        """
        Initialize the embedding client.

        Args:
            api_key: OpenAI API key. Required unless a client is injected.
            model: Embedding model name.
            dimensions: Expected vector length.
            batch_size: Maximum number of inputs per API request.
            max_attempts: Attempts per request, including the first.
            max_input_chars: Inputs longer than this are truncated.
            timeout: Per-request timeout in seconds.
            base_delay: First backoff delay in seconds.
            client: Pre-built OpenAI-compatible client (used by tests).
            sleep: Sleep function for backoff (used by tests).
        """
        if not model or not model.strip():
            raise ValueError("Invalid model: model cannot be empty")
        if dimensions <= 0:
            raise ValueError("Invalid dimensions: must be positive")
        if batch_size <= 0:
            raise ValueError("Invalid batch size: must be positive")

        if client is None:
            if not api_key or not api_key.strip():
                raise ValueError(
                    "OPENAI_API_KEY not found. "
                    "Please add your OpenAI API key to the .env file."
                )
            # Retries are handled by retry_with_backoff, not the SDK
            client = OpenAI(api_key=api_key, timeout=timeout, max_retries=0)

        self.client = client
        self.model = model
        self.dimensions = dimensions
        self.batch_size = batch_size
        self.max_attempts = max_attempts
        self.max_input_chars = max_input_chars
        self.base_delay = base_delay
        self._sleep = sleep
        self.request_count = 0

    @classmethod
    def from_settings(cls, settings) -> "EmbeddingClient":
        return cls(
            api_key=settings.openai_api_key,
            model=settings.embedding_model,
            dimensions=settings.embedding_dimensions,
            batch_size=settings.embedding_batch_size,
            max_attempts=settings.embedding_max_attempts,
            max_input_chars=settings.embedding_max_input_chars,
            timeout=settings.request_timeout,
        )

    def prepare(self, text: str) -> str:
        """
        Validate and truncate a single input.

        Raises:
            EmbeddingError: If text is empty.
        """
        if not text or not text.strip():
            raise EmbeddingError("Cannot generate embedding for empty text")
        prepared = truncate_text(text, self.max_input_chars)
        if len(prepared) < len(text):
            logger.debug(f"Truncated embedding input from {len(text)} to {len(prepared)} characters")
        return prepared

    def _request(self, inputs: List[str]) -> List[List[float]]:
        """One API call (with retries) for a list of prepared inputs."""

        def call():
            self.request_count += 1
            return self.client.embeddings.create(
                model=self.model,
                input=inputs,
                dimensions=self.dimensions,
            )

        retry_kwargs = {}
        if self._sleep is not None:
            retry_kwargs["sleep"] = self._sleep

        try:
            response = retry_with_backoff(
                call,
                is_retryable=is_transient_error,
                max_attempts=self.max_attempts,
                base_delay=self.base_delay,
                description=f"Embedding request ({len(inputs)} input(s))",
                **retry_kwargs,
            )
        except Exception as e:
            logger.error(f"Error generating embedding: {e}")
            raise EmbeddingError(f"Embedding request failed: {e}", cause=e) from e

        data = sorted(response.data, key=lambda item: item.index)
        if len(data) != len(inputs):
            raise EmbeddingError(
                f"Embedding response has {len(data)} vector(s) for {len(inputs)} input(s)"
            )

        vectors = []
        for item in data:
            vector = list(item.embedding)
            if len(vector) != self.dimensions:
                raise EmbeddingError(
                    f"Embedding has {len(vector)} dimensions, expected {self.dimensions}"
                )
            vectors.append(vector)
        return vectors

    def embed(self, text: str) -> List[float]:
        """
        Generate embedding for a single text.

        Args:
            text: Text to generate embedding for.

        Returns:
            List of floats representing the embedding vector.

        Raises:
            EmbeddingError: If text is empty or the service keeps failing.
        """
        return self._request([self.prepare(text)])[0]

    def embed_batch(self, texts: Sequence[str]) -> List[EmbeddingOutcome]:
        """
        Generate embeddings for many texts.

        Inputs are sent in sub-batches of at most batch_size. A failing
        sub-batch only fails its own items; invalid inputs fail individually
        without being sent.

        Returns:
            One EmbeddingOutcome per input, in input order.
        """
        outcomes = [EmbeddingOutcome(index=i) for i in range(len(texts))]

        pending = []
        for i, text in enumerate(texts):
            try:
                pending.append((i, self.prepare(text)))
            except EmbeddingError as e:
                outcomes[i].error = e

        for start in range(0, len(pending), self.batch_size):
            chunk = pending[start:start + self.batch_size]
            try:
                vectors = self._request([text for _, text in chunk])
            except EmbeddingError as e:
                logger.warning(f"Sub-batch of {len(chunk)} input(s) failed: {e}")
                for i, _ in chunk:
                    outcomes[i].error = e
                continue
            for (i, _), vector in zip(chunk, vectors):
                outcomes[i].vector = vector

        return outcomes

    def estimate_cost(self, text: str) -> float:
        """
        Estimate the cost for embedding a text.

        Args:
            text: Input text.

        Returns:
            Estimated cost in USD.
        """
        # text-embedding-3-small: $0.020 per 1M tokens
        # Rough estimate: ~1 token per 4 characters
        tokens = len(truncate_text(text, self.max_input_chars)) / 4
        return (tokens / 1_000_000) * 0.020
