"""Bounded-batch embedding of chunk texts."""

import asyncio
import math
from typing import Iterator

from pydantic import BaseModel

from shared.clients.embed.EmbedClientInterface import EmbedClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.models.errors import EmbeddingProviderError


class TextBatch(BaseModel):
    number: int   # 1-based
    total: int
    offset: int   # position of the first text in the full input
    texts: list[str]


class EmbeddingBatcher:
    """Embeds texts in batches of at most batch_size, one provider call per batch.

    With concurrency 1 the batches are embedded strictly one after another.
    Higher values allow that many provider calls in flight, guarded by a
    semaphore; the output order always matches the input order.
    """

    def __init__(
        self,
        helper_config: HelperConfig,
        embed_client: EmbedClientInterface,
        batch_size: int = 100,
        concurrency: int = 1,
    ) -> None:
        if batch_size < 1:
            raise ValueError(f"batch_size must be at least 1, got {batch_size}.")
        if concurrency < 1:
            raise ValueError(f"concurrency must be at least 1, got {concurrency}.")
        self.logging = helper_config.get_logger()
        self._embed_client = embed_client
        self.batch_size = batch_size
        self.concurrency = concurrency

    def iter_batches(self, texts: list[str]) -> Iterator[TextBatch]:
        """Partition texts into consecutive batches.

        Args:
            texts (list[str]): The texts, in document order.

        Yields:
            TextBatch: The batches in order, each with its position in the run.
        """
        total = math.ceil(len(texts) / self.batch_size)
        for number, offset in enumerate(range(0, len(texts), self.batch_size), start=1):
            yield TextBatch(number=number, total=total, offset=offset, texts=texts[offset: offset + self.batch_size])

    async def embed_batch(self, batch: TextBatch) -> list[list[float]]:
        """Embed one batch with a single provider call.

        Raises:
            EmbeddingProviderError: If the call fails or the vector count does not match.
        """
        vectors = await self._embed_client.do_embed(batch.texts)
        if len(vectors) != len(batch.texts):
            raise EmbeddingProviderError(
                f"Batch {batch.number} of {batch.total}: got {len(vectors)} vectors for {len(batch.texts)} texts."
            )
        return vectors

    async def embed_all(self, texts: list[str]) -> list[list[float]]:
        """Embed every text, one vector per text, in input order.

        Args:
            texts (list[str]): The texts to embed.

        Returns:
            list[list[float]]: The vectors, len(result) == len(texts).

        Raises:
            EmbeddingProviderError: If any batch fails. Remaining batches are not sent.
        """
        batches = list(self.iter_batches(texts))
        if self.concurrency == 1:
            vectors: list[list[float]] = []
            for batch in batches:
                vectors.extend(await self.embed_batch(batch))
                self.logging.debug("Embedded batch %d of %d (%d texts so far).", batch.number, batch.total, len(vectors))
            return vectors

        sem = asyncio.Semaphore(self.concurrency)

        async def _bounded(batch: TextBatch) -> list[list[float]]:
            async with sem:
                return await self.embed_batch(batch)

        tasks = [asyncio.create_task(_bounded(batch)) for batch in batches]
        try:
            results = await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            raise
        return [vector for batch_vectors in results for vector in batch_vectors]
