"""Full-replace indexing of a context file's vectors.

Every run deletes the file's previous vectors before writing any new one,
then embeds and upserts chunk batches in document order. chunk_index is
recomputed from 0 on every run; nothing is diffed against the previous
version.
"""

import uuid

from services.context_vectors.ContextVectorCollection import ContextVectorCollection
from services.context_vectors.EmbeddingBatcher import EmbeddingBatcher
from services.context_vectors.TextChunker import TextChunker
from shared.clients.embed.EmbedClientInterface import EmbedClientInterface
from shared.clients.rag.RAGClientInterface import RAGClientInterface
from shared.clients.rag.models.VectorPoint import ChunkPayload, VectorPoint
from shared.helper.HelperConfig import HelperConfig
from shared.helper.KeyedLock import KeyedLock
from shared.models.results import OperationResult

OPERATION = "index_file"


def _with_file_marker(file_name: str, chunk: str) -> str:
    """Prefix a chunk with its source file so retrieved text carries its provenance."""
    return f"[File: {file_name}]\n{chunk}"


class VectorIndexer:
    """Orchestrates chunk → batch-embed → batch-upsert for one file."""

    def __init__(
        self,
        helper_config: HelperConfig,
        rag_client: RAGClientInterface,
        embed_client: EmbedClientInterface,
        collection: ContextVectorCollection,
        chunker: TextChunker,
        batcher: EmbeddingBatcher,
        file_locks: KeyedLock,
    ) -> None:
        self.logging = helper_config.get_logger()
        self._rag_client = rag_client
        self._embed_client = embed_client
        self._collection = collection
        self._chunker = chunker
        self._batcher = batcher
        self._file_locks = file_locks

    ##########################################
    ################ CORE ####################
    ##########################################

    async def index_file(
        self,
        context_id: str,
        file_id: str,
        file_name: str,
        mime_type: str,
        raw_text: str | None,
    ) -> OperationResult:
        """Replace all vectors of (context_id, file_id) with vectors of raw_text.

        Runs for the same pair are serialized; the later one starts after the
        earlier one finished and its result is the one that remains.

        Args:
            context_id (str): The owning context.
            file_id (str): The file.
            file_name (str): Original file name, used as provenance marker.
            mime_type (str): Mime type of the upload.
            raw_text (str | None): Extracted plain text.

        Returns:
            OperationResult: ok with the number of vectors written, or skipped when
                there is nothing to index.

        Raises:
            EmbeddingProviderError: If an embedding batch fails.
            StoreError: If ensuring the collection, the delete or an upsert fails.
                Old vectors may already be gone and the new set partial.
        """
        if not raw_text or not raw_text.strip():
            self.logging.info(
                "Skipping vector index for context %s file %s: no extractable text (mime: %s).",
                context_id, file_id, mime_type,
            )
            return OperationResult.skipped(OPERATION, "no extractable text")

        chunks = [_with_file_marker(file_name, chunk) for chunk in self._chunker.split(raw_text.strip())]
        if not chunks:
            self.logging.info(
                "Skipping vector index for context %s file %s: text produced no chunks.", context_id, file_id
            )
            return OperationResult.skipped(OPERATION, "text produced no chunks")

        async with self._file_locks.hold((context_id, file_id)):
            dimension, distance = self._embed_client.get_vector_spec()
            await self._collection.ensure_collection(dimension, distance)

            # old vectors go first, otherwise a shorter new version would leave stale tail chunks behind
            await self._rag_client.do_delete_points_by_filter(
                self._rag_client.get_filter_by_file(context_id, file_id)
            )

            # with batch concurrency > 1 all batches are embedded up front, upserts stay in order
            prefetched = await self._batcher.embed_all(chunks) if self._batcher.concurrency > 1 else None

            written = 0
            for batch in self._batcher.iter_batches(chunks):
                if prefetched is None:
                    vectors = await self._batcher.embed_batch(batch)
                else:
                    vectors = prefetched[batch.offset: batch.offset + len(batch.texts)]
                points = [
                    VectorPoint(
                        id=str(uuid.uuid4()),
                        vector=vector,
                        payload=ChunkPayload(
                            context_id=context_id,
                            file_id=file_id,
                            chunk_index=batch.offset + position,
                            text=text,
                            source_file_name=file_name,
                            mime_type=mime_type,
                        ),
                    )
                    for position, (text, vector) in enumerate(zip(batch.texts, vectors))
                ]
                await self._rag_client.do_upsert_points(points)
                written += len(points)
                self.logging.info(
                    "Indexed batch %d of %d for context %s file %s (%d of %d chunks).",
                    batch.number, batch.total, context_id, file_id, written, len(chunks),
                    color="cyan",
                )

        self.logging.info(
            "Indexed %d vector chunks for context %s file %s.", written, context_id, file_id, color="green",
        )
        return OperationResult.ok(OPERATION, count=written)
