"""Removal of context vectors by file or by whole context."""

from services.context_vectors.ContextVectorCollection import ContextVectorCollection
from shared.clients.embed.EmbedClientInterface import EmbedClientInterface
from shared.clients.rag.RAGClientInterface import RAGClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.helper.KeyedLock import KeyedLock


class VectorDeleter:
    """Deletes vectors by tag. Both deletes are idempotent."""

    def __init__(
        self,
        helper_config: HelperConfig,
        rag_client: RAGClientInterface,
        embed_client: EmbedClientInterface,
        collection: ContextVectorCollection,
        file_locks: KeyedLock,
    ) -> None:
        self.logging = helper_config.get_logger()
        self._rag_client = rag_client
        self._embed_client = embed_client
        self._collection = collection
        self._file_locks = file_locks

    async def _ensure_collection(self) -> None:
        dimension, distance = self._embed_client.get_vector_spec()
        await self._collection.ensure_collection(dimension, distance)

    async def delete_file_vectors(self, context_id: str, file_id: str) -> None:
        """Remove every vector tagged with exactly (context_id, file_id).

        Waits for a running indexing run of the same file to finish first.

        Raises:
            StoreError: If the collection cannot be ensured or the delete fails.
        """
        async with self._file_locks.hold((context_id, file_id)):
            await self._ensure_collection()
            await self._rag_client.do_delete_points_by_filter(
                self._rag_client.get_filter_by_file(context_id, file_id)
            )
        self.logging.info("Deleted vectors for context %s file %s.", context_id, file_id)

    async def delete_context_vectors(self, context_id: str) -> None:
        """Remove every vector of a context, whatever file it came from.

        Raises:
            StoreError: If the collection cannot be ensured or the delete fails.
        """
        await self._ensure_collection()
        await self._rag_client.do_delete_points_by_filter(
            self._rag_client.get_filter_by_context(context_id)
        )
        self.logging.info("Deleted all vectors for context %s.", context_id)
