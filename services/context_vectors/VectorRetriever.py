"""Context-filtered similarity retrieval."""

from services.context_vectors.ContextVectorCollection import ContextVectorCollection
from shared.clients.embed.EmbedClientInterface import EmbedClientInterface
from shared.clients.rag.RAGClientInterface import RAGClientInterface
from shared.clients.rag.models.SearchHit import SearchHit
from shared.helper.HelperConfig import HelperConfig


class VectorRetriever:
    """Embeds a query once and searches only among the given contexts."""

    def __init__(
        self,
        helper_config: HelperConfig,
        rag_client: RAGClientInterface,
        embed_client: EmbedClientInterface,
        collection: ContextVectorCollection,
        default_limit: int = 10,
    ) -> None:
        self.logging = helper_config.get_logger()
        self._rag_client = rag_client
        self._embed_client = embed_client
        self._collection = collection
        self.default_limit = default_limit

    async def search(self, context_ids: list[str], query_text: str, limit: int | None = None) -> list[SearchHit]:
        """Return the best matching chunks of any of the given contexts.

        An empty context list or a blank query returns [] without embedding or searching.

        Args:
            context_ids (list[str]): Contexts the caller may read. Matched with OR semantics.
            query_text (str): The natural language query.
            limit (int | None): Maximum number of hits, default_limit when None.

        Returns:
            list[SearchHit]: Hits ranked by similarity, best first.

        Raises:
            EmbeddingProviderError: If the query cannot be embedded.
            StoreError: If the search fails.
        """
        context_ids = list(dict.fromkeys(cid for cid in context_ids if cid))
        if not context_ids or not query_text or not query_text.strip():
            return []
        limit = self.default_limit if limit is None else limit
        if limit < 1:
            return []

        dimension, distance = self._embed_client.get_vector_spec()
        await self._collection.ensure_collection(dimension, distance)

        vector = await self._embed_client.do_embed_query(query_text)
        hits = await self._rag_client.do_search(
            vector=vector,
            filter=self._rag_client.get_filter_by_any_context(context_ids),
            limit=limit,
        )
        self.logging.debug("Context query over %d contexts returned %d hits.", len(context_ids), len(hits))
        return hits

    async def query_contexts(self, context_ids: list[str], query_text: str, limit: int | None = None) -> list[str]:
        """Return the texts of the best matching chunks, best first.

        Hits without text are dropped; identical texts are not merged.
        """
        hits = await self.search(context_ids, query_text, limit)
        return [hit.payload.text for hit in hits if hit.payload.text]
