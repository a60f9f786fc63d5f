"""Context vector service: the boundary of the RAG indexing and retrieval pipeline.

Exposes index_file, delete_file_vectors, delete_context_vectors and
query_contexts to the rest of the backend. None of them raises: embedding
provider and vector store failures are logged here, once, and turned into
an OperationResult or an empty result list. A failed index or delete never
fails an upload, a failed query lets the calling feature continue without
retrieved context.
"""

from typing import Awaitable, Callable

from services.context_vectors.ContextVectorCollection import ContextVectorCollection
from services.context_vectors.EmbeddingBatcher import EmbeddingBatcher
from services.context_vectors.TextChunker import TextChunker
from services.context_vectors.VectorDeleter import VectorDeleter
from services.context_vectors.VectorIndexer import VectorIndexer
from services.context_vectors.VectorRetriever import VectorRetriever
from shared.clients.embed.EmbedClientInterface import EmbedClientInterface
from shared.clients.rag.RAGClientInterface import RAGClientInterface
from shared.clients.rag.models.SearchHit import SearchHit
from shared.helper.HelperConfig import HelperConfig
from shared.helper.KeyedLock import KeyedLock
from shared.models.config import ContextVectorSettings
from shared.models.errors import ContextVectorError, StoreError
from shared.models.results import OperationResult


class ContextVectorService:
    """Wires the pipeline components around one RAG client and one embed client."""

    def __init__(
        self,
        helper_config: HelperConfig,
        rag_client: RAGClientInterface,
        embed_client: EmbedClientInterface,
        settings: ContextVectorSettings | None = None,
    ) -> None:
        self.logging = helper_config.get_logger()
        self.settings = settings or ContextVectorSettings.from_helper_config(helper_config)
        self._embed_client = embed_client

        file_locks = KeyedLock()
        self.collection = ContextVectorCollection(helper_config=helper_config, rag_client=rag_client)
        self.chunker = TextChunker(chunk_size=self.settings.chunk_size, chunk_overlap=self.settings.chunk_overlap)
        self.batcher = EmbeddingBatcher(
            helper_config=helper_config,
            embed_client=embed_client,
            batch_size=self.settings.embed_batch_size,
            concurrency=self.settings.embed_concurrency,
        )
        self.indexer = VectorIndexer(
            helper_config=helper_config,
            rag_client=rag_client,
            embed_client=embed_client,
            collection=self.collection,
            chunker=self.chunker,
            batcher=self.batcher,
            file_locks=file_locks,
        )
        self.retriever = VectorRetriever(
            helper_config=helper_config,
            rag_client=rag_client,
            embed_client=embed_client,
            collection=self.collection,
            default_limit=self.settings.query_default_limit,
        )
        self.deleter = VectorDeleter(
            helper_config=helper_config,
            rag_client=rag_client,
            embed_client=embed_client,
            collection=self.collection,
            file_locks=file_locks,
        )

    ##########################################
    ############### LIFECYCLE ################
    ##########################################

    async def ensure_collection(self) -> None:
        """Ensure the collection with the embedding model's dimension and distance.

        Unlike the boundary operations this raises, it is meant for startup.

        Raises:
            StoreError: If the collection cannot be checked or created.
        """
        dimension, distance = self._embed_client.get_vector_spec()
        await self.collection.ensure_collection(dimension, distance)

    ##########################################
    ########### BOUNDARY OPERATIONS ##########
    ##########################################

    async def index_file(
        self,
        context_id: str,
        file_id: str,
        file_name: str,
        mime_type: str,
        raw_text: str | None,
    ) -> OperationResult:
        """Index a file's text, replacing any vectors it had before. Never raises."""
        return await self._run_guarded(
            "index_file",
            {"context_id": context_id, "file_id": file_id},
            lambda: self.indexer.index_file(context_id, file_id, file_name, mime_type, raw_text),
        )

    async def delete_file_vectors(self, context_id: str, file_id: str) -> OperationResult:
        """Remove the vectors of one file. Never raises."""

        async def _delete() -> OperationResult:
            await self.deleter.delete_file_vectors(context_id, file_id)
            return OperationResult.ok("delete_file_vectors")

        return await self._run_guarded(
            "delete_file_vectors", {"context_id": context_id, "file_id": file_id}, _delete
        )

    async def delete_context_vectors(self, context_id: str) -> OperationResult:
        """Remove the vectors of every file of a context. Never raises."""

        async def _delete() -> OperationResult:
            await self.deleter.delete_context_vectors(context_id)
            return OperationResult.ok("delete_context_vectors")

        return await self._run_guarded("delete_context_vectors", {"context_id": context_id}, _delete)

    async def query_contexts(self, context_ids: list[str], query_text: str, limit: int | None = None) -> list[str]:
        """Return the best matching chunk texts of the given contexts, [] on any failure."""
        hits = await self.search(context_ids, query_text, limit)
        return [hit.payload.text for hit in hits if hit.payload.text]

    async def search(self, context_ids: list[str], query_text: str, limit: int | None = None) -> list[SearchHit]:
        """Like query_contexts, but returns the full hits with score and file tags."""
        try:
            return await self.retriever.search(context_ids, query_text, limit)
        except ContextVectorError as exc:
            self._forget_missing_collection(exc)
            self.logging.error(
                "query_contexts failed (%s) for contexts %s: %s",
                exc.kind.value if exc.kind else "unknown", context_ids, exc,
            )
        except Exception:
            self.logging.exception("query_contexts failed unexpectedly for contexts %s", context_ids)
        return []

    ##########################################
    ############### POLICY ###################
    ##########################################

    async def _run_guarded(
        self,
        operation: str,
        identifiers: dict[str, str],
        run: Callable[[], Awaitable[OperationResult]],
    ) -> OperationResult:
        """Run an internal operation and turn every failure into a logged, failed result.

        Embedding provider and store errors carry their ErrorKind into the result.
        Any other exception is logged with its traceback and reported without a kind.
        """
        ids = " ".join(f"{key}={value}" for key, value in identifiers.items())
        try:
            return await run()
        except ContextVectorError as exc:
            self._forget_missing_collection(exc)
            self.logging.error("%s failed (%s) for %s: %s", operation, exc.kind.value if exc.kind else "unknown", ids, exc)
            return OperationResult.failed(operation, exc.kind, str(exc))
        except Exception as exc:
            self.logging.exception("%s failed unexpectedly for %s", operation, ids)
            return OperationResult.failed(operation, None, f"{type(exc).__name__}: {exc}")

    def _forget_missing_collection(self, exc: ContextVectorError) -> None:
        # a 404 from the store means the collection was dropped behind our back
        if isinstance(exc, StoreError) and exc.status_code == 404:
            self.collection.invalidate()
