"""Startup wiring of the context vector pipeline.

Builds the embed and RAG clients from the environment, verifies the vector
store and the collection, and hands back the service and background runner.
Everything that goes wrong here is a ConfigurationError: the process must
not accept traffic without a verified vector store.
"""

import httpx

from services.context_vectors.ContextVectorService import ContextVectorService
from services.context_vectors.IndexingTaskRunner import IndexingTaskRunner
from shared.clients.embed.EmbedClientInterface import EmbedClientInterface
from shared.clients.embed.EmbedClientManager import EmbedClientManager
from shared.clients.rag.RAGClientInterface import RAGClientInterface
from shared.clients.rag.RAGClientManager import RAGClientManager
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import ContextVectorSettings
from shared.models.errors import ConfigurationError, ContextVectorError


class ContextVectorRuntime:
    """The booted clients plus the service and runner built on them."""

    def __init__(
        self,
        helper_config: HelperConfig,
        rag_client: RAGClientInterface,
        embed_client: EmbedClientInterface,
        service: ContextVectorService,
        runner: IndexingTaskRunner,
    ) -> None:
        self.logging = helper_config.get_logger()
        self.rag_client = rag_client
        self.embed_client = embed_client
        self.service = service
        self.runner = runner

    async def close(self) -> None:
        """Let pending indexing runs finish, then close both clients."""
        if self.runner.pending:
            self.logging.info("Waiting for %d pending indexing runs...", self.runner.pending)
            await self.runner.drain()
        await self.embed_client.close()
        await self.rag_client.close()
        self.logging.info("Context vector clients closed.")


async def boot_context_vectors(
    helper_config: HelperConfig,
    rag_transport: httpx.AsyncBaseTransport | None = None,
    embed_transport: httpx.AsyncBaseTransport | None = None,
) -> ContextVectorRuntime:
    """Build and verify the context vector runtime.

    Args:
        helper_config (HelperConfig): The configuration helper.
        rag_transport (httpx.AsyncBaseTransport | None): Replaces the network for the vector store client.
        embed_transport (httpx.AsyncBaseTransport | None): Replaces the network for the embedding client.

    Returns:
        ContextVectorRuntime: The ready runtime.

    Raises:
        ConfigurationError: If configuration is missing or invalid, the vector store is
            unreachable, or the collection cannot be ensured.
    """
    logger = helper_config.get_logger()
    try:
        settings = ContextVectorSettings.from_helper_config(helper_config)
        rag_client = RAGClientManager(helper_config=helper_config).get_client()
        embed_client = EmbedClientManager(helper_config=helper_config).get_client()
    except ValueError as exc:
        logger.error("Context vector configuration is invalid: %s", exc)
        raise ConfigurationError(f"Context vector configuration is invalid: {exc}") from exc

    await rag_client.boot(transport=rag_transport)
    await embed_client.boot(transport=embed_transport)

    service = ContextVectorService(
        helper_config=helper_config,
        rag_client=rag_client,
        embed_client=embed_client,
        settings=settings,
    )
    try:
        await rag_client.do_healthcheck()
        await service.ensure_collection()
    except ContextVectorError as exc:
        await embed_client.close()
        await rag_client.close()
        logger.error("Vector store %s could not be verified: %s", rag_client.get_engine_name(), exc)
        raise ConfigurationError(f"Vector store {rag_client.get_engine_name()} could not be verified: {exc}") from exc

    # a broken embedding provider degrades indexing and retrieval, it does not block startup
    try:
        await embed_client.do_healthcheck()
    except ContextVectorError as exc:
        logger.warning("Embedding provider %s failed its healthcheck: %s", embed_client.get_engine_name(), exc)

    runner = IndexingTaskRunner(
        helper_config=helper_config,
        service=service,
        max_concurrent_runs=settings.max_concurrent_runs,
    )
    logger.info(
        "Context vectors ready: %s collection %r, embed model %s.",
        rag_client.get_engine_name(), rag_client.get_collection_name(), embed_client.embed_model,
        color="green",
    )
    return ContextVectorRuntime(
        helper_config=helper_config,
        rag_client=rag_client,
        embed_client=embed_client,
        service=service,
        runner=runner,
    )
