"""FastAPI application entry point for the context vector API."""

import os
from contextlib import asynccontextmanager
from typing import AsyncGenerator

import httpx
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from server.api.routers.ContextVectorRouter import context_vector_router
from server.api.routers.QueryRouter import query_router
from services.context_vectors.context_vectors_boot import boot_context_vectors
from shared.helper.HelperConfig import HelperConfig
from shared.logging.logging_setup import setup_logging

app_version = os.getenv("APP_VERSION", "unknown")


def create_app(
    rag_transport: httpx.AsyncBaseTransport | None = None,
    embed_transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    """Build the FastAPI application.

    Args:
        rag_transport (httpx.AsyncBaseTransport | None): Replaces the network for the vector store client.
        embed_transport (httpx.AsyncBaseTransport | None): Replaces the network for the embedding client.

    Returns:
        FastAPI: The application. Startup fails with ConfigurationError when the
            vector store cannot be verified, so no traffic is accepted without it.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Manage application startup and shutdown."""
        app.state.logging = setup_logging()
        app.state.config = HelperConfig(logger=app.state.logging)

        # ConfigurationError propagates: the server refuses to start
        runtime = await boot_context_vectors(
            helper_config=app.state.config,
            rag_transport=rag_transport,
            embed_transport=embed_transport,
        )
        app.state.runtime = runtime
        app.state.context_vectors = runtime.service
        app.state.runner = runtime.runner

        app.state.logging.info("Context vector API ready.", color="green")
        yield

        # Shutdown
        await runtime.close()
        app.state.logging.info("Context vector API shut down.")

    app = FastAPI(
        title="Context Vector Bridge",
        description="Chunking, embedding, indexing and context-filtered retrieval of context files.",
        version=app_version,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(context_vector_router)
    app.include_router(query_router)

    @app.get("/health", tags=["Health"])
    async def handle_health(request: Request) -> dict:
        return {
            "status": "ok",
            "collection": request.app.state.context_vectors.collection.name,
            "pending_index_runs": request.app.state.runner.pending,
        }

    return app


app = create_app()


# Server Start
if __name__ == "__main__":
    import uvicorn

    logging = setup_logging()
    logging.info(f"Starting Context Vector API Server v{app_version} from root dir: {os.getenv('ROOT_DIR', os.getcwd())} on port 8000...")
    uvicorn.run(app, host="0.0.0.0", port=8000)
