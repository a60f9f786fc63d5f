"""Query router: similarity search over the vectors of a set of contexts."""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from shared.dependencies.auth import verify_api_key
from shared.models.search import QueryRequest, QueryResponse, QueryResultItem

query_router = APIRouter()


@query_router.post(
    "/query",
    dependencies=[Depends(verify_api_key)],
    tags=["Query"],
)
async def handle_query(request: Request, body: QueryRequest) -> JSONResponse:
    """Return the chunks most similar to the query among the given contexts.

    Retrieval failures degrade to an empty result list so the calling
    feature can continue without retrieved context.

    Args:
        request (Request): The incoming FastAPI request (carries app state).
        body (QueryRequest): Contexts, query text and optional limit.

    Returns:
        JSONResponse: Ranked list of matching chunks.
    """
    request.app.state.logging.info(
        "Query received, contexts=%s query=%r", body.context_ids, body.query[:80]
    )
    hits = await request.app.state.context_vectors.search(body.context_ids, body.query, body.limit)
    items = [
        QueryResultItem(
            file_id=hit.payload.file_id,
            source_file_name=hit.payload.source_file_name,
            chunk_index=hit.payload.chunk_index,
            score=hit.score,
            text=hit.payload.text,
        )
        for hit in hits
        if hit.payload.text
    ]
    response = QueryResponse(query=body.query, results=items, total=len(items))
    return JSONResponse(content=response.model_dump())
