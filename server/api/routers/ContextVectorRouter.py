"""Context vector router: index and delete the vectors of context files.

The backend's upload handler calls POST after it extracted a file's text.
Indexing runs in the background; the response is returned immediately and
the outcome only shows up in the logs.
"""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from shared.dependencies.auth import verify_api_key
from shared.models.search import IndexFileAccepted, IndexFileRequest

context_vector_router = APIRouter()


@context_vector_router.post(
    "/contexts/{context_id}/files/{file_id}/vectors",
    dependencies=[Depends(verify_api_key)],
    tags=["Context vectors"],
    status_code=202,
)
async def handle_index_file(request: Request, context_id: str, file_id: str, body: IndexFileRequest) -> JSONResponse:
    """Schedule (re)indexing of a context file's text.

    Args:
        request (Request): The incoming FastAPI request (carries app state).
        context_id (str): The owning context.
        file_id (str): The file.
        body (IndexFileRequest): File name, mime type and extracted text.

    Returns:
        JSONResponse: 202 acknowledgement; indexing continues in the background.
    """
    request.app.state.logging.info(
        "Index request for context %s file %s (%s, %d chars)", context_id, file_id, body.mime_type, len(body.text)
    )
    request.app.state.runner.schedule_index_file(
        context_id=context_id,
        file_id=file_id,
        file_name=body.file_name,
        mime_type=body.mime_type,
        raw_text=body.text,
    )
    accepted = IndexFileAccepted(context_id=context_id, file_id=file_id)
    return JSONResponse(status_code=202, content=accepted.model_dump())


@context_vector_router.delete(
    "/contexts/{context_id}/files/{file_id}/vectors",
    dependencies=[Depends(verify_api_key)],
    tags=["Context vectors"],
)
async def handle_delete_file_vectors(request: Request, context_id: str, file_id: str) -> JSONResponse:
    """Remove the vectors of one context file.

    Returns:
        JSONResponse: The operation result. A failed delete is reported in the body, not as an HTTP error.
    """
    result = await request.app.state.context_vectors.delete_file_vectors(context_id, file_id)
    return JSONResponse(content=result.model_dump(mode="json"))


@context_vector_router.delete(
    "/contexts/{context_id}/vectors",
    dependencies=[Depends(verify_api_key)],
    tags=["Context vectors"],
)
async def handle_delete_context_vectors(request: Request, context_id: str) -> JSONResponse:
    """Remove the vectors of every file of a context.

    Returns:
        JSONResponse: The operation result. A failed delete is reported in the body, not as an HTTP error.
    """
    result = await request.app.state.context_vectors.delete_context_vectors(context_id)
    return JSONResponse(content=result.model_dump(mode="json"))
