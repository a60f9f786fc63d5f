"""Pydantic models for the context vector HTTP API."""

from pydantic import BaseModel, Field


class IndexFileRequest(BaseModel):
    """Already-extracted text of an uploaded context file."""

    file_name: str
    mime_type: str = "text/plain"
    text: str


class IndexFileAccepted(BaseModel):
    status: str = "accepted"
    context_id: str
    file_id: str


class QueryRequest(BaseModel):
    """Similarity query restricted to a set of contexts."""

    context_ids: list[str]
    query: str
    limit: int | None = Field(default=None, ge=1, le=100)


class QueryResultItem(BaseModel):
    """A single chunk returned from the context collection."""

    file_id: str
    source_file_name: str | None = None
    chunk_index: int
    score: float
    text: str


class QueryResponse(BaseModel):
    query: str
    results: list[QueryResultItem]
    total: int
