"""VectorPoint model: a context file chunk and the vector stored for it."""

from typing import Any

from pydantic import BaseModel, Field


class ChunkPayload(BaseModel):
    """Metadata stored alongside each vector chunk in the RAG backend.

    context_id and file_id are the isolation and ownership tags: every
    delete and every search filters on them.

    Attributes:
        context_id:        Knowledge-base context the file belongs to.
        file_id:           File the chunk was cut from.
        chunk_index:       Zero-based position of this chunk within the file, contiguous per indexing run.
        text:              Chunk text, prefixed with the "[File: <name>]" provenance marker.
        source_file_name:  Original file name, if known.
        mime_type:         Mime type of the uploaded file, if known.
    """

    context_id: str
    file_id: str
    chunk_index: int = Field(ge=0)
    text: str
    source_file_name: str | None = None
    mime_type: str | None = None

    def to_store_payload(self) -> dict[str, Any]:
        """Serialise for the backend, leaving out empty optional fields."""
        payload = self.model_dump(exclude_none=True)
        for key in ("source_file_name", "mime_type"):
            if not payload.get(key):
                payload.pop(key, None)
        return payload


class VectorPoint(BaseModel):
    """A single point of the context collection.

    Attributes:
        id:       Fresh uuid4 string. Never reused across indexing runs.
        vector:   Embedding of payload.text.
        payload:  The chunk metadata.
    """

    id: str
    vector: list[float]
    payload: ChunkPayload

    def to_store_point(self) -> dict[str, Any]:
        return {"id": self.id, "vector": self.vector, "payload": self.payload.to_store_payload()}
