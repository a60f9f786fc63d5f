from pydantic import BaseModel

from shared.clients.rag.models.VectorPoint import ChunkPayload


class SearchHit(BaseModel):
    """One ranked result of a similarity search.

    Attributes:
        id:       Point id in the backend.
        score:    Similarity score reported by the backend. Larger is closer for cosine.
        payload:  The chunk metadata of the point.
    """

    id: str
    score: float
    payload: ChunkPayload


class CollectionSpec(BaseModel):
    """Vector configuration of a collection as reported by the backend.

    Attributes:
        name:       Collection name.
        dimension:  Vector size fixed at creation.
        distance:   Distance metric fixed at creation (e.g. "Cosine").
    """

    name: str
    dimension: int
    distance: str
