from pydantic import ValidationError

from shared.helper.HelperConfig import HelperConfig
from shared.clients.rag.RAGClientInterface import RAGClientInterface
from shared.clients.rag.models.SearchHit import CollectionSpec, SearchHit
from shared.clients.rag.models.VectorPoint import VectorPoint
from shared.models.config import EnvConfig
from shared.models.errors import StoreError


class RAGClientQdrant(RAGClientInterface):
    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self._base_url = self._resolve_base_url()
        self._api_key = self.get_config_val("API_KEY", default="", val_type="string")
        self._collection_name = self.get_config_val("COLLECTION", default="context_files", val_type="string")

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_engine_name(self) -> str:
        return "Qdrant"

    def get_collection_name(self) -> str:
        return self._collection_name

    ################ CONFIG ##################
    def _get_required_config(self) -> list[EnvConfig]:
        return [
            EnvConfig(env_key="BASE_URL", val_type="string", default=""),
            EnvConfig(env_key="PORT", val_type="number", default=6333),
            EnvConfig(env_key="API_KEY", val_type="string", default=""),
            EnvConfig(env_key="COLLECTION", val_type="string", default="context_files"),
        ]

    def _resolve_base_url(self) -> str:
        """Use the explicit base url, or a local Qdrant on the configured port."""
        base_url = self.get_config_val("BASE_URL", default="", val_type="string")
        if base_url:
            return base_url
        port = int(self.get_config_val("PORT", default=6333, val_type="number"))
        return f"http://127.0.0.1:{port}"

    ################ AUTH ##################
    def _get_auth_header(self) -> dict:
        if self._api_key:
            return {"api-key": f"{self._api_key}"}
        else:
            return {}

    ################ ENDPOINTS ##################
    def _get_base_url(self) -> str:
        return self._base_url

    def _get_endpoint_healthcheck(self) -> str:
        return "/healthz"

    def _get_endpoint_points(self) -> str:
        return f"/collections/{self._collection_name}/points"

    def _get_endpoint_delete_points(self) -> str:
        return f"/collections/{self._collection_name}/points/delete"

    def _get_endpoint_search(self) -> str:
        return f"/collections/{self._collection_name}/points/search"

    def _get_endpoint_check_collection_existence(self) -> str:
        return f"/collections/{self._collection_name}/exists"

    def _get_endpoint_collection(self) -> str:
        return f"/collections/{self._collection_name}"

    def _get_endpoint_payload_index(self) -> str:
        return f"/collections/{self._collection_name}/index"

    ##########################################
    ############ FILTER BUILDER ##############
    ##########################################

    def get_filter_by_file(self, context_id: str, file_id: str) -> dict:
        return {
            "must": [
                {"key": "context_id", "match": {"value": context_id}},
                {"key": "file_id", "match": {"value": file_id}},
            ]
        }

    def get_filter_by_context(self, context_id: str) -> dict:
        return {"must": [{"key": "context_id", "match": {"value": context_id}}]}

    def get_filter_by_any_context(self, context_ids: list[str]) -> dict:
        if not context_ids:
            raise ValueError("At least one context id is required for a context filter.")
        # match.any is Qdrant's native OR across values of a single key
        return {"must": [{"key": "context_id", "match": {"any": list(context_ids)}}]}

    ##########################################
    ########### PAYLOAD BUILDER ##############
    ##########################################

    def get_create_collection_payload(self, vector_size: int, distance: str) -> dict:
        return {"vectors": {"size": vector_size, "distance": distance}}

    def get_upsert_payload(self, points: list[VectorPoint]) -> dict:
        return {"points": [point.to_store_point() for point in points]}

    def get_delete_payload(self, filter: dict) -> dict:
        return {"filter": filter}

    def get_search_payload(self, vector: list[float], filter: dict, limit: int) -> dict:
        return {
            "vector": vector,
            "filter": filter,
            "limit": limit,
            "with_payload": True,
            "with_vector": False,
        }

    def get_payload_index_payload(self, field_name: str) -> dict:
        return {"field_name": field_name, "field_schema": "keyword"}

    ##########################################
    ########### RESPONSE PARSER ##############
    ##########################################

    def extract_existence(self, raw_response: dict) -> bool:
        return bool(raw_response.get("result", {}).get("exists"))

    def extract_collection_spec(self, raw_response: dict) -> CollectionSpec:
        vectors = (
            raw_response.get("result", {})
            .get("config", {})
            .get("params", {})
            .get("vectors", {})
        )
        if "size" not in vectors or "distance" not in vectors:
            raise StoreError(
                f"Collection {self._collection_name!r} has no single unnamed vector config: {vectors!r}"
            )
        return CollectionSpec(
            name=self._collection_name,
            dimension=int(vectors["size"]),
            distance=str(vectors["distance"]),
        )

    def extract_search_hits(self, raw_response: dict) -> list[SearchHit]:
        hits: list[SearchHit] = []
        for point in raw_response.get("result", []) or []:
            try:
                hits.append(
                    SearchHit(
                        id=str(point.get("id")),
                        score=float(point.get("score", 0.0)),
                        payload=point.get("payload") or {},
                    )
                )
            except ValidationError as exc:
                # points written by something else than this service lack the chunk fields
                self.logging.warning("Ignoring Qdrant point %r with invalid payload: %s", point.get("id"), exc)
        return hits
