from abc import abstractmethod
from typing import Any

from shared.clients.ClientInterface import ClientInterface
from shared.clients.rag.models.SearchHit import CollectionSpec, SearchHit
from shared.clients.rag.models.VectorPoint import VectorPoint
from shared.models.errors import StoreError

from shared.helper.HelperConfig import HelperConfig


class RAGClientInterface(ClientInterface):
    error_class = StoreError

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_client_type(self) -> str:
        """
        Returns the type of the client. E.g. "rag"
        """
        return "rag"

    @abstractmethod
    def get_collection_name(self) -> str:
        """
        Returns the name of the collection this client operates on.

        Returns:
            str: The collection name (e.g. "context_files")
        """
        pass

    ################ ENDPOINTS ##################
    @abstractmethod
    def _get_endpoint_points(self) -> str:
        """
        Returns the endpoint path for points upsert requests.

        Returns:
            str: The endpoint path (e.g. "/collections/my_col/points")
        """
        pass

    @abstractmethod
    def _get_endpoint_delete_points(self) -> str:
        """
        Returns the endpoint path for deleting points by filter.

        Returns:
            str: The endpoint path (e.g. "/collections/my_col/points/delete")
        """
        pass

    @abstractmethod
    def _get_endpoint_search(self) -> str:
        """
        Returns the endpoint path for similarity search requests.

        Returns:
            str: The endpoint path (e.g. "/collections/my_col/points/search")
        """
        pass

    @abstractmethod
    def _get_endpoint_check_collection_existence(self) -> str:
        """
        Returns the endpoint path for collection existence check requests.

        Returns:
            str: The endpoint path (e.g. "/collections/my_col/exists")
        """
        pass

    @abstractmethod
    def _get_endpoint_collection(self) -> str:
        """
        Returns the endpoint path for creating and describing the collection.

        Returns:
            str: The endpoint path (e.g. "/collections/my_col")
        """
        pass

    @abstractmethod
    def _get_endpoint_payload_index(self) -> str:
        """
        Returns the endpoint path for creating a payload field index.

        Returns:
            str: The endpoint path (e.g. "/collections/my_col/index")
        """
        pass

    ################ FILTER BUILDER ##################
    @abstractmethod
    def get_filter_by_file(self, context_id: str, file_id: str) -> dict:
        """
        Builds a filter matching every point tagged with exactly this (context_id, file_id) pair.

        Args:
            context_id (str): The owning context.
            file_id (str): The file.

        Returns:
            dict: The backend-specific filter.
        """
        pass

    @abstractmethod
    def get_filter_by_context(self, context_id: str) -> dict:
        """
        Builds a filter matching every point of a context, regardless of file.

        Args:
            context_id (str): The owning context.

        Returns:
            dict: The backend-specific filter.
        """
        pass

    @abstractmethod
    def get_filter_by_any_context(self, context_ids: list[str]) -> dict:
        """
        Builds a filter matching points whose context_id is any of the given ids (logical OR).

        Args:
            context_ids (list[str]): The allowed contexts. Must not be empty.

        Returns:
            dict: The backend-specific filter.
        """
        pass

    ################ PAYLOAD BUILDER ##################
    @abstractmethod
    def get_create_collection_payload(self, vector_size: int, distance: str) -> dict:
        """
        Builds the request payload that creates the collection.

        Args:
            vector_size (int): The dimension of the vectors.
            distance (str): The distance metric (e.g. "Cosine").

        Returns:
            dict: The payload for the create request.
        """
        pass

    @abstractmethod
    def get_upsert_payload(self, points: list[VectorPoint]) -> dict:
        """
        Builds the request payload for a points upsert.

        Args:
            points (list[VectorPoint]): The points to write.

        Returns:
            dict: The payload for the upsert request.
        """
        pass

    @abstractmethod
    def get_delete_payload(self, filter: dict) -> dict:
        """
        Builds the request payload for a filter-based delete.

        Args:
            filter (dict): The filter that identifies which points to delete.

        Returns:
            dict: The payload for the delete request.
        """
        pass

    @abstractmethod
    def get_search_payload(self, vector: list[float], filter: dict, limit: int) -> dict:
        """
        Builds the request payload for a filtered similarity search.

        Args:
            vector (list[float]): The query vector.
            filter (dict): Restricts the candidate points.
            limit (int): Maximum number of hits.

        Returns:
            dict: The payload for the search request.
        """
        pass

    @abstractmethod
    def get_payload_index_payload(self, field_name: str) -> dict:
        """
        Builds the request payload for a keyword index on a payload field.

        Args:
            field_name (str): The payload field to index.

        Returns:
            dict: The payload for the index request.
        """
        pass

    ################ RESPONSE PARSER ##################
    @abstractmethod
    def extract_existence(self, raw_response: dict) -> bool:
        """
        Extracts the existence flag from an existence check response.
        """
        pass

    @abstractmethod
    def extract_collection_spec(self, raw_response: dict) -> CollectionSpec:
        """
        Extracts dimension and distance from a collection info response.

        Raises:
            StoreError: If the response does not describe a single unnamed vector config.
        """
        pass

    @abstractmethod
    def extract_search_hits(self, raw_response: dict) -> list[SearchHit]:
        """
        Extracts the ranked hits from a search response, best first.
        """
        pass

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def do_existence_check(self) -> bool:
        """Check if the collection exists in the rag backend.

        Returns:
            bool: True if the collection exists, False otherwise.
        """
        resp = await self.do_request(method="GET", endpoint=self._get_endpoint_check_collection_existence(), raise_on_error=True)
        return self.extract_existence(self._read_json(resp))

    async def do_fetch_collection_spec(self) -> CollectionSpec:
        """Read the vector configuration of the existing collection.

        Returns:
            CollectionSpec: Name, dimension and distance of the collection.
        """
        resp = await self.do_request(method="GET", endpoint=self._get_endpoint_collection(), raise_on_error=True)
        return self.extract_collection_spec(self._read_json(resp))

    async def do_create_collection(self, vector_size: int, distance: str = "Cosine") -> None:
        """Create the collection in the rag backend.

        Args:
            vector_size (int): The size of the vectors in the collection.
            distance (str): The distance metric for the vectors.
        """
        await self.do_request(
            method="PUT",
            json=self.get_create_collection_payload(vector_size, distance),
            endpoint=self._get_endpoint_collection(),
            raise_on_error=True,
        )

    async def do_create_payload_index(self, field_name: str) -> None:
        """Create a keyword index on a payload field used in filters.

        Args:
            field_name (str): The payload field to index (e.g. "context_id").
        """
        await self.do_request(
            method="PUT",
            json=self.get_payload_index_payload(field_name),
            endpoint=self._get_endpoint_payload_index(),
            params={"wait": "true"},
            raise_on_error=True,
        )

    async def do_upsert_points(self, points: list[VectorPoint]) -> None:
        """Upsert points into the collection and wait until the backend persisted them.

        Inserts new points or replaces existing ones if a point with the same ID already exists.

        Args:
            points (list[VectorPoint]): The points to upsert.
        """
        if not points:
            return
        await self.do_request(
            method="PUT",
            json=self.get_upsert_payload(points),
            endpoint=self._get_endpoint_points(),
            params={"wait": "true"},
            raise_on_error=True,
        )

    async def do_delete_points_by_filter(self, filter: dict) -> None:
        """Deletes all points matching the given filter and waits for the backend to apply it.

        Args:
            filter (dict): The filter that identifies which points to delete.
                           Must always include context_id to enforce isolation.
        """
        await self.do_request(
            method="POST",
            json=self.get_delete_payload(filter),
            endpoint=self._get_endpoint_delete_points(),
            params={"wait": "true"},
            raise_on_error=True,
        )

    async def do_search(self, vector: list[float], filter: dict, limit: int) -> list[SearchHit]:
        """Run a filtered similarity search.

        Args:
            vector (list[float]): The query vector.
            filter (dict): Restricts the candidate points.
            limit (int): Maximum number of hits.

        Returns:
            list[SearchHit]: Hits ranked by the collection metric, best first.
        """
        resp = await self.do_request(
            method="POST",
            json=self.get_search_payload(vector, filter, limit),
            endpoint=self._get_endpoint_search(),
            raise_on_error=True,
        )
        return self.extract_search_hits(self._read_json(resp))[:limit]

    ##########################################
    ################# OTHER ##################
    ##########################################

    def _read_json(self, resp: Any) -> dict:
        try:
            return resp.json()
        except ValueError as exc:
            raise StoreError(f"{self.get_engine_name()} answered with invalid JSON: {exc}") from exc
