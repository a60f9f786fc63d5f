from abc import abstractmethod

from shared.clients.ClientInterface import ClientInterface
from shared.models.errors import EmbeddingProviderError

from shared.helper.HelperConfig import HelperConfig


class EmbedClientInterface(ClientInterface):
    error_class = EmbeddingProviderError

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)

        # model and embedding config
        self.embed_model = helper_config.get_string_val(f"{self.get_client_type().upper()}_MODEL", default="text-embedding-3-small")
        self.embed_dimension = int(helper_config.get_number_val(f"{self.get_client_type().upper()}_DIMENSION", default=1536))
        self.embed_distance = helper_config.get_string_val(f"{self.get_client_type().upper()}_DISTANCE", default="Cosine")

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_client_type(self) -> str:
        """
        Returns the type of the client. E.g. "embed"
        """
        return "embed"

    def get_vector_spec(self) -> tuple[int, str]:
        """Return the dimension and distance metric the embedding model requires of a collection.

        Returns:
            tuple[int, str]: (dimension, distance), e.g. (1536, "Cosine").
        """
        return self.embed_dimension, self.embed_distance

    ################ ENDPOINTS ##################
    @abstractmethod
    def get_endpoint_embedding(self) -> str:
        """
        Returns the endpoint path for embedding requests.

        Returns:
            str: The endpoint path for embedding requests (e.g. "/embeddings")
        """
        pass

    ################ PAYLOAD BUILDER ##################
    @abstractmethod
    def get_embed_payload(self, texts: list[str]) -> dict:
        """Build the backend-specific request body for an embedding request.

        Args:
            texts (list[str]): The texts to embed.

        Returns:
            dict: JSON-serialisable request body (e.g. {"model": "...", "input": [...]}).
        """
        pass

    ##########################################
    ################# OTHER ##################
    ##########################################

    @abstractmethod
    def extract_embeddings_from_response(self, response_data: dict) -> list[list[float]]:
        """Extract embedding vectors from a raw embedding API response.

        Args:
            response_data (dict): The parsed JSON response body.

        Returns:
            list[list[float]]: Embedding vectors in the same order as the input texts.

        Raises:
            EmbeddingProviderError: If the response format is invalid or embeddings are empty.
        """
        pass

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def do_embed(self, texts: list[str] | str) -> list[list[float]]:
        """Send one embedding request and return the extracted vectors.

        Args:
            texts (list[str] | str): One or more texts to embed.

        Returns:
            list[list[float]]: One vector per text, in input order.

        Raises:
            EmbeddingProviderError: If the request fails, the vector count differs from
                the text count, or a vector does not have the configured dimension.
        """
        texts = [texts] if isinstance(texts, str) else texts
        if not texts:
            return []
        response = await self.do_request(
            method="POST",
            endpoint=self.get_endpoint_embedding(),
            json=self.get_embed_payload(texts),
            raise_on_error=True,
        )
        try:
            body = response.json()
        except ValueError as exc:
            raise EmbeddingProviderError(f"Embedding response is not valid JSON: {exc}") from exc
        vectors = self.extract_embeddings_from_response(body)

        if len(vectors) != len(texts):
            raise EmbeddingProviderError(
                f"Embedding provider returned {len(vectors)} vectors for {len(texts)} texts."
            )
        for vector in vectors:
            if len(vector) != self.embed_dimension:
                raise EmbeddingProviderError(
                    f"Embedding provider returned a vector of size {len(vector)}, expected {self.embed_dimension} for model {self.embed_model}."
                )
        return vectors

    async def do_embed_query(self, text: str) -> list[float]:
        """Embed a single query text.

        Args:
            text (str): The query.

        Returns:
            list[float]: The query vector.
        """
        vectors = await self.do_embed([text])
        return vectors[0]
