"""Lazy, idempotent lifecycle of the context vector collection."""

import asyncio

from shared.clients.rag.RAGClientInterface import RAGClientInterface
from shared.clients.rag.models.SearchHit import CollectionSpec
from shared.helper.HelperConfig import HelperConfig

# payload fields every delete and search filters on
INDEXED_PAYLOAD_FIELDS = ("context_id", "file_id")


class ContextVectorCollection:
    """Creates the named collection on first need and never alters it afterwards.

    Dimension and distance are fixed at creation. A later ensure with other
    values does nothing except log a warning: a collection can only be
    re-shaped by dropping and recreating it outside of this service.
    """

    def __init__(self, helper_config: HelperConfig, rag_client: RAGClientInterface) -> None:
        self.logging = helper_config.get_logger()
        self._rag_client = rag_client
        self._lock = asyncio.Lock()
        self._ensured = False
        self._warned_mismatch = False

    @property
    def name(self) -> str:
        return self._rag_client.get_collection_name()

    @property
    def is_ensured(self) -> bool:
        return self._ensured

    async def ensure_collection(self, dimension: int, distance: str = "Cosine") -> None:
        """Create the collection if it does not exist yet.

        Safe to call before every operation; after the first success no request is sent
        until ``invalidate`` is called. The payload indexes are requested on every
        unconfirmed ensure, whether the collection was just created or already existed.

        Args:
            dimension (int): Vector size used when the collection has to be created.
            distance (str): Distance metric used when the collection has to be created.

        Raises:
            StoreError: If the existence check, the creation or an index request fails.
        """
        if self._ensured:
            return
        async with self._lock:
            if self._ensured:
                return
            if await self._rag_client.do_existence_check():
                await self._check_existing(dimension, distance)
            else:
                await self._create(dimension, distance)
            await self._create_payload_indexes()
            self._ensured = True

    def invalidate(self) -> None:
        """Forget that the collection was ensured, e.g. after it was dropped out-of-band."""
        if self._ensured:
            self.logging.warning("Collection %r is gone from the store, it will be ensured again.", self.name)
        self._ensured = False
        self._warned_mismatch = False

    async def describe(self) -> CollectionSpec:
        """Return name, dimension and distance as stored in the backend.

        Raises:
            StoreError: If the collection does not exist or cannot be read.
        """
        return await self._rag_client.do_fetch_collection_spec()

    ##########################################
    ############### HELPERS ##################
    ##########################################

    async def _create(self, dimension: int, distance: str) -> None:
        try:
            await self._rag_client.do_create_collection(vector_size=dimension, distance=distance)
        except Exception:
            # another process may have created it between the check and the create
            if await self._rag_client.do_existence_check():
                self.logging.info("Collection %r was created concurrently, using it.", self.name)
                return
            raise
        self.logging.info(
            "Created %s collection %r (dimension=%d, distance=%s).",
            self._rag_client.get_engine_name(), self.name, dimension, distance,
        )

    async def _create_payload_indexes(self) -> None:
        # idempotent on the store side
        for field_name in INDEXED_PAYLOAD_FIELDS:
            await self._rag_client.do_create_payload_index(field_name)

    async def _check_existing(self, dimension: int, distance: str) -> None:
        spec = await self.describe()
        if (spec.dimension, spec.distance.lower()) != (dimension, distance.lower()) and not self._warned_mismatch:
            self._warned_mismatch = True
            self.logging.warning(
                "Collection %r exists with dimension=%d distance=%s, requested dimension=%d distance=%s. "
                "Leaving it unchanged; recreate it out-of-band to change its shape.",
                self.name, spec.dimension, spec.distance, dimension, distance,
            )
