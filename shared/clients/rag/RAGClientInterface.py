from abc import abstractmethod
from typing import Any
import asyncio
import json

import httpx
from shared.clients.ClientInterface import ClientInterface
from shared.models.document import VectorRecord
from shared.models.errors import DimensionMismatchError, VectorStoreConnectionError, VectorStoreError

from shared.helper.HelperConfig import HelperConfig


class RAGClientInterface(ClientInterface):
    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self.distance = helper_config.get_string_val(f"{self.get_client_type().upper()}_DISTANCE", default="Cosine")

        # vector dimension per collection, filled on first upsert
        self._collection_dimensions: dict[str, int] = {}
        self._collection_lock = asyncio.Lock()

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
        Returns the configured default collection name.
        """
        pass

    ################ ERRORS ##################
    def _build_transport_error(self, url: str, exc: httpx.TransportError) -> Exception:
        return VectorStoreConnectionError(f"Vector store at {url} is unreachable: {exc}")

    def _build_status_error(self, response: httpx.Response) -> Exception:
        return VectorStoreError(
            f"Vector store request {response.request.method} {response.request.url} failed "
            f"with status {response.status_code}: {response.text[:200]}"
        )

    ################ ENDPOINTS ##################
    @abstractmethod
    def _get_endpoint_collection(self, collection_name: str) -> str:
        """
        Returns the endpoint path for collection creation and collection info requests.

        Returns:
            str: The endpoint path (e.g. "/collections/my_col")
        """
        pass

    @abstractmethod
    def _get_endpoint_check_collection_existence(self, collection_name: str) -> str:
        """
        Returns the endpoint path for collection existence check requests.

        Returns:
            str: The endpoint path (e.g. "/collections/my_col/exists")
        """
        pass

    @abstractmethod
    def _get_endpoint_points(self, collection_name: str) -> str:
        """
        Returns the endpoint path for points upsert and retrieve requests.

        Returns:
            str: The endpoint path (e.g. "/collections/my_col/points")
        """
        pass

    @abstractmethod
    def _get_endpoint_delete_points(self, collection_name: str) -> str:
        """
        Returns the endpoint path for deleting points by filter.

        Returns:
            str: The endpoint path (e.g. "/collections/my_col/points/delete")
        """
        pass

    @abstractmethod
    def _get_endpoint_count(self, collection_name: str) -> str:
        """
        Returns the endpoint path for counting points matching a filter.

        Returns:
            str: The endpoint path (e.g. "/collections/my_col/points/count")
        """
        pass

    ################ PAYLOAD BUILDER ##################
    @abstractmethod
    def get_create_collection_payload(self, vector_size: int, distance: str) -> dict:
        """
        Builds the backend-specific request payload for creating a collection.

        Args:
            vector_size (int): The size of the vectors in the collection.
            distance (str): The distance metric for the vectors.
        """
        pass

    @abstractmethod
    def get_point(self, record: VectorRecord) -> dict[str, Any]:
        """
        Converts a VectorRecord into the backend-specific point representation.
        """
        pass

    @abstractmethod
    def get_retrieve_payload(self, ids: list[str]) -> dict:
        """
        Builds the backend-specific request payload for fetching points by id.
        """
        pass

    @abstractmethod
    def get_count_payload(self, filter: dict | None) -> dict:
        """Builds the backend-specific request payload for a point count.

        Args:
            filter (dict | None): Filter to apply before counting. None counts all points.
        """
        pass

    @abstractmethod
    def get_delete_payload(self, filter: dict) -> dict:
        """
        Builds the backend-specific request payload for a filter-based delete.

        Args:
            filter (dict): The filter that identifies which points to delete.
        """
        pass

    @abstractmethod
    def get_source_filter(self, source: str, exclude_ids: list[str] | None = None) -> dict:
        """
        Builds a filter matching all points of one source file, optionally excluding some ids.

        Args:
            source (str): The source path stored in the point payload.
            exclude_ids (list[str] | None): Point ids that must not match.
        """
        pass

    ################ RESPONSE PARSER ##################
    @abstractmethod
    def extract_vector_size(self, raw_response: dict) -> int:
        """
        Extracts the vector dimension from a raw collection info response.

        Raises:
            VectorStoreError: If the dimension cannot be determined.
        """
        pass

    @abstractmethod
    def extract_points(self, raw_response: dict) -> list[dict]:
        """
        Extracts the list of points from a raw retrieve response.
        """
        pass

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def do_existence_check(self, collection_name: str | None = None) -> bool:
        """Check if a collection exists in the rag backend.

        Returns:
            bool: True if the collection exists, False otherwise.
        """
        collection_name = collection_name or self.get_collection_name()
        resp = await self.do_request(
            method="GET",
            endpoint=self._get_endpoint_check_collection_existence(collection_name),
            raise_on_error=True,
        )
        return bool(resp.json().get("result", {}).get("exists"))

    async def do_create_collection(self, vector_size: int, distance: str = "Cosine", collection_name: str | None = None) -> bool:
        """Create a collection in the rag backend.

        Args:
            vector_size (int): The size of the vectors in the collection.
            distance (str): The distance metric for the vectors.
            collection_name (str | None): Target collection, defaults to the configured one.

        Returns:
            bool: True if the collection was created, False if it already existed.
        """
        collection_name = collection_name or self.get_collection_name()
        resp = await self.do_request(
            method="PUT",
            json=self.get_create_collection_payload(vector_size, distance),
            endpoint=self._get_endpoint_collection(collection_name),
        )
        # another worker process created it first
        if resp.status_code == 409:
            return False
        if not resp.is_success:
            raise self._build_status_error(resp)
        self.logging.info(
            "Created collection '%s' in %s (size %d, distance %s).",
            collection_name, self.get_engine_name(), vector_size, distance,
        )
        return True

    async def do_fetch_collection_vector_size(self, collection_name: str | None = None) -> int:
        """Fetch the vector dimension of an existing collection."""
        collection_name = collection_name or self.get_collection_name()
        resp = await self.do_request(
            method="GET",
            endpoint=self._get_endpoint_collection(collection_name),
            raise_on_error=True,
        )
        return self.extract_vector_size(resp.json())

    async def do_ensure_collection(self, vector_size: int, collection_name: str | None = None) -> int:
        """Make sure the collection exists, creating it with vector_size if absent.

        Args:
            vector_size (int): Dimension to create the collection with.
            collection_name (str | None): Target collection, defaults to the configured one.

        Returns:
            int: The dimension of the collection, which may differ from vector_size
                 if the collection already existed.
        """
        collection_name = collection_name or self.get_collection_name()
        async with self._collection_lock:
            known_size = self._collection_dimensions.get(collection_name)
            if known_size is None:
                if await self.do_existence_check(collection_name) or not await self.do_create_collection(
                    vector_size, self.distance, collection_name
                ):
                    known_size = await self.do_fetch_collection_vector_size(collection_name)
                else:
                    known_size = vector_size
                self._collection_dimensions[collection_name] = known_size
        return known_size

    async def do_upsert_points(self, points: list[dict[str, Any]], collection_name: str | None = None) -> None:
        """Upsert points into the rag backend collection.
        Inserts new points or replaces existing ones if a point with the same ID already exists.

        Args:
            points (list[dict[str, Any]]): The list of points to upsert.
            collection_name (str | None): Target collection, defaults to the configured one.
        """
        collection_name = collection_name or self.get_collection_name()
        await self.do_request(
            method="PUT",
            content=json.dumps({"points": points}),
            endpoint=self._get_endpoint_points(collection_name),
            params={"wait": "true"},
            additional_headers={"Content-Type": "application/json"},
            raise_on_error=True,
        )

    async def do_upsert_records(self, records: list[VectorRecord], collection_name: str | None = None) -> None:
        """Persist vector records, creating the collection on first use.

        Records are keyed by id, so upserting the same record again overwrites it.
        The dimension check covers every record before the write, and all records
        go out in a single request, so a failed write persists none of them.

        Args:
            records (list[VectorRecord]): The records to persist.
            collection_name (str | None): Target collection, defaults to the configured one.

        Raises:
            DimensionMismatchError: If the records disagree with each other or with the collection dimension.
            VectorStoreConnectionError: If the backend is unreachable.
            VectorStoreError: If the backend rejects a request.
        """
        if not records:
            return
        collection_name = collection_name or self.get_collection_name()

        sizes = {len(record.vector) for record in records}
        if len(sizes) > 1:
            raise DimensionMismatchError(f"Records to upsert have mixed vector dimensions: {sorted(sizes)}.")
        vector_size = sizes.pop()

        collection_size = await self.do_ensure_collection(vector_size, collection_name)
        if vector_size != collection_size:
            raise DimensionMismatchError(
                f"Collection '{collection_name}' stores vectors of dimension {collection_size}, got {vector_size}."
            )

        # all points of a job in one request
        points = [self.get_point(record) for record in records]
        try:
            await self.do_upsert_points(points, collection_name)
        except VectorStoreError:
            # the collection may have been dropped behind our back
            self._collection_dimensions.pop(collection_name, None)
            raise

    async def do_retrieve_points(self, ids: list[str], collection_name: str | None = None) -> list[dict]:
        """Fetch points by id, including payload and vector.

        Returns:
            list[dict]: The points found. Unknown ids are omitted.
        """
        collection_name = collection_name or self.get_collection_name()
        resp = await self.do_request(
            method="POST",
            content=json.dumps(self.get_retrieve_payload(ids)),
            endpoint=self._get_endpoint_points(collection_name),
            additional_headers={"Content-Type": "application/json"},
            raise_on_error=True,
        )
        return self.extract_points(resp.json())

    async def do_count(self, filter: dict | None = None, collection_name: str | None = None) -> int:
        """Count the total number of points matching the given filter.

        Returns:
            int: Total number of matching points.
        """
        collection_name = collection_name or self.get_collection_name()
        resp = await self.do_request(
            method="POST",
            content=json.dumps(self.get_count_payload(filter)),
            endpoint=self._get_endpoint_count(collection_name),
            additional_headers={"Content-Type": "application/json"},
            raise_on_error=True,
        )
        return resp.json().get("result", {}).get("count", 0)

    async def do_delete_points_by_filter(self, filter: dict, collection_name: str | None = None) -> None:
        """Deletes all points matching the given filter from the RAG backend.

        Args:
            filter (dict): The filter that identifies which points to delete.
            collection_name (str | None): Target collection, defaults to the configured one.
        """
        collection_name = collection_name or self.get_collection_name()
        await self.do_request(
            method="POST",
            content=json.dumps(self.get_delete_payload(filter)),
            endpoint=self._get_endpoint_delete_points(collection_name),
            params={"wait": "true"},
            additional_headers={"Content-Type": "application/json"},
            raise_on_error=True,
        )

    async def do_delete_stale_points(self, source: str, keep_ids: list[str], collection_name: str | None = None) -> None:
        """Remove points of a source file that were not produced by its latest ingestion.

        Used after a successful upsert, when a re-delivered file now yields fewer chunks.

        Args:
            source (str): The source path of the ingested file.
            keep_ids (list[str]): Ids of the points just upserted.
            collection_name (str | None): Target collection, defaults to the configured one.
        """
        await self.do_delete_points_by_filter(self.get_source_filter(source, exclude_ids=keep_ids), collection_name)
