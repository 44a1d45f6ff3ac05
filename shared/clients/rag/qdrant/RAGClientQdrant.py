from typing import Any

from shared.helper.HelperConfig import HelperConfig
from shared.clients.rag.RAGClientInterface import RAGClientInterface
from shared.clients.rag.models.VectorPoint import VectorPoint
from shared.models.config import EnvConfig
from shared.models.document import VectorRecord
from shared.models.errors import VectorStoreError


class RAGClientQdrant(RAGClientInterface):
    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self._base_url = self.get_config_val("BASE_URL", default="http://localhost:6333", val_type="string")
        self._api_key = self.get_config_val("API_KEY", default="", val_type="string")
        self._collection_name = self.get_config_val("COLLECTION", default="langchainjs-testing", val_type="string")

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
            EnvConfig(env_key="BASE_URL", val_type="string", default="http://localhost:6333"),
            EnvConfig(env_key="API_KEY", val_type="string", default=""),
            EnvConfig(env_key="COLLECTION", val_type="string", default="langchainjs-testing"),
        ]

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

    def _get_endpoint_collection(self, collection_name: str) -> str:
        return f"/collections/{collection_name}"

    def _get_endpoint_check_collection_existence(self, collection_name: str) -> str:
        return f"/collections/{collection_name}/exists"

    def _get_endpoint_points(self, collection_name: str) -> str:
        return f"/collections/{collection_name}/points"

    def _get_endpoint_delete_points(self, collection_name: str) -> str:
        return f"/collections/{collection_name}/points/delete"

    def _get_endpoint_count(self, collection_name: str) -> str:
        return f"/collections/{collection_name}/points/count"

    ##########################################
    ########### PAYLOAD BUILDER ##############
    ##########################################

    def get_create_collection_payload(self, vector_size: int, distance: str) -> dict:
        return {"vectors": {"size": vector_size, "distance": distance}}

    def get_point(self, record: VectorRecord) -> dict[str, Any]:
        return {
            "id": record.id,
            "vector": record.vector,
            "payload": VectorPoint.from_record(record).model_dump(),
        }

    def get_retrieve_payload(self, ids: list[str]) -> dict:
        return {"ids": ids, "with_payload": True, "with_vector": True}

    def get_count_payload(self, filter: dict | None) -> dict:
        payload: dict = {"exact": True}
        if filter is not None:
            payload["filter"] = filter
        return payload

    def get_delete_payload(self, filter: dict) -> dict:
        return {"filter": filter}

    def get_source_filter(self, source: str, exclude_ids: list[str] | None = None) -> dict:
        filter: dict = {"must": [{"key": "source", "match": {"value": source}}]}
        if exclude_ids:
            filter["must_not"] = [{"has_id": exclude_ids}]
        return filter

    ##########################################
    ########### RESPONSE PARSER ##############
    ##########################################

    def extract_vector_size(self, raw_response: dict) -> int:
        vectors = raw_response.get("result", {}).get("config", {}).get("params", {}).get("vectors", {})
        size = vectors.get("size") if isinstance(vectors, dict) else None
        if not isinstance(size, int):
            # named vectors are not used by this worker
            raise VectorStoreError(
                f"Could not determine the vector size of Qdrant collection '{self._collection_name}' from {vectors!r}."
            )
        return size

    def extract_points(self, raw_response: dict) -> list[dict]:
        return raw_response.get("result", []) or []
