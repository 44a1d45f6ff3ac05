import httpx
from typing import Tuple

from shared.clients.embed.EmbedClientInterface import EmbedClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig
from shared.models.errors import AuthenticationError, EmbeddingError, NetworkError, RateLimitError

# output dimensions of the OpenAI models at their native size
KNOWN_MODEL_DIMENSIONS: dict[str, int] = {
    "text-embedding-3-small": 1536,
    "text-embedding-3-large": 3072,
    "text-embedding-ada-002": 1536,
}


class EmbedClientOpenai(EmbedClientInterface):
    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self._base_url = self.get_config_val("BASE_URL", default="https://api.openai.com/v1", val_type="string")
        self._api_key = self.get_config_val("API_KEY", default="", val_type="string")
        # 0 keeps the model's native dimension
        self._dimensions = int(self.get_config_val("DIMENSIONS", default=0, val_type="number"))

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_engine_name(self) -> str:
        return "OpenAI"

    def _get_default_model(self) -> str:
        return "text-embedding-3-small"

    ################ CONFIG ##################
    def _get_required_config(self) -> list[EnvConfig]:
        return [
            EnvConfig(env_key="BASE_URL", val_type="string", default="https://api.openai.com/v1"),
            EnvConfig(env_key="API_KEY", val_type="string", default=""),
            EnvConfig(env_key="DIMENSIONS", val_type="number", default=0),
        ]

    ################ AUTH ##################
    def _get_auth_header(self) -> dict:
        if self._api_key:
            return {"Authorization": f"Bearer {self._api_key}"}
        else:
            return {}

    ################ ENDPOINTS ##################
    def _get_base_url(self) -> str:
        return self._base_url

    def _get_endpoint_healthcheck(self) -> str:
        return "/models"

    def get_endpoint_embedding(self) -> str:
        return "/embeddings"

    ################ PAYLOAD BUILDER ##################
    def get_embed_payload(self, texts: list[str]) -> dict:
        """Build the OpenAI embedding request body.

        Args:
            texts (list[str]): The texts to embed.

        Returns:
            dict: {"model": "...", "input": [...], "encoding_format": "float"}
        """
        payload = {"model": self.embed_model, "input": texts, "encoding_format": "float"}
        if self._dimensions:
            payload["dimensions"] = self._dimensions
        return payload

    ################ ERRORS ##################
    def _build_status_error(self, response: httpx.Response) -> Exception:
        try:
            detail = response.json().get("error", {}).get("message") or response.text[:200]
        except ValueError:
            detail = response.text[:200]
        message = f"OpenAI embedding request failed with status {response.status_code}: {detail}"
        if response.status_code in (401, 403):
            return AuthenticationError(message)
        if response.status_code == 429:
            return RateLimitError(message)
        if response.status_code >= 500:
            return NetworkError(message)
        return EmbeddingError(message)

    ##########################################
    ################# OTHER ##################
    ##########################################

    def extract_embeddings_from_response(self, response_data: dict) -> list[list[float]]:
        """Extract embedding vectors from an OpenAI /embeddings response.

        The "data" items carry an "index" field; they are sorted by it so the
        result follows the input order.

        Args:
            response_data (dict): The parsed JSON response body.

        Returns:
            list[list[float]]: Embedding vectors in input order.

        Raises:
            EmbeddingError: If the response does not contain valid embeddings.
        """
        data = response_data.get("data")
        if not data:
            raise EmbeddingError(
                "OpenAI response does not contain embeddings. "
                f"Response keys: {list(response_data.keys())}"
            )
        try:
            ordered = sorted(data, key=lambda item: item["index"])
            return [item["embedding"] for item in ordered]
        except (KeyError, TypeError) as exc:
            raise EmbeddingError(f"OpenAI response contains malformed embedding items: {exc}") from exc

    async def _embed_batch(self, texts: list[str]) -> list[list[float]]:
        response = await self.do_request(
            method="POST",
            endpoint=self.get_endpoint_embedding(),
            json=self.get_embed_payload(texts),
            raise_on_error=True,
        )
        return self.extract_embeddings_from_response(response.json())

    async def do_fetch_embedding_vector_size(self) -> Tuple[int, str]:
        if self._dimensions:
            return self._dimensions, self.embed_distance
        if self.embed_model in KNOWN_MODEL_DIMENSIONS:
            return KNOWN_MODEL_DIMENSIONS[self.embed_model], self.embed_distance
        # unknown model: ask the backend
        vectors = await self.do_embed(["dimension probe"])
        return len(vectors[0]), self.embed_distance

    ##########################################
    ############ CORE REQUESTS ###############
    ##########################################

    async def boot(self, transport: httpx.AsyncBaseTransport | None = None) -> None:
        """Initialise the HTTP client.

        Raises:
            AuthenticationError: If no API key is configured.
        """
        if not self._api_key:
            raise AuthenticationError(
                f"No API key configured for the OpenAI embedding client. Set {self._get_config_key_name('API_KEY')}."
            )
        await super().boot(transport=transport)
