from abc import abstractmethod

import httpx
from typing import Tuple
from shared.clients.ClientInterface import ClientInterface
from shared.models.errors import EmbeddingError, NetworkError

from shared.helper.HelperConfig import HelperConfig


class EmbedClientInterface(ClientInterface):
    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)

        # model and embedding config
        self.embed_distance = helper_config.get_string_val(f"{self.get_client_type().upper()}_DISTANCE", default="Cosine")
        self.embed_model = helper_config.get_string_val(f"{self.get_client_type().upper()}_MODEL", default=self._get_default_model())

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_client_type(self) -> str:
        """
        Returns the type of the client. E.g. "embed"
        """
        return "embed"

    @abstractmethod
    def _get_default_model(self) -> str:
        """
        Returns the model used when EMBED_MODEL is not set.

        Returns:
            str: The model name (e.g. "text-embedding-3-small")
        """
        pass

    ################ ERRORS ##################
    def _build_transport_error(self, url: str, exc: httpx.TransportError) -> Exception:
        return NetworkError(f"Embedding backend at {url} is unreachable: {exc}")

    ##########################################
    ################# OTHER ##################
    ##########################################

    @abstractmethod
    async def _embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Embed a non-empty list of texts with the backend.

        Args:
            texts (list[str]): The texts to embed.

        Returns:
            list[list[float]]: Embedding vectors in the same order as the input texts.

        Raises:
            IngestError: A backend-specific subclass on failure.
        """
        pass

    @abstractmethod
    async def do_fetch_embedding_vector_size(self) -> Tuple[int, str]:
        """
        Fetch the output vector dimension and distance metric of the configured embedding model.

        Returns:
            Tuple[int, str]: The number of dimensions produced by the embedding model and the distance metric.
        """
        pass

    def validate_embeddings(self, texts: list[str], vectors: list[list[float]]) -> None:
        """Check that there is exactly one vector per text and all vectors share one dimension.

        Raises:
            EmbeddingError: If the counts differ, a vector is empty, or the dimensions differ.
        """
        if len(vectors) != len(texts):
            raise EmbeddingError(
                f"{self.get_engine_name()} returned {len(vectors)} embeddings for {len(texts)} texts."
            )
        dimensions = {len(vector) for vector in vectors}
        if 0 in dimensions or len(dimensions) > 1:
            raise EmbeddingError(
                f"{self.get_engine_name()} returned embeddings of inconsistent dimensions: {sorted(dimensions)}."
            )

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def do_embed(self, texts: list[str] | str) -> list[list[float]]:
        """Embed one or more texts and return the validated vectors.

        Args:
            texts (list[str] | str): One or more texts to embed.

        Returns:
            list[list[float]]: Embedding vectors in the same order as the inputs.

        Raises:
            EmbeddingError: If the backend does not return one valid vector per text.
            IngestError: Backend-specific failures (auth, rate limit, network, model load).
        """
        texts = [texts] if isinstance(texts, str) else list(texts)
        if not texts:
            return []
        vectors = await self._embed_batch(texts)
        self.validate_embeddings(texts, vectors)
        return vectors
