import asyncio
import threading

import httpx
from sentence_transformers import SentenceTransformer
from typing import Tuple

from shared.clients.embed.EmbedClientInterface import EmbedClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig
from shared.models.errors import EmbeddingError, ModelLoadError


class EmbedClientLocal(EmbedClientInterface):
    """Embeds texts with a sentence-transformers model held in process memory.

    The model is loaded once, by boot() or by the first embed call, and shared by
    all jobs. Inference runs in a worker thread, one batch at a time. A
    cancelled embed call cannot free the model for the next batch while its
    thread is still encoding.
    """

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self._device = self.get_config_val("DEVICE", default="cpu", val_type="string")
        self._normalize = self.get_config_val("NORMALIZE", default=True, val_type="bool")
        self._model: SentenceTransformer | None = None
        self._lock = asyncio.Lock()
        # taken inside the inference thread
        self._encode_lock = threading.Lock()

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_engine_name(self) -> str:
        return "Local"

    def _get_default_model(self) -> str:
        return "sentence-transformers/all-MiniLM-L6-v2"

    ################ CONFIG ##################
    def _get_required_config(self) -> list[EnvConfig]:
        return [
            EnvConfig(env_key="DEVICE", val_type="string", default="cpu"),
            EnvConfig(env_key="NORMALIZE", val_type="bool", default=True),
        ]

    ################ AUTH ##################
    def _get_auth_header(self) -> dict:
        # no remote backend
        return {}

    ################ ENDPOINTS ##################
    def _get_base_url(self) -> str:
        return ""

    def _get_endpoint_healthcheck(self) -> str:
        return ""

    ################ ERRORS ##################
    def _build_status_error(self, response: httpx.Response) -> Exception:
        return EmbeddingError(f"Unexpected HTTP status {response.status_code} from local embedding client.")

    def is_booted(self) -> bool:
        return self._model is not None

    ##########################################
    ################ MODEL ###################
    ##########################################

    async def _ensure_model(self) -> SentenceTransformer:
        """Load the model on first use. Must be called with self._lock held.

        Raises:
            ModelLoadError: If the model cannot be initialised.
        """
        if self._model is None:
            self.logging.info("Loading local embedding model '%s' on device '%s'...", self.embed_model, self._device)
            try:
                self._model = await asyncio.to_thread(SentenceTransformer, self.embed_model, device=self._device)
            except Exception as exc:
                raise ModelLoadError(f"Could not load local embedding model '{self.embed_model}': {exc}") from exc
            self.logging.info(
                "Loaded local embedding model '%s' (dimension %d).",
                self.embed_model, self._model.get_sentence_embedding_dimension(),
            )
        return self._model

    async def _embed_batch(self, texts: list[str]) -> list[list[float]]:
        async with self._lock:
            model = await self._ensure_model()
            embeddings = await asyncio.to_thread(self._encode, model, texts)
        return embeddings.tolist()

    def _encode(self, model: SentenceTransformer, texts: list[str]):
        with self._encode_lock:
            return model.encode(
                texts,
                normalize_embeddings=self._normalize,
                convert_to_numpy=True,
                show_progress_bar=False,
            )

    async def do_fetch_embedding_vector_size(self) -> Tuple[int, str]:
        async with self._lock:
            model = await self._ensure_model()
        return int(model.get_sentence_embedding_dimension()), self.embed_distance

    ##########################################
    ############ CORE REQUESTS ###############
    ##########################################

    async def do_healthcheck(self) -> bool:
        return self._model is not None

    async def boot(self, transport: httpx.AsyncBaseTransport | None = None) -> None:
        """Load the model into memory.

        Raises:
            ModelLoadError: If the model cannot be initialised.
        """
        async with self._lock:
            await self._ensure_model()

    async def close(self) -> None:
        """Release the model."""
        self._model = None
