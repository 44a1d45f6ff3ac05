"""Ingestion pipeline.

Loads a PDF, splits its pages into chunks, embeds them with the configured
EmbedClient and upserts the resulting vectors into the RAG backend.
"""

import uuid
from contextlib import asynccontextmanager
from typing import AsyncIterator

from services.pdf_ingest.DocumentLoader import DocumentLoader
from services.pdf_ingest.TextChunker import TextChunker
from shared.clients.embed.EmbedClientInterface import EmbedClientInterface
from shared.clients.rag.RAGClientInterface import RAGClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.models.document import Chunk, IngestResult, VectorRecord
from shared.models.errors import IngestError


def make_point_id(source: str, page: int, chunk_index: int) -> str:
    """Build a deterministic UUID5 point ID for a chunk.

    The same chunk of the same file always maps to the same point ID, so a
    redelivered job overwrites its points instead of duplicating them.

    Args:
        source (str): Source path of the file.
        page (int): 1-based page number.
        chunk_index (int): Zero-based chunk index within the page.

    Returns:
        str: UUID string usable as a Qdrant point ID.
    """
    return str(uuid.uuid5(uuid.NAMESPACE_OID, f"{source}:{page}:{chunk_index}"))


class IngestService:
    """Runs the pipeline stages load → split → embed → store for one file."""

    def __init__(
        self,
        helper_config: HelperConfig,
        loader: DocumentLoader,
        chunker: TextChunker,
        embed_client: EmbedClientInterface,
        rag_client: RAGClientInterface,
        embed_batch_size: int = 64,
    ) -> None:
        self.logging = helper_config.get_logger()
        self._loader = loader
        self._chunker = chunker
        self._embed_client = embed_client
        self._rag_client = rag_client
        self._embed_batch_size = embed_batch_size

    ##########################################
    ################ STAGES ##################
    ##########################################

    @asynccontextmanager
    async def _stage(self, stage: str, path: str) -> AsyncIterator[None]:
        """Tag errors leaving a stage with its name, log them and re-raise unchanged."""
        try:
            yield
        except IngestError as exc:
            if exc.stage is None:
                exc.stage = stage
            self.logging.error("Stage '%s' failed for '%s': %s: %s", stage, path, type(exc).__name__, exc)
            raise
        except Exception as exc:
            self.logging.error("Stage '%s' failed for '%s' with unexpected %s: %s", stage, path, type(exc).__name__, exc)
            raise

    async def _embed_chunks(self, chunks: list[Chunk]) -> list[list[float]]:
        vectors: list[list[float]] = []
        for batch_start in range(0, len(chunks), self._embed_batch_size):
            batch = chunks[batch_start: batch_start + self._embed_batch_size]
            vectors.extend(await self._embed_client.do_embed([chunk.text for chunk in batch]))
        return vectors

    ##########################################
    ############### PIPELINE #################
    ##########################################

    async def do_ingest(self, path: str) -> IngestResult:
        """Ingest one file into the vector store.

        Nothing is written unless every chunk was embedded. Points of the same
        file left over from an earlier, longer version are removed after the upsert.

        Args:
            path (str): Path of the PDF file.

        Returns:
            IngestResult: Page and chunk counts of the ingested file.

        Raises:
            IngestError: The first stage failure, tagged with its stage.
        """
        async with self._stage("load", path):
            documents = await self._loader.load(path)

        async with self._stage("split", path):
            chunks = self._chunker.split(documents)
        self.logging.info("Split '%s' into %d chunks.", path, len(chunks))

        if not chunks:
            self.logging.warning("No extractable text in '%s'. Nothing to store.", path)
            return IngestResult(path=path, pages=len(documents), chunks=0)

        async with self._stage("embed", path):
            vectors = await self._embed_chunks(chunks)

        records = [
            VectorRecord(
                id=make_point_id(chunk.metadata.source, chunk.metadata.page, chunk.metadata.chunk_index),
                vector=vector,
                text=chunk.text,
                metadata=chunk.metadata,
            )
            for chunk, vector in zip(chunks, vectors)
        ]

        collection = self._rag_client.get_collection_name()
        async with self._stage("store", path):
            await self._rag_client.do_upsert_records(records, collection)
            await self._rag_client.do_delete_stale_points(path, [record.id for record in records], collection)

        self.logging.info("All %d chunks of '%s' are added to collection '%s'.", len(records), path, collection)
        return IngestResult(
            path=path,
            pages=len(documents),
            chunks=len(records),
            vector_size=len(records[0].vector),
            collection=collection,
        )
