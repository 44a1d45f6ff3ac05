"""Pydantic models for the data flowing through the ingestion pipeline.

Hierarchy:
  JobDescriptor:  the queue payload naming one source file.
  RawDocument:    one page of a loaded source file.
  Chunk:          bounded slice of a RawDocument's text.
  VectorRecord:   a chunk together with its id and embedding, as persisted.
  IngestResult:   summary returned by a completed job.
"""

from pydantic import BaseModel, field_validator


class JobDescriptor(BaseModel):
    """Decoded queue payload. Extra keys sent by producers are ignored."""

    path: str

    @field_validator("path")
    @classmethod
    def _path_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("path must not be blank")
        return value


class DocumentMetadata(BaseModel):
    """Metadata of a page-level document.

    Attributes:
        source:      Path of the source file as given in the job.
        page:        1-based page number.
        total_pages: Number of pages of the source file.
    """

    source: str
    page: int
    total_pages: int


class ChunkMetadata(DocumentMetadata):
    """Parent document metadata plus the zero-based position of the chunk within its page."""

    chunk_index: int


class RawDocument(BaseModel):
    text: str
    metadata: DocumentMetadata


class Chunk(BaseModel):
    text: str
    metadata: ChunkMetadata


class VectorRecord(BaseModel):
    """The unit persisted in the vector store, 1:1 with a Chunk."""

    id: str
    vector: list[float]
    text: str
    metadata: ChunkMetadata


class IngestResult(BaseModel):
    path: str
    pages: int
    chunks: int
    vector_size: int | None = None
    collection: str | None = None
