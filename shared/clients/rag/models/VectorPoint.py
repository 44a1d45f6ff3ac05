"""VectorPoint model: metadata stored alongside each vector chunk in a RAG backend."""

import hashlib

from pydantic import BaseModel

from shared.models.document import VectorRecord


class VectorPoint(BaseModel):
    """Payload stored alongside each vector chunk in a RAG backend.

    The source field is mandatory on every point; stale-point cleanup filters on it.

    Attributes:
        source:       Path of the source file the chunk was taken from.
        page:         1-based page number within the source file.
        total_pages:  Number of pages of the source file.
        chunk_index:  Zero-based position of this chunk within its page.
        chunk_text:   Raw text content of this chunk.
        content_hash: SHA-256 hex digest of chunk_text.
    """

    source: str
    page: int
    total_pages: int
    chunk_index: int
    chunk_text: str
    content_hash: str

    @classmethod
    def from_record(cls, record: VectorRecord) -> "VectorPoint":
        return cls(
            source=record.metadata.source,
            page=record.metadata.page,
            total_pages=record.metadata.total_pages,
            chunk_index=record.metadata.chunk_index,
            chunk_text=record.text,
            content_hash=hashlib.sha256(record.text.encode("utf-8")).hexdigest(),
        )
