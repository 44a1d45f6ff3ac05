"""Splits page-level documents into bounded, overlapping chunks."""

from shared.models.document import Chunk, ChunkMetadata, RawDocument


class TextChunker:
    """Greedy separator-aware splitter with exact character overlap.

    Each chunk is at most chunk_size characters long. A chunk ends right after
    the last separator inside its window, or at the window end when the window
    holds no usable separator. The next chunk starts chunk_overlap characters
    before the end of the previous one, so consecutive chunks of a document
    share exactly chunk_overlap characters.
    """

    def __init__(self, chunk_size: int = 1000, chunk_overlap: int = 200, separator: str = "\n\n") -> None:
        if chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}.")
        if not 0 <= chunk_overlap < chunk_size:
            raise ValueError(
                f"chunk_overlap must be between 0 and chunk_size - 1 ({chunk_size - 1}), got {chunk_overlap}."
            )
        self.chunk_size = chunk_size
        self.chunk_overlap = chunk_overlap
        self.separator = separator

    def _find_end(self, text: str, start: int, window_end: int) -> int:
        # the chunk must reach past the overlap, otherwise the next start would not advance
        min_end = start + self.chunk_overlap + 1
        if self.separator:
            index = text.rfind(self.separator, start, window_end)
            if index != -1 and index + len(self.separator) >= min_end:
                return index + len(self.separator)
        return window_end

    def split_text(self, text: str) -> list[str]:
        """Split a text into ordered chunks.

        Whitespace-only chunks at either end are dropped. Inner ones are kept so
        that every pair of neighbours still shares the overlap.

        Args:
            text (str): The text to split.

        Returns:
            list[str]: The chunks in text order.
        """
        if not text.strip():
            return []
        chunks: list[str] = []
        start = 0
        while True:
            window_end = start + self.chunk_size
            if window_end >= len(text):
                chunks.append(text[start:])
                break
            end = self._find_end(text, start, window_end)
            chunks.append(text[start:end])
            start = end - self.chunk_overlap
        while not chunks[0].strip():
            chunks.pop(0)
        while not chunks[-1].strip():
            chunks.pop()
        return chunks

    def split(self, documents: list[RawDocument]) -> list[Chunk]:
        """Split documents into chunks, copying each parent's metadata and adding the chunk index.

        Args:
            documents (list[RawDocument]): Page-level documents in page order.

        Returns:
            list[Chunk]: All chunks, grouped by document in input order.
        """
        chunks: list[Chunk] = []
        for document in documents:
            for chunk_index, text in enumerate(self.split_text(document.text)):
                chunks.append(
                    Chunk(
                        text=text,
                        metadata=ChunkMetadata(**document.metadata.model_dump(), chunk_index=chunk_index),
                    )
                )
        return chunks
