"""PDF document loader.

Reads the file referenced by a job and returns one RawDocument per page, in
page order.
"""

import asyncio
from pathlib import Path

from pypdf import PdfReader
from pypdf.errors import PyPdfError

from shared.helper.HelperConfig import HelperConfig
from shared.models.document import DocumentMetadata, RawDocument
from shared.models.errors import ParseError, SourceFileNotFoundError, UnsupportedFormatError

PDF_MAGIC = b"%PDF-"
HEADER_SCAN_BYTES = 1024  # readers accept the header anywhere in the first KiB


class DocumentLoader:
    """Loads PDF files page by page with pypdf."""

    def __init__(self, helper_config: HelperConfig) -> None:
        self.logging = helper_config.get_logger()

    async def load(self, path: str) -> list[RawDocument]:
        """Load a PDF file into page-level documents.

        Parsing runs in a worker thread so other jobs keep progressing.

        Args:
            path (str): Path of the PDF file as given in the job.

        Returns:
            list[RawDocument]: One document per page, in page order. Pages without
                extractable text yield a document with empty text.

        Raises:
            SourceFileNotFoundError: If path does not resolve to a file.
            UnsupportedFormatError: If the file is not a PDF.
            ParseError: If the PDF is corrupt or encrypted.
        """
        documents = await asyncio.to_thread(self._load_sync, path)
        self.logging.info("Loaded %d page document(s) from '%s'.", len(documents), path)
        return documents

    def _load_sync(self, path: str) -> list[RawDocument]:
        file_path = Path(path)
        if not file_path.is_file():
            raise SourceFileNotFoundError(f"Source file not found: '{path}'.")

        with file_path.open("rb") as handle:
            header = handle.read(HEADER_SCAN_BYTES)
        if PDF_MAGIC not in header:
            raise UnsupportedFormatError(f"File '{path}' is not a PDF document.")

        try:
            reader = PdfReader(file_path)
            if reader.is_encrypted and not reader.decrypt(""):
                raise ParseError(f"PDF '{path}' is encrypted and cannot be opened without a password.")
            total_pages = len(reader.pages)
            documents: list[RawDocument] = []
            for page_number, page in enumerate(reader.pages, start=1):
                documents.append(
                    RawDocument(
                        text=page.extract_text() or "",
                        metadata=DocumentMetadata(source=path, page=page_number, total_pages=total_pages),
                    )
                )
        except (PyPdfError, ValueError, KeyError, TypeError, AttributeError, IndexError) as exc:
            # pypdf surfaces structural damage through assorted builtin errors
            raise ParseError(f"Could not parse PDF '{path}': {exc}") from exc
        return documents
