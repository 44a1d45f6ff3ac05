"""Error taxonomy of the ingestion pipeline.

Every stage raises a subclass of IngestError. The pipeline tags the error with
the stage it came from and re-raises it unchanged, so the queue always sees the
original error type and message.
"""


class IngestError(Exception):
    """Base exception for ingestion errors.

    Attributes:
        stage (str | None): Pipeline stage the error surfaced in ("load", "split", "embed", "store").
        retryable (bool): Whether a redelivery of the same job may succeed.
    """

    retryable: bool = False

    def __init__(self, message: str = "", stage: str | None = None) -> None:
        super().__init__(message)
        self.stage = stage


class MalformedJobError(IngestError):
    """Raised when a job payload cannot be decoded or has no usable path."""
    pass


class SourceFileNotFoundError(IngestError, FileNotFoundError):
    """Raised when the job's path does not resolve to a file."""
    pass


class UnsupportedFormatError(IngestError):
    """Raised when the file is not a PDF."""
    pass


class ParseError(IngestError):
    """Raised when the PDF is corrupt or cannot be opened."""
    pass


class AuthenticationError(IngestError):
    """Raised when the embedding API rejects or lacks credentials."""
    pass


class RateLimitError(IngestError):
    """Raised when the embedding API throttles requests."""
    retryable = True


class NetworkError(IngestError):
    """Raised on transport failures or server errors of the embedding API."""
    retryable = True


class EmbeddingError(IngestError):
    """Raised when an embedding backend returns an unusable response."""
    pass


class ModelLoadError(IngestError):
    """Raised when the local embedding model cannot be initialised."""
    pass


class DimensionMismatchError(IngestError):
    """Raised when vectors do not match the dimension of the target collection."""
    pass


class VectorStoreConnectionError(IngestError, ConnectionError):
    """Raised when the vector store is unreachable."""
    retryable = True


class VectorStoreError(IngestError):
    """Raised when the vector store answers a request with an error status."""
    pass


class JobTimeoutError(IngestError, TimeoutError):
    """Raised when a job exceeds its processing time limit."""
    retryable = True
