"""Job consumer.

Decodes queue payloads and drives the ingestion pipeline under a concurrency
bound. Failures are logged and re-raised so the queue decides about retries.
"""

import asyncio
import json
from collections.abc import Mapping
from typing import Any

from pydantic import ValidationError

from services.pdf_ingest.IngestService import IngestService
from shared.helper.HelperConfig import HelperConfig
from shared.models.document import IngestResult, JobDescriptor
from shared.models.errors import JobTimeoutError, MalformedJobError


def decode_job(payload: str | bytes | Mapping[str, Any]) -> JobDescriptor:
    """Decode a queue payload into a JobDescriptor.

    Args:
        payload (str | bytes | Mapping[str, Any]): JSON text, e.g. '{"path": "/uploads/a.pdf"}', or an already decoded object.

    Returns:
        JobDescriptor: The decoded job.

    Raises:
        MalformedJobError: If the payload is not a JSON object with a non-blank string "path".
    """
    data: Any = payload
    if isinstance(payload, (str, bytes, bytearray)):
        try:
            data = json.loads(payload)
        except ValueError as exc:
            raise MalformedJobError(f"Job payload is not valid JSON: {exc}", stage="decode") from exc
    if not isinstance(data, Mapping):
        raise MalformedJobError(f"Job payload must be a JSON object, got {type(data).__name__}.", stage="decode")
    try:
        return JobDescriptor.model_validate(dict(data))
    except ValidationError as exc:
        reason = "; ".join(f"{'.'.join(map(str, err['loc']))}: {err['msg']}" for err in exc.errors())
        raise MalformedJobError(f"Job payload has no usable path ({reason}).", stage="decode") from exc


class JobConsumer:
    """Processes ingestion jobs, at most `concurrency` at a time."""

    def __init__(
        self,
        helper_config: HelperConfig,
        ingest_service: IngestService,
        concurrency: int = 1,
        job_timeout: float | None = None,
    ) -> None:
        if isinstance(concurrency, bool) or not isinstance(concurrency, int) or concurrency < 1:
            raise ValueError(f"concurrency must be a positive integer, got {concurrency!r}.")
        self.logging = helper_config.get_logger()
        self._ingest_service = ingest_service
        self._semaphore = asyncio.Semaphore(concurrency)
        self._job_timeout = job_timeout or None
        self.concurrency = concurrency

    async def _run(self, job: JobDescriptor) -> IngestResult:
        if self._job_timeout is None:
            return await self._ingest_service.do_ingest(job.path)
        try:
            return await asyncio.wait_for(self._ingest_service.do_ingest(job.path), timeout=self._job_timeout)
        except asyncio.TimeoutError as exc:
            raise JobTimeoutError(
                f"Ingestion of '{job.path}' exceeded the job timeout of {self._job_timeout}s.",
                stage="timeout",
            ) from exc

    async def consume(self, payload: str | bytes | Mapping[str, Any], job_id: str | None = None) -> IngestResult:
        """Decode a payload and run the pipeline for it.

        A malformed payload fails before any pipeline stage runs.

        Args:
            payload (str | bytes | Mapping[str, Any]): The raw job payload.
            job_id (str | None): Queue job identifier, used for logging.

        Returns:
            IngestResult: Summary of the ingested file.

        Raises:
            MalformedJobError: If the payload cannot be decoded.
            JobTimeoutError: If the job exceeds its timeout.
            IngestError: Any stage failure, re-raised unchanged.
        """
        job_label = job_id or "-"
        try:
            job = decode_job(payload)
        except MalformedJobError as exc:
            self.logging.error("Job %s failed at stage 'decode': %s", job_label, exc)
            raise

        async with self._semaphore:
            self.logging.info("Processing job %s: '%s'", job_label, job.path)
            try:
                result = await self._run(job)
            except Exception as exc:
                stage = getattr(exc, "stage", None) or "unknown"
                self.logging.error("Job %s failed at stage '%s': %s", job_label, stage, exc)
                raise

        self.logging.info(
            "Job %s completed successfully: %d chunks from %d pages of '%s'.",
            job_label, result.chunks, result.pages, job.path,
        )
        return result
