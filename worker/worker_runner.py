"""Worker entry point.

Consumes file-upload jobs from the Redis queue and ingests the referenced PDF
into the vector store. The embedding engine, vector store and pipeline
settings come from environment variables (optionally from a .env file).

Usage:
    python -m worker.worker_runner
    pdf-ingest-worker

Jobs are enqueued by producers as:
    await redis.enqueue_job("ingest_file", '{"path": "/uploads/sample.pdf"}', _queue_name="file-upload-queue")
"""

from typing import Any

from arq.connections import RedisSettings
from arq.worker import Retry, func, run_worker
from dotenv import load_dotenv

from services.pdf_ingest.DocumentLoader import DocumentLoader
from services.pdf_ingest.IngestService import IngestService
from services.pdf_ingest.JobConsumer import JobConsumer
from services.pdf_ingest.TextChunker import TextChunker
from shared.clients.embed.EmbedClientInterface import EmbedClientInterface
from shared.clients.embed.EmbedClientManager import EmbedClientManager
from shared.clients.rag.RAGClientInterface import RAGClientInterface
from shared.clients.rag.RAGClientManager import RAGClientManager
from shared.helper.HelperConfig import HelperConfig
from shared.logging.logging_setup import get_logger, setup_logging
from shared.models.config import IngestConfig
from shared.models.errors import IngestError, VectorStoreConnectionError

logging = get_logger()

JOB_NAME = "ingest_file"
QUEUE_TIMEOUT_GRACE = 10  # seconds the queue waits beyond the pipeline's own timeout
UNBOUNDED_JOB_TIMEOUT = 24 * 3600


def build_job_consumer(
    helper_config: HelperConfig,
    config: IngestConfig,
    embed_client: EmbedClientInterface,
    rag_client: RAGClientInterface,
) -> JobConsumer:
    """Assemble the pipeline around already booted, shared clients."""
    ingest_service = IngestService(
        helper_config=helper_config,
        loader=DocumentLoader(helper_config=helper_config),
        chunker=TextChunker(
            chunk_size=config.chunk_size,
            chunk_overlap=config.chunk_overlap,
            separator=config.chunk_separator,
        ),
        embed_client=embed_client,
        rag_client=rag_client,
        embed_batch_size=config.embed_batch_size,
    )
    return JobConsumer(
        helper_config=helper_config,
        ingest_service=ingest_service,
        concurrency=config.concurrency,
        job_timeout=config.job_timeout,
    )


##########################################
############### LIFECYCLE ################
##########################################

async def startup(ctx: dict[str, Any]) -> None:
    """Create and boot the shared clients once per worker process."""
    helper_config = HelperConfig(logger=logging)
    config = IngestConfig.from_helper_config(helper_config)
    embed_client = EmbedClientManager(helper_config=helper_config).get_client()
    rag_client = RAGClientManager(helper_config=helper_config).get_client()
    ctx["embed_client"] = embed_client
    ctx["rag_client"] = rag_client

    logging.info("Booting clients...")
    # embed client is required, there is no point in ingesting without embeddings
    await embed_client.boot()
    if not await embed_client.do_healthcheck():
        logging.warning(
            "Embed client '%s' failed its healthcheck. Jobs will fail until it is reachable.",
            embed_client.get_engine_name(),
        )

    await rag_client.boot()
    if not await rag_client.do_healthcheck():
        raise VectorStoreConnectionError(
            f"RAG client '{rag_client.get_engine_name()}' is not healthy. Cannot store vectors."
        )

    ctx["config"] = config
    ctx["job_consumer"] = build_job_consumer(helper_config, config, embed_client, rag_client)
    logging.info(
        "Worker started with %s embeddings (model '%s'), concurrency %d, queue '%s', collection '%s'.",
        embed_client.get_engine_name(), embed_client.embed_model, config.concurrency,
        config.queue_name, rag_client.get_collection_name(),
        color="green",
    )


async def shutdown(ctx: dict[str, Any]) -> None:
    """Release the shared clients."""
    logging.info("Shutting down, closing all clients...")
    for key in ("embed_client", "rag_client"):
        client = ctx.get(key)
        if client is not None:
            await client.close()
    logging.info("All clients closed.")


##########################################
################# JOBS ###################
##########################################

async def ingest_file(ctx: dict[str, Any], payload: Any) -> dict:
    """Queue job: ingest the file named in payload.

    Retryable failures are handed back to the queue with a linear backoff until
    max_tries is reached. Everything else propagates and fails the job.

    Args:
        ctx (dict[str, Any]): The arq job context, carrying the shared job consumer.
        payload (Any): The job payload, e.g. '{"path": "/uploads/sample.pdf"}'.

    Returns:
        dict: The IngestResult, stored by arq as the job result.
    """
    consumer: JobConsumer = ctx["job_consumer"]
    config: IngestConfig = ctx["config"]
    job_id = ctx.get("job_id")
    try:
        result = await consumer.consume(payload, job_id=job_id)
    except IngestError as exc:
        job_try = ctx.get("job_try", 1)
        if exc.retryable and job_try < config.max_tries:
            defer = job_try * config.retry_backoff
            logging.warning(
                "Job %s handed back to the queue after try %d of %d, retrying in %.0fs.",
                job_id, job_try, config.max_tries, defer,
            )
            raise Retry(defer=defer) from exc
        raise
    return result.model_dump()


class WorkerSettings:
    """Static arq settings. Queue, Redis and concurrency are added from the environment by worker_options()."""

    functions = [func(ingest_file, name=JOB_NAME)]
    on_startup = startup
    on_shutdown = shutdown


def worker_options(config: IngestConfig) -> dict[str, Any]:
    """Translate the worker settings into arq Worker keyword arguments."""
    return {
        "queue_name": config.queue_name,
        "redis_settings": RedisSettings(host=config.redis_host, port=config.redis_port),
        "max_jobs": config.concurrency,
        "max_tries": config.max_tries,
        "job_timeout": config.job_timeout + QUEUE_TIMEOUT_GRACE if config.job_timeout else UNBOUNDED_JOB_TIMEOUT,
    }


def main() -> None:
    """Run the worker until interrupted."""
    load_dotenv()
    setup_logging()
    config = IngestConfig.from_helper_config(HelperConfig(logger=logging))
    run_worker(WorkerSettings, **worker_options(config))


if __name__ == "__main__":
    main()
