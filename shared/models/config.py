from pydantic import BaseModel, Field, model_validator

from shared.helper.HelperConfig import HelperConfig


class EnvConfig(BaseModel):
    """
    Represents a single configuration parameter required for a env setting.

    Attributes:
        env_key (str): The key/name of the environment variable to read.
        val_type (str): The expected type of the environment variable's value. Supported types are "string", "number", "bool", and "list".
        default (str | int | bool | list | None): An optional default value if the environment variable is not set. If None, the variable is required and an error will be raised if it is not set.
    """

    env_key: str
    val_type: str
    default: str | int | bool | list | None = None


class IngestConfig(BaseModel):
    """
    Worker-level settings of the ingestion pipeline.

    Client-specific settings (base URLs, credentials, collection) are read by the
    clients themselves through HelperConfig, see ClientInterface.get_config_val().

    Attributes:
        redis_host (str): Host of the Redis server backing the queue.
        redis_port (int): Port of the Redis server.
        queue_name (str): Name of the queue the worker consumes.
        concurrency (int): Maximum number of jobs processed simultaneously.
        job_timeout (float): Seconds after which a job is failed. 0 disables the timeout.
        max_tries (int): Deliveries of a job with a retryable error before it is failed for good.
        retry_backoff (float): Seconds of deferral per previous try when a job is handed back for retry.
        chunk_size (int): Maximum characters per chunk.
        chunk_overlap (int): Characters shared by consecutive chunks.
        chunk_separator (str): Preferred boundary to split text on.
        embed_batch_size (int): Maximum texts per embedding request.
    """

    redis_host: str = "localhost"
    redis_port: int = 6379
    queue_name: str = "file-upload-queue"
    concurrency: int = Field(default=1, gt=0)
    job_timeout: float = Field(default=600, ge=0)
    max_tries: int = Field(default=3, gt=0)
    retry_backoff: float = Field(default=5, ge=0)
    chunk_size: int = Field(default=1000, gt=0)
    chunk_overlap: int = Field(default=200, ge=0)
    chunk_separator: str = "\n\n"
    embed_batch_size: int = Field(default=64, gt=0)

    @model_validator(mode="after")
    def _check_overlap(self) -> "IngestConfig":
        if self.chunk_overlap >= self.chunk_size:
            raise ValueError(
                f"chunk_overlap ({self.chunk_overlap}) must be smaller than chunk_size ({self.chunk_size})."
            )
        return self

    @classmethod
    def from_helper_config(cls, helper_config: HelperConfig) -> "IngestConfig":
        """Build the settings from environment variables, falling back to the field defaults.

        Raises:
            ValueError: If a value cannot be parsed.
            pydantic.ValidationError: If a value violates its constraint (e.g. concurrency <= 0).
        """
        defaults = cls.model_construct()
        separator = helper_config.get_string_val("CHUNK_SEPARATOR", default=defaults.chunk_separator)
        return cls(
            redis_host=helper_config.get_string_val("REDIS_HOST", default=defaults.redis_host),
            redis_port=helper_config.get_number_val("REDIS_PORT", default=defaults.redis_port),
            queue_name=helper_config.get_string_val("QUEUE_NAME", default=defaults.queue_name),
            concurrency=helper_config.get_number_val("WORKER_CONCURRENCY", default=defaults.concurrency),
            job_timeout=helper_config.get_number_val("JOB_TIMEOUT", default=defaults.job_timeout),
            max_tries=helper_config.get_number_val("MAX_TRIES", default=defaults.max_tries),
            retry_backoff=helper_config.get_number_val("RETRY_BACKOFF", default=defaults.retry_backoff),
            chunk_size=helper_config.get_number_val("CHUNK_SIZE", default=defaults.chunk_size),
            chunk_overlap=helper_config.get_number_val("CHUNK_OVERLAP", default=defaults.chunk_overlap),
            # .env files carry the separator escaped, e.g. "\\n\\n"
            chunk_separator=separator.replace("\\n", "\n").replace("\\t", "\t"),
            embed_batch_size=helper_config.get_number_val("EMBED_BATCH_SIZE", default=defaults.embed_batch_size),
        )
