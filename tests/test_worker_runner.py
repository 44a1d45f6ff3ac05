"""
Test suite for the arq worker entry points.

The job consumer and the client managers are mocked; no Redis is needed.
"""

import importlib
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from arq.worker import Retry

from shared.models.config import IngestConfig
from shared.models.document import IngestResult
from shared.models.errors import NetworkError, ParseError, VectorStoreConnectionError
from worker import worker_runner


def _ctx(consume: AsyncMock, job_try: int = 1) -> dict:
    consumer = MagicMock()
    consumer.consume = consume
    return {
        "job_consumer": consumer,
        "config": IngestConfig(max_tries=3, retry_backoff=5),
        "job_id": "abc",
        "job_try": job_try,
    }


class TestIngestFileJob:
    """Test suite for the ingest_file job function."""

    async def test_success_should_return_result_dict(self) -> None:
        consume = AsyncMock(return_value=IngestResult(path="/a.pdf", pages=1, chunks=2, vector_size=8, collection="c"))

        result = await worker_runner.ingest_file(_ctx(consume), '{"path": "/a.pdf"}')

        consume.assert_awaited_once_with('{"path": "/a.pdf"}', job_id="abc")
        assert result == {"path": "/a.pdf", "pages": 1, "chunks": 2, "vector_size": 8, "collection": "c"}

    async def test_retryable_error_should_be_deferred_with_backoff(self) -> None:
        consume = AsyncMock(side_effect=NetworkError("unreachable", stage="embed"))

        with pytest.raises(Retry) as exc_info:
            await worker_runner.ingest_file(_ctx(consume, job_try=2), '{"path": "/a.pdf"}')

        assert exc_info.value.defer_score == 10_000
        assert isinstance(exc_info.value.__cause__, NetworkError)

    async def test_retryable_error_on_last_try_should_propagate(self) -> None:
        consume = AsyncMock(side_effect=NetworkError("unreachable", stage="embed"))

        with pytest.raises(NetworkError):
            await worker_runner.ingest_file(_ctx(consume, job_try=3), '{"path": "/a.pdf"}')

    async def test_permanent_error_should_propagate(self) -> None:
        consume = AsyncMock(side_effect=ParseError("broken", stage="load"))

        with pytest.raises(ParseError):
            await worker_runner.ingest_file(_ctx(consume), '{"path": "/a.pdf"}')


class TestWorkerLifecycle:
    """Test suite for startup, shutdown and worker options."""

    @staticmethod
    def _clients(rag_healthy: bool = True) -> tuple[MagicMock, MagicMock]:
        embed_client = MagicMock()
        embed_client.boot = AsyncMock()
        embed_client.close = AsyncMock()
        embed_client.do_healthcheck = AsyncMock(return_value=True)
        embed_client.embed_model = "test-model"
        embed_client.get_engine_name.return_value = "openai"
        rag_client = MagicMock()
        rag_client.boot = AsyncMock()
        rag_client.close = AsyncMock()
        rag_client.do_healthcheck = AsyncMock(return_value=rag_healthy)
        rag_client.get_engine_name.return_value = "qdrant"
        rag_client.get_collection_name.return_value = "test-collection"
        return embed_client, rag_client

    async def test_startup_should_build_consumer_and_shutdown_should_close_clients(self, monkeypatch) -> None:
        monkeypatch.setenv("WORKER_CONCURRENCY", "3")
        embed_client, rag_client = self._clients()
        ctx: dict = {}

        with patch.object(worker_runner, "EmbedClientManager") as embed_manager, \
                patch.object(worker_runner, "RAGClientManager") as rag_manager:
            embed_manager.return_value.get_client.return_value = embed_client
            rag_manager.return_value.get_client.return_value = rag_client
            await worker_runner.startup(ctx)

        assert ctx["job_consumer"].concurrency == 3
        embed_client.boot.assert_awaited_once()
        rag_client.boot.assert_awaited_once()

        await worker_runner.shutdown(ctx)

        embed_client.close.assert_awaited_once()
        rag_client.close.assert_awaited_once()

    async def test_startup_should_fail_when_store_is_unhealthy(self) -> None:
        embed_client, rag_client = self._clients(rag_healthy=False)

        with patch.object(worker_runner, "EmbedClientManager") as embed_manager, \
                patch.object(worker_runner, "RAGClientManager") as rag_manager:
            embed_manager.return_value.get_client.return_value = embed_client
            rag_manager.return_value.get_client.return_value = rag_client
            with pytest.raises(VectorStoreConnectionError):
                await worker_runner.startup({})

    def test_worker_options_should_follow_config(self) -> None:
        config = IngestConfig(queue_name="uploads", redis_host="redis", redis_port=6380, concurrency=4, max_tries=5, job_timeout=60)

        options = worker_runner.worker_options(config)

        assert options["queue_name"] == "uploads"
        assert options["max_jobs"] == 4
        assert options["max_tries"] == 5
        assert options["job_timeout"] == 60 + worker_runner.QUEUE_TIMEOUT_GRACE
        assert (options["redis_settings"].host, options["redis_settings"].port) == ("redis", 6380)

    def test_disabled_timeout_should_map_to_unbounded(self) -> None:
        options = worker_runner.worker_options(IngestConfig(job_timeout=0))

        assert options["job_timeout"] == worker_runner.UNBOUNDED_JOB_TIMEOUT

    def test_job_should_be_registered_under_its_queue_name(self) -> None:
        assert [f.name for f in worker_runner.WorkerSettings.functions] == ["ingest_file"]


class TestWorkerEntryPoint:
    """Test suite for module import and main()."""

    def test_import_should_not_configure_logging(self, monkeypatch, tmp_path) -> None:
        monkeypatch.setenv("ROOT_DIR", str(tmp_path))

        importlib.reload(worker_runner)

        assert not (tmp_path / "logs").exists()

    def test_main_should_load_env_and_logging_before_running(self) -> None:
        calls = MagicMock()

        with patch.object(worker_runner, "load_dotenv", calls.load_dotenv), \
                patch.object(worker_runner, "setup_logging", calls.setup_logging), \
                patch.object(worker_runner, "run_worker", calls.run_worker):
            worker_runner.main()

        assert [c[0] for c in calls.mock_calls] == ["load_dotenv", "setup_logging", "run_worker"]
        assert calls.run_worker.call_args.args == (worker_runner.WorkerSettings,)
