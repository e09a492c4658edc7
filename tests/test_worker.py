"""Tests for the standalone worker entry point."""

import signal
from unittest.mock import AsyncMock, Mock

import pytest

from proof_of_build import worker
from proof_of_build.schemas import PipelineStage
from proof_of_build.services.manifest_poller import PollSummary
from tests.support.factories import create_state


@pytest.fixture
def pipeline():
    """Pipeline double exposing the poller and close() used by the worker."""
    mock_pipeline = Mock()
    mock_pipeline.poller.poll_once = AsyncMock(return_value=PollSummary())
    mock_pipeline.poller.process_project = AsyncMock(
        return_value=create_state("p1", PipelineStage.READY)
    )
    mock_pipeline.close = AsyncMock()
    return mock_pipeline


@pytest.fixture(autouse=True)
def reset_shutdown_flag(monkeypatch):
    monkeypatch.setattr(worker, "shutdown_requested", False)


class TestParseArgs:
    def test_p1_defaults(self):
        args = worker.parse_args([])

        assert args.once is False
        assert args.project_id is None
        assert args.interval is None

    def test_p1_project_id_and_interval(self):
        args = worker.parse_args(["--project-id", "p1", "--interval", "30"])

        assert args.project_id == "p1"
        assert args.interval == 30

    def test_p2_once_and_project_id_are_exclusive(self):
        with pytest.raises(SystemExit):
            worker.parse_args(["--once", "--project-id", "p1"])


class TestRunWorker:
    @pytest.mark.asyncio
    async def test_p1_project_id_resumes_project(self, pipeline):
        exit_code = await worker.run_worker(worker.parse_args(["--project-id", "p1"]), pipeline)

        assert exit_code == 0
        pipeline.poller.process_project.assert_awaited_once_with("p1")
        pipeline.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_p1_project_failure_exit_code(self, pipeline):
        pipeline.poller.process_project.side_effect = RuntimeError("audio down")

        exit_code = await worker.run_worker(worker.parse_args(["--project-id", "p1"]), pipeline)

        assert exit_code == 1
        pipeline.close.assert_awaited_once()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("failed, expected", [(0, 0), (2, 1)])
    async def test_p1_once_exit_code_reflects_failures(self, pipeline, failed, expected):
        pipeline.poller.poll_once.return_value = PollSummary(failed=failed)

        exit_code = await worker.run_worker(worker.parse_args(["--once"]), pipeline)

        assert exit_code == expected
        pipeline.poller.poll_once.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_p1_loop_runs_until_shutdown(self, pipeline, monkeypatch):
        """[P1] The loop keeps polling until a shutdown is requested."""
        calls = []

        def _poll():
            calls.append(1)
            if len(calls) == 2:
                worker.shutdown_requested = True
            return PollSummary()

        pipeline.poller.poll_once.side_effect = _poll
        worker.shutdown_requested = False
        wait = AsyncMock()
        monkeypatch.setattr(worker, "wait_for_next_poll", wait)

        exit_code = await worker.run_worker(worker.parse_args(["--interval", "30"]), pipeline)

        assert exit_code == 0
        assert len(calls) == 2
        assert [call.args[0] for call in wait.await_args_list] == [30, 30]
        pipeline.close.assert_awaited_once()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("raw, expected", [("0", 10), ("-5", 10), ("99999", 3600), ("45", 45)])
    async def test_p1_interval_override_is_clamped(self, pipeline, monkeypatch, raw, expected):
        """[P1] --interval honors the same bounds as POLL_INTERVAL_SECONDS.

        GIVEN: An interval override outside (or inside) the 10-3600 range
        WHEN: The worker starts its loop
        THEN: The loop receives the clamped interval, never a busy-poll value
        """
        # GIVEN: Loop replaced so the test does not poll
        main_loop = AsyncMock()
        monkeypatch.setattr(worker, "worker_main_loop", main_loop)

        # WHEN: Running with the override
        exit_code = await worker.run_worker(worker.parse_args(["--interval", raw]), pipeline)

        # THEN: Clamped interval used
        assert exit_code == 0
        main_loop.assert_awaited_once_with(pipeline, expected)

    @pytest.mark.asyncio
    async def test_p2_loop_survives_poll_error(self, pipeline):
        def _fail():
            worker.shutdown_requested = True
            raise RuntimeError("listing failed")

        pipeline.poller.poll_once.side_effect = _fail

        await worker.worker_main_loop(pipeline, 0)

        pipeline.poller.poll_once.assert_awaited_once()


def test_p2_signal_handler_requests_shutdown():
    worker.signal_handler(signal.SIGTERM, None)

    assert worker.shutdown_requested is True
