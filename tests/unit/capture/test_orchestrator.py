"""Tests for BatchCaptureOrchestrator.

The remote service is replaced by the in-memory FakeJobClient from
conftest; timings come from the ``fast_config`` fixture.
"""

import asyncio

import pytest

from batch_capture.capture.events import (
    JobCompleted,
    JobFailed,
    JobFailedToStart,
    JobStarted,
    JobStateChanged,
    ScreenshotCompleted,
    ScreenshotFailed,
)
from batch_capture.capture.orchestrator import BatchCaptureOrchestrator, BatchSummary
from batch_capture.enums import JobState, ScreenshotState
from batch_capture.errors import ConfigurationError, PollingAbortedError, SubmissionError, TransportError
from batch_capture.models.domain import CaptureUnit


@pytest.fixture
def unit_factory(make_browsers):
    def _unit(url: str, browsers: int = 2, filename: str | None = None) -> CaptureUnit:
        return CaptureUnit(url=url, browsers=make_browsers(browsers), filename=filename)

    return _unit


@pytest.fixture
def recorder():
    received = []

    def attach(orchestrator: BatchCaptureOrchestrator) -> list:
        orchestrator.events.subscribe(received.append)
        return received

    return attach


class TestValidation:
    """Invalid inputs are rejected before any work starts."""

    async def test_existing_root_is_rejected(self, fake_client, fast_config, tmp_path, unit_factory):
        orchestrator = BatchCaptureOrchestrator(fake_client, fast_config)

        with pytest.raises(ConfigurationError):
            await orchestrator.run_batch(tmp_path, False, [unit_factory("https://a.example/")])

        assert fake_client.calls == []

    async def test_empty_root_is_rejected(self, fake_client, fast_config, unit_factory):
        orchestrator = BatchCaptureOrchestrator(fake_client, fast_config)

        with pytest.raises(ConfigurationError):
            await orchestrator.run_batch("  ", False, [unit_factory("https://a.example/")])

    async def test_no_units_is_rejected(self, fake_client, fast_config, tmp_path):
        orchestrator = BatchCaptureOrchestrator(fake_client, fast_config)

        with pytest.raises(ConfigurationError):
            await orchestrator.run_batch(tmp_path / "out", False, [])

        assert not (tmp_path / "out").exists()

    async def test_unit_without_browsers_is_rejected(self, fake_client, fast_config, tmp_path):
        orchestrator = BatchCaptureOrchestrator(fake_client, fast_config)
        unit = CaptureUnit.model_construct(url="https://a.example/", browsers=(), filename=None)

        with pytest.raises(ConfigurationError):
            await orchestrator.run_batch(tmp_path / "out", False, [unit])

    async def test_second_concurrent_batch_is_rejected(self, fake_client, fast_config, tmp_path, unit_factory):
        orchestrator = BatchCaptureOrchestrator(fake_client, fast_config)
        first = asyncio.create_task(
            orchestrator.run_batch(tmp_path / "one", False, [unit_factory("https://a.example/")])
        )
        await asyncio.sleep(0)

        assert orchestrator.is_running
        with pytest.raises(ConfigurationError):
            await orchestrator.run_batch(tmp_path / "two", False, [unit_factory("https://b.example/")])

        await first
        assert not orchestrator.is_running


class TestRunBatch:
    async def test_happy_path(self, fake_client, fast_config, tmp_path, unit_factory, recorder):
        orchestrator = BatchCaptureOrchestrator(fake_client, fast_config)
        received = recorder(orchestrator)
        root = tmp_path / "out"

        summary = await orchestrator.run_batch(
            root,
            True,
            [unit_factory("https://a.example/", 30), unit_factory("https://b.example/", 2)],
        )

        assert summary == BatchSummary(
            units=3,
            jobs_started=3,
            jobs_completed=3,
            screenshots_completed=32,
        )
        assert not summary.has_failures
        assert sorted(len(b) for _, b, _ in fake_client.submitted) == [2, 5, 25]
        assert all(tunnel for _, _, tunnel in fake_client.submitted)
        assert len(list(root.rglob("*.png"))) == 32
        assert all(job.state == JobState.DONE for job in orchestrator.jobs)
        assert len(orchestrator.completed_screenshots) == 32
        assert len([e for e in received if isinstance(e, ScreenshotCompleted)]) == 32

    async def test_job_events_in_order(self, fake_client, fast_config, tmp_path, unit_factory, recorder):
        orchestrator = BatchCaptureOrchestrator(fake_client, fast_config)
        received = recorder(orchestrator)

        await orchestrator.run_batch(tmp_path / "out", False, [unit_factory("https://a.example/")])

        kinds = [type(e) for e in received if not isinstance(e, ScreenshotCompleted)]
        assert kinds == [JobStarted, JobStateChanged, JobStateChanged, JobCompleted]
        assert received[-1].job.state == JobState.DONE

    async def test_submit_failure_is_isolated(self, fake_client, fast_config, tmp_path, unit_factory, recorder):
        config = fast_config.model_copy(update={"session_limit": 1})
        orchestrator = BatchCaptureOrchestrator(fake_client, config)
        received = recorder(orchestrator)
        fake_client.fail_submit_for.add("https://bad.example/")

        summary = await orchestrator.run_batch(
            tmp_path / "out",
            False,
            [unit_factory("https://bad.example/"), unit_factory("https://good.example/")],
        )

        failed = [e for e in received if isinstance(e, JobFailedToStart)]
        assert len(failed) == 1
        assert failed[0].url == "https://bad.example/"
        assert isinstance(failed[0].error, SubmissionError)
        assert len(failed[0].browsers) == 2
        assert summary.jobs_failed_to_start == 1
        assert summary.jobs_started == 1
        assert summary.jobs_completed == 1
        assert summary.has_failures
        assert len(orchestrator.jobs) == 1

    async def test_network_error_on_submit_is_reported(self, fake_client, fast_config, tmp_path, unit_factory, recorder):
        orchestrator = BatchCaptureOrchestrator(fake_client, fast_config)
        received = recorder(orchestrator)

        async def broken_submit(*args, **kwargs):
            raise TransportError("POST failed: connection reset")

        fake_client.submit = broken_submit

        summary = await orchestrator.run_batch(tmp_path / "out", False, [unit_factory("https://a.example/")])

        assert [type(e) for e in received] == [JobFailedToStart]
        assert summary.jobs_failed_to_start == 1

    async def test_session_limit_one_runs_units_sequentially(self, fake_client, fast_config, tmp_path, unit_factory):
        config = fast_config.model_copy(update={"session_limit": 1})
        orchestrator = BatchCaptureOrchestrator(fake_client, config)

        await orchestrator.run_batch(
            tmp_path / "out",
            False,
            [unit_factory("https://a.example/"), unit_factory("https://b.example/")],
        )

        submits = [i for i, (kind, _) in enumerate(fake_client.calls) if kind == "submit"]
        first_job_polls = [i for i, call in enumerate(fake_client.calls) if call == ("status", "job-1")]
        assert len(submits) == 2
        assert max(first_job_polls) < submits[1]
        assert fake_client.max_active == 1

    async def test_session_limit_never_exceeded(self, fake_client, fast_config, tmp_path, unit_factory):
        orchestrator = BatchCaptureOrchestrator(fake_client, fast_config)

        def slow_script(url, job):
            processing = job.model_copy(update={"state": JobState.PROCESSING})
            return [processing] * 4 + [fake_client.finished(job)]

        fake_client.script_factory = slow_script

        summary = await orchestrator.run_batch(
            tmp_path / "out",
            False,
            [unit_factory(f"https://{n}.example/") for n in range(6)],
        )

        assert summary.jobs_completed == 6
        assert 1 <= fake_client.max_active <= fast_config.session_limit

    async def test_polling_failure_is_isolated(self, fake_client, fast_config, tmp_path, unit_factory, recorder):
        orchestrator = BatchCaptureOrchestrator(fake_client, fast_config)
        received = recorder(orchestrator)

        def script(url, job):
            if url == "https://flaky.example/":
                return [TransportError("502 Bad Gateway")]
            return [fake_client.finished(job)]

        fake_client.script_factory = script

        summary = await orchestrator.run_batch(
            tmp_path / "out",
            False,
            [unit_factory("https://flaky.example/"), unit_factory("https://ok.example/")],
        )

        failed = [e for e in received if isinstance(e, JobFailed)]
        assert len(failed) == 1
        assert failed[0].url == "https://flaky.example/"
        assert isinstance(failed[0].error, PollingAbortedError)
        assert summary.jobs_failed == 1
        assert summary.jobs_completed == 1
        assert not any(isinstance(e, JobCompleted) and e.job.id == failed[0].job_id for e in received)

    async def test_timed_out_job_still_completes(self, fake_client, fast_config, tmp_path, unit_factory, recorder):
        orchestrator = BatchCaptureOrchestrator(fake_client, fast_config)
        received = recorder(orchestrator)
        fake_client.script_factory = lambda url, job: [
            fake_client.finished(job, state=ScreenshotState.TIMED_OUT, job_state=JobState.TIMED_OUT)
        ]
        root = tmp_path / "out"

        summary = await orchestrator.run_batch(
            root, False, [unit_factory("https://a.example/", 2, filename="home")]
        )

        assert summary.jobs_completed == 1
        assert summary.screenshots_completed == 2
        assert summary.screenshots_failed == 0
        assert not any(isinstance(e, ScreenshotFailed) for e in received)
        assert len(list(root.rglob("home_TimedOut.txt"))) == 2
        assert fake_client.download_calls == []

    async def test_unit_lookup_by_job_id(self, fake_client, fast_config, tmp_path, unit_factory):
        orchestrator = BatchCaptureOrchestrator(fake_client, fast_config)
        unit = unit_factory("https://a.example/", filename="home")

        await orchestrator.run_batch(tmp_path / "out", False, [unit])

        assert orchestrator.unit_for("JOB-1") == unit

    async def test_collections_reset_between_batches(self, fake_client, fast_config, tmp_path, unit_factory):
        orchestrator = BatchCaptureOrchestrator(fake_client, fast_config)

        await orchestrator.run_batch(tmp_path / "one", False, [unit_factory("https://a.example/", 3)])
        await orchestrator.run_batch(tmp_path / "two", False, [unit_factory("https://b.example/", 1)])

        assert [job.id for job in orchestrator.jobs] == ["job-2"]
        assert len(orchestrator.completed_screenshots) == 1


def test_run_batch_sync(fake_client, fast_config, tmp_path, make_browsers):
    orchestrator = BatchCaptureOrchestrator(fake_client, fast_config)
    unit = CaptureUnit(url="https://a.example/", browsers=make_browsers(1))

    summary = orchestrator.run_batch_sync(tmp_path / "out", False, [unit])

    assert summary.jobs_completed == 1
    assert len(list((tmp_path / "out").rglob("*.png"))) == 1
