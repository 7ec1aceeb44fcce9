"""JobStatusTracker: caching, timeout, retries and concurrent polls."""

import asyncio
from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from genflow.exceptions import JobNotFoundError
from genflow.models.generation_job import JobStatus
from genflow.services.job_poller import JobStatusTracker, PollPolicy, format_eta
from genflow.services.providers.base import ProviderError, TaskStatus
from genflow.services.providers.factory import ProviderSet


def _processing(progress=30, eta=60):
    return TaskStatus(status=JobStatus.PROCESSING, raw_status="RUNNING", progress=progress, eta_seconds=eta)


@pytest.fixture
def provider():
    mock = MagicMock()
    mock.get_task_status = AsyncMock(return_value=_processing())
    return mock


@pytest.fixture
def publisher():
    return AsyncMock(return_value=True)


@pytest.fixture
def make_tracker(repository, provider, clock, gen_service, publisher):
    def _make(**policy):
        return JobStatusTracker(
            repository=repository,
            providers=ProviderSet(video={"runway": provider, "pika": provider}),
            service=gen_service,
            policy=PollPolicy(lease_wait_step_seconds=0.01, **policy),
            result_publisher=publisher,
            clock=clock,
        )
    return _make


@pytest.fixture
def tracker(make_tracker):
    return make_tracker()


class TestFormatEta:
    @pytest.mark.parametrize(
        "seconds, expected",
        [
            (45, "45s remaining"),
            (0, "0s remaining"),
            (60, "~1 min remaining"),
            (61, "~2 min remaining"),
            (150, "~3 min remaining"),
            (None, None),
        ],
    )
    def test_format(self, seconds, expected):
        assert format_eta(seconds) == expected


class TestCaching:
    async def test_fresh_job_is_served_from_cache(self, tracker, provider, make_job):
        job = await make_job()

        view = await tracker.get_status(job.id)

        assert view.cached
        assert view.status == "queued"
        assert view.retry_after == pytest.approx(5.0)
        provider.get_task_status.assert_not_awaited()

    async def test_rapid_polls_hit_provider_once(self, tracker, provider, make_job, clock):
        job = await make_job()
        clock.advance(6)

        first = await tracker.get_status(job.id)
        rest = [await tracker.get_status(job.id) for _ in range(9)]

        assert provider.get_task_status.await_count == 1
        assert not first.cached
        assert first.status == "processing"
        assert first.progress == 30
        assert first.eta_formatted == "~1 min remaining"
        assert all(v.cached and v.progress == 30 for v in rest)
        assert all(0 < v.retry_after <= 5.0 for v in rest)

    async def test_poll_again_after_interval(self, tracker, provider, make_job, clock):
        job = await make_job()
        clock.advance(6)
        await tracker.get_status(job.id)
        clock.advance(5)
        provider.get_task_status.return_value = _processing(progress=70, eta=20)

        view = await tracker.get_status(job.id)

        assert provider.get_task_status.await_count == 2
        assert view.progress == 70
        assert view.eta_formatted == "20s remaining"

    async def test_unknown_job(self, tracker):
        with pytest.raises(JobNotFoundError):
            await tracker.get_status("missing")


class TestTimeout:
    async def test_times_out_without_asking_provider(self, tracker, provider, make_job, clock, repository):
        job = await make_job()
        clock.advance(301)

        view = await tracker.get_status(job.id)

        assert view.status == "timeout"
        assert view.error_kind == "job_timeout"
        assert view.error_message
        assert view.media_url is None
        provider.get_task_status.assert_not_awaited()
        assert (await repository.load_job(job.id)).job_status == JobStatus.TIMEOUT

    async def test_timeout_even_if_provider_is_progressing(self, tracker, provider, make_job, clock):
        job = await make_job()
        for _ in range(5):
            clock.advance(59)
            await tracker.get_status(job.id)
        assert provider.get_task_status.await_count == 5

        clock.advance(10)
        view = await tracker.get_status(job.id)

        assert view.status == "timeout"
        assert provider.get_task_status.await_count == 5


class TestCompletion:
    async def test_completed_with_media(self, tracker, provider, make_job, clock, publisher):
        job = await make_job(content_draft_id="draft-1")
        clock.advance(6)
        provider.get_task_status.return_value = TaskStatus(
            status=JobStatus.COMPLETED, media_url="https://cdn/v.mp4", thumbnail_url="https://cdn/v.png"
        )

        view = await tracker.get_status(job.id)

        assert view.status == "completed"
        assert view.progress == 100
        assert view.media_url == "https://cdn/v.mp4"
        assert view.thumbnail_url == "https://cdn/v.png"
        assert view.error_message is None
        publisher.assert_awaited_once()
        assert publisher.await_args.args[0].id == job.id

    async def test_completed_reads_are_idempotent(self, tracker, provider, make_job, clock):
        job = await make_job()
        clock.advance(6)
        provider.get_task_status.return_value = TaskStatus(
            status=JobStatus.COMPLETED, media_url="https://cdn/v.mp4"
        )
        first = await tracker.get_status(job.id)

        reads = []
        for _ in range(3):
            clock.advance(30)
            reads.append(await tracker.get_status(job.id))

        assert provider.get_task_status.await_count == 1
        for view in reads:
            assert (view.status, view.media_url, view.progress) == (first.status, first.media_url, 100)

    async def test_malformed_success_fails(self, tracker, provider, make_job, clock, publisher):
        job = await make_job()
        clock.advance(6)
        provider.get_task_status.return_value = TaskStatus(status=JobStatus.COMPLETED)

        view = await tracker.get_status(job.id)

        assert view.status == "failed"
        assert "without a media URL" in view.error_message
        assert view.media_url is None
        publisher.assert_not_awaited()

    async def test_provider_failure_message(self, tracker, provider, make_job, clock):
        job = await make_job()
        clock.advance(6)
        provider.get_task_status.return_value = TaskStatus(status=JobStatus.FAILED, error="content policy")

        view = await tracker.get_status(job.id)

        assert view.status == "failed"
        assert view.error_message == "content policy"
        assert view.error_kind == "job_failed"

    async def test_provider_failure_default_message(self, tracker, provider, make_job, clock):
        job = await make_job()
        clock.advance(6)
        provider.get_task_status.return_value = TaskStatus(status=JobStatus.FAILED)

        view = await tracker.get_status(job.id)

        assert view.error_message == "runway reported the task as failed"

    async def test_progress_never_decreases(self, tracker, provider, make_job, clock):
        job = await make_job()
        clock.advance(6)
        provider.get_task_status.return_value = _processing(progress=60)
        await tracker.get_status(job.id)
        clock.advance(6)
        provider.get_task_status.return_value = _processing(progress=40)

        view = await tracker.get_status(job.id)

        assert view.progress == 60

    async def test_draft_write_back_retried_on_terminal_read(self, tracker, provider, make_job, clock, publisher):
        publisher.side_effect = [RuntimeError("db down"), True]
        job = await make_job(content_draft_id="draft-1")
        clock.advance(6)
        provider.get_task_status.return_value = TaskStatus(
            status=JobStatus.COMPLETED, media_url="https://cdn/v.mp4"
        )

        first = await tracker.get_status(job.id)
        second = await tracker.get_status(job.id)

        assert first.status == second.status == "completed"
        assert publisher.await_count == 2


class TestRetries:
    async def test_transient_errors_increment_retry_count(self, tracker, provider, make_job, clock):
        job = await make_job()
        provider.get_task_status.side_effect = ProviderError(
            "runway API error 502", provider="runway", status_code=502, transient=True
        )

        for expected in (1, 2, 3):
            clock.advance(6)
            view = await tracker.get_status(job.id)
            assert view.retry_count == expected
            assert view.status == "queued"
            assert view.error_message is None

        clock.advance(6)
        view = await tracker.get_status(job.id)
        assert view.status == "failed"
        assert view.retry_count == 4
        assert "unreachable" in view.error_message

    async def test_rapid_reads_after_transient_error_are_cached(
        self, tracker, provider, make_job, clock, repository
    ):
        job = await make_job()
        provider.get_task_status.side_effect = httpx.ConnectError("refused")
        clock.advance(6)
        first = await tracker.get_status(job.id)

        rest = []
        for _ in range(4):
            clock.advance(0.1)
            rest.append(await tracker.get_status(job.id))

        assert provider.get_task_status.await_count == 1
        assert not first.cached
        assert all(v.cached for v in rest)
        assert all(v.status == "queued" and v.retry_count == 1 for v in rest)
        stored = await repository.load_job(job.id)
        assert stored.last_poll_attempt_at == clock() - timedelta(seconds=0.4)
        assert stored.last_polled_at == stored.created_at

        clock.advance(5)
        await tracker.get_status(job.id)
        assert provider.get_task_status.await_count == 2

    async def test_network_errors_are_transient(self, tracker, provider, make_job, clock):
        job = await make_job()
        provider.get_task_status.side_effect = httpx.ConnectError("refused")
        clock.advance(6)

        view = await tracker.get_status(job.id)

        assert view.retry_count == 1
        assert view.status == "queued"

    async def test_successful_polls_do_not_count(self, tracker, provider, make_job, clock):
        job = await make_job()
        for _ in range(3):
            clock.advance(6)
            view = await tracker.get_status(job.id)
        assert view.retry_count == 0

    async def test_task_not_found_fails_immediately(self, tracker, provider, make_job, clock):
        job = await make_job()
        provider.get_task_status.side_effect = ProviderError(
            "runway task not found", provider="runway", status_code=404
        )
        clock.advance(6)

        view = await tracker.get_status(job.id)

        assert view.status == "failed"
        assert view.retry_count == 0
        assert "task not found" in view.error_message

    async def test_call_timeout_is_transient(self, make_tracker, provider, make_job, clock, fast_registry):
        async def hang(task_id):
            await asyncio.sleep(1)

        provider.get_task_status.side_effect = hang
        tracker = make_tracker()
        tracker.registry = fast_registry
        job = await make_job()
        clock.advance(6)

        view = await tracker.get_status(job.id)

        assert view.retry_count == 1
        assert view.status == "queued"


class TestConcurrency:
    async def test_concurrent_reads_share_one_poll(self, tracker, provider, make_job, clock):
        job = await make_job()
        clock.advance(6)
        gate = asyncio.Event()

        async def slow(task_id):
            await gate.wait()
            return _processing(progress=50)

        provider.get_task_status.side_effect = slow

        tasks = [asyncio.create_task(tracker.get_status(job.id)) for _ in range(5)]
        await asyncio.sleep(0.01)
        gate.set()
        views = await asyncio.gather(*tasks)

        assert provider.get_task_status.await_count == 1
        assert {(v.status, v.progress) for v in views} == {("processing", 50)}

    async def test_lease_serializes_separate_trackers(self, make_tracker, provider, make_job, clock, repository):
        job = await make_job()
        clock.advance(6)
        started = asyncio.Event()
        gate = asyncio.Event()

        async def slow(task_id):
            started.set()
            await gate.wait()
            return _processing(progress=80)

        provider.get_task_status.side_effect = slow
        tracker_a, tracker_b = make_tracker(), make_tracker()

        task_a = asyncio.create_task(tracker_a.get_status(job.id))
        await started.wait()
        task_b = asyncio.create_task(tracker_b.get_status(job.id))
        await asyncio.sleep(0.03)
        assert not task_b.done()
        gate.set()
        view_a, view_b = await asyncio.gather(task_a, task_b)

        assert provider.get_task_status.await_count == 1
        assert view_b.cached
        assert (view_a.status, view_a.progress) == (view_b.status, view_b.progress) == ("processing", 80)
        stored = await repository.load_job(job.id)
        assert stored.poll_lease_token is None

    async def test_conflicting_save_returns_winner_state(self, tracker, provider, make_job, clock, repository):
        job = await make_job()
        clock.advance(6)

        async def racing_writer(task_id):
            other = await repository.load_job(job.id)
            other.fail("cancelled elsewhere")
            await repository.save_job(other)
            return _processing(progress=10)

        provider.get_task_status.side_effect = racing_writer

        view = await tracker.get_status(job.id)

        assert view.status == "failed"
        assert view.error_message == "cancelled elsewhere"
        assert view.cached
