"""GenerationJob state machine."""

import pytest

from genflow.exceptions import InvalidJobTransitionError
from genflow.models.generation_job import (
    TERMINAL_STATUSES,
    VALID_TRANSITIONS,
    GenerationJob,
    JobStatus,
)


def _job(**kwargs):
    return GenerationJob.new(engine="runway", content_type="reel", external_task_id="t-1", **kwargs)


class TestNewJob:
    def test_fields_populated(self):
        job = _job(prompt="p", config={"duration": 4}, content_draft_id="d-1", eta_seconds=60)
        assert job.status == "queued"
        assert job.progress == 0
        assert job.retry_count == 0
        assert job.version == 1
        assert job.last_polled_at == job.created_at
        assert job.last_poll_attempt_at == job.created_at
        assert job.config == {"duration": 4}
        assert job.media_url is None and job.error_message is None

    def test_ids_are_unique(self):
        assert _job().id != _job().id


class TestTransitions:
    def test_graph_has_no_exit_from_terminal(self):
        for status in TERMINAL_STATUSES:
            assert VALID_TRANSITIONS[status] == set()

    def test_queued_to_processing(self):
        job = _job()
        job.advance(JobStatus.PROCESSING)
        assert job.job_status == JobStatus.PROCESSING

    def test_queued_to_completed_steps_through_processing(self):
        job = _job()
        job.complete("https://cdn/x.mp4")
        assert job.job_status == JobStatus.COMPLETED
        assert job.progress == 100
        assert job.completed_at is not None

    def test_processing_cannot_go_back_to_queued(self):
        job = _job()
        job.advance(JobStatus.PROCESSING)
        with pytest.raises(InvalidJobTransitionError):
            job.advance(JobStatus.QUEUED)

    @pytest.mark.parametrize("finish", ["complete", "fail", "time_out"])
    def test_terminal_is_final(self, finish):
        job = _job()
        if finish == "complete":
            job.complete("https://cdn/x.mp4")
        else:
            getattr(job, finish)("boom")
        with pytest.raises(InvalidJobTransitionError):
            job.advance(JobStatus.PROCESSING)
        with pytest.raises(InvalidJobTransitionError):
            job.fail("again")

    def test_second_outcome_does_not_overwrite_first(self):
        done = _job()
        done.complete("https://cdn/a.mp4")
        with pytest.raises(InvalidJobTransitionError):
            done.complete("https://cdn/b.mp4")
        assert done.media_url == "https://cdn/a.mp4"

        failed = _job()
        failed.fail("first")
        with pytest.raises(InvalidJobTransitionError):
            failed.fail("second")
        assert failed.error_message == "first"

    def test_same_status_is_noop(self):
        job = _job()
        job.advance(JobStatus.PROCESSING)
        job.advance(JobStatus.PROCESSING)
        assert job.job_status == JobStatus.PROCESSING


class TestExclusiveOutcome:
    """Exactly one of: media present, still running, error present."""

    @staticmethod
    def _outcomes(job):
        return [
            job.media_url is not None,
            not job.is_terminal,
            job.error_message is not None,
        ]

    def test_running(self):
        assert self._outcomes(_job()) == [False, True, False]

    def test_completed(self):
        job = _job()
        job.complete("https://cdn/x.mp4", "https://cdn/x.png")
        assert self._outcomes(job) == [True, False, False]

    def test_failed(self):
        job = _job()
        job.fail("provider said no")
        assert self._outcomes(job) == [False, False, True]

    def test_timeout(self):
        job = _job()
        job.time_out("too slow")
        assert self._outcomes(job) == [False, False, True]
        assert job.job_status == JobStatus.TIMEOUT


class TestProgress:
    def test_never_decreases(self):
        job = _job()
        job.record_progress(40, 30)
        job.record_progress(20, 50)
        assert job.progress == 40
        assert job.eta_seconds == 50

    def test_clamped(self):
        job = _job()
        job.record_progress(250, None)
        assert job.progress == 100

    def test_ignored_once_terminal(self):
        job = _job()
        job.fail("x")
        job.record_progress(80, 5)
        assert job.progress == 0
