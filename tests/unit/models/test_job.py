"""Test job models and state machine."""

import pytest

from gengate.exceptions import IllegalTransitionError
from gengate.models.job import (
    TRANSITIONS,
    JobError,
    JobState,
    JobStatus,
    can_transition,
)


class TestJobState:
    """Test state table."""

    def test_should_mark_terminal_states(self):
        """Test terminal states have no outgoing transitions."""
        terminal = {s for s in JobState if s.is_terminal}
        assert terminal == {
            JobState.SUCCEEDED,
            JobState.DEAD_LETTERED,
            JobState.CANCELLED,
        }

    def test_should_cover_every_state(self):
        """Test transition table is total."""
        assert set(TRANSITIONS) == set(JobState)

    @pytest.mark.parametrize(
        "from_state,to_state",
        [
            (JobState.QUEUED, JobState.RUNNING),
            (JobState.QUEUED, JobState.CANCELLED),
            (JobState.RUNNING, JobState.SUCCEEDED),
            (JobState.RUNNING, JobState.FAILED),
            (JobState.RUNNING, JobState.CANCELLED),
            (JobState.FAILED, JobState.QUEUED),
            (JobState.FAILED, JobState.DEAD_LETTERED),
        ],
    )
    def test_should_allow_legal_transitions(self, from_state, to_state):
        """Test legal transitions."""
        assert can_transition(from_state, to_state)

    @pytest.mark.parametrize(
        "from_state,to_state",
        [
            (JobState.QUEUED, JobState.SUCCEEDED),
            (JobState.SUCCEEDED, JobState.QUEUED),
            (JobState.DEAD_LETTERED, JobState.QUEUED),
            (JobState.CANCELLED, JobState.RUNNING),
            (JobState.FAILED, JobState.RUNNING),
        ],
    )
    def test_should_reject_illegal_transitions(self, from_state, to_state):
        """Test illegal transitions."""
        assert not can_transition(from_state, to_state)


class TestJob:
    """Test job model."""

    def test_should_default_to_queued(self, make_job):
        """Test new jobs are queued with no attempts."""
        job = make_job()
        assert job.state is JobState.QUEUED
        assert job.attempts == 0
        assert not job.is_terminal

    def test_should_transition_and_stamp_completion(self, make_job, clock):
        """Test terminal transition sets completed_at."""
        job = make_job()
        job.transition_to(JobState.RUNNING, clock())
        previous = job.transition_to(JobState.SUCCEEDED, clock())

        assert previous is JobState.RUNNING
        assert job.completed_at == clock.now
        assert job.is_terminal

    def test_should_raise_on_illegal_transition(self, make_job):
        """Test illegal transition raises and leaves state unchanged."""
        job = make_job()
        with pytest.raises(IllegalTransitionError) as exc_info:
            job.transition_to(JobState.SUCCEEDED)

        assert exc_info.value.from_state == "queued"
        assert job.state is JobState.QUEUED

    def test_should_report_retry_budget(self, make_job):
        """Test can_retry respects max_attempts."""
        job = make_job(max_attempts=2, attempts=1)
        assert job.can_retry
        job.attempts = 2
        assert not job.can_retry


class TestJobError:
    """Test error classification model."""

    def test_should_build_from_exception(self):
        """Test message and type are captured."""
        error = JobError.from_exception(TimeoutError("slow"), retryable=True)
        assert error.message == "slow"
        assert error.error_type == "TimeoutError"
        assert error.retryable

    def test_should_fall_back_to_type_name(self):
        """Test empty message uses class name."""
        error = JobError.from_exception(RuntimeError(), retryable=False)
        assert error.message == "RuntimeError"


class TestJobStatus:
    """Test status view."""

    def test_should_copy_job_fields(self, make_job, sample_artifact):
        """Test status reflects job."""
        job = make_job()
        job.transition_to(JobState.RUNNING)
        job.result = sample_artifact
        job.transition_to(JobState.SUCCEEDED)

        status = JobStatus.from_job(job)
        assert status.state is JobState.SUCCEEDED
        assert status.result == sample_artifact
        assert status.queue_position is None

    def test_should_reject_zero_position(self, make_job):
        """Test queue position is 1-based."""
        with pytest.raises(ValueError):
            JobStatus.from_job(make_job(), queue_position=0)
