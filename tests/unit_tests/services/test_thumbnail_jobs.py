import pytest

from database.schemas import JobState, RenditionResult
from files_manager.services.thumbnail_jobs import JobStateError


def test_create_job(job_tracker):
    job = job_tracker.create_job("f1", "u1")

    stored = job_tracker.get_job(job["job_id"])
    assert stored["state"] == JobState.ENQUEUED.value
    assert stored["file_id"] == "f1"
    assert job_tracker.jobs_for_file("f1") == [stored]


def test_happy_path_records_partial_success(job_tracker):
    job_id = job_tracker.create_job("f1", "u1")["job_id"]

    job_tracker.mark_processing(job_id, attempts=1)
    job = job_tracker.mark_completed(job_id, [
        RenditionResult(width=100, ok=True, path="/x_100"),
        RenditionResult(width=250, ok=False, error="boom"),
        RenditionResult(width=500, ok=True, path="/x_500"),
    ])

    assert job["state"] == JobState.COMPLETED.value
    assert job["failed_widths"] == [250]
    assert job["attempts"] == 1
    assert len(job_tracker.get_job(job_id)["renditions"]) == 3


def test_redelivery_cycle(job_tracker):
    job_id = job_tracker.create_job("f1", "u1")["job_id"]
    job_tracker.mark_processing(job_id, attempts=1)
    job_tracker.requeue(job_id, "transient")
    job_tracker.mark_processing(job_id, attempts=2)
    job = job_tracker.mark_failed(job_id, "gave up")

    assert job["state"] == JobState.FAILED.value
    assert job["dead_letter"] is True
    assert job["error_message"] == "gave up"


def test_terminal_states_are_final(job_tracker):
    job_id = job_tracker.create_job("f1", "u1")["job_id"]
    job_tracker.mark_failed(job_id, "queue full")

    with pytest.raises(JobStateError):
        job_tracker.mark_processing(job_id, attempts=1)


def test_cannot_complete_without_processing(job_tracker):
    job_id = job_tracker.create_job("f1", "u1")["job_id"]
    with pytest.raises(JobStateError):
        job_tracker.mark_completed(job_id, [])


def test_unknown_job(job_tracker):
    with pytest.raises(JobStateError):
        job_tracker.mark_processing("missing", attempts=1)


def test_count_by_state(job_tracker):
    job_tracker.create_job("f1", "u1")
    failed = job_tracker.create_job("f2", "u1")["job_id"]
    job_tracker.mark_failed(failed, "queue full")

    counts = job_tracker.count_by_state()
    assert counts["enqueued"] == 1
    assert counts["failed"] == 1
    assert counts["completed"] == 0
