"""
Thumbnail job records and their state machine.

A job is created once per stored image and then moves through
``enqueued -> processing -> completed | failed``. A processing job may go back
to ``enqueued`` when its delivery is returned to the queue for another try, and
may be claimed again while ``processing`` when a crashed worker's delivery
becomes visible again.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from bson import ObjectId

from database import DocumentAdapter
from database.schemas import JobState, RenditionResult

logger = logging.getLogger(__name__)

_COLLECTION = 'thumbnail_jobs'

ALLOWED_TRANSITIONS = {
    JobState.ENQUEUED: {JobState.PROCESSING, JobState.FAILED},
    JobState.PROCESSING: {JobState.PROCESSING, JobState.COMPLETED, JobState.FAILED, JobState.ENQUEUED},
    JobState.COMPLETED: set(),
    JobState.FAILED: set(),
}


class JobStateError(Exception):
    """Exception raised for invalid state transitions"""
    pass


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class JobTracker:
    """Persists thumbnail jobs and enforces their lifecycle"""

    def __init__(self, adapter: DocumentAdapter):
        self.adapter = adapter

    def create_job(self, file_id: str, user_id: str) -> Dict[str, Any]:
        """Record a new enqueued job for an image"""
        job = {
            'job_id': str(ObjectId()),
            'file_id': file_id,
            'user_id': user_id,
            'state': JobState.ENQUEUED.value,
            'enqueued_at': _now(),
            'updated_at': None,
            'attempts': 0,
            'renditions': [],
            'failed_widths': [],
            'error_message': None,
            'dead_letter': False,
        }
        self.adapter.create_document(_COLLECTION, job)
        logger.info(f"Thumbnail job {job['job_id']} created for file {file_id}")
        return job

    def get_job(self, job_id: str) -> Optional[Dict[str, Any]]:
        return self.adapter.get_document(_COLLECTION, job_id)

    def jobs_for_file(self, file_id: str) -> List[Dict[str, Any]]:
        return self.adapter.query_documents(_COLLECTION, {'file_id': file_id})

    def count_by_state(self) -> Dict[str, int]:
        return {
            state.value: self.adapter.count_documents(_COLLECTION, {'state': state.value})
            for state in JobState
        }

    def _transition(self, job_id: str, new_state: JobState, **changes) -> Dict[str, Any]:
        job = self.get_job(job_id)
        if job is None:
            raise JobStateError(f"Unknown thumbnail job: {job_id}")

        current = JobState(job['state'])
        if new_state not in ALLOWED_TRANSITIONS[current]:
            raise JobStateError(f"Invalid transition for job {job_id}: {current.value} -> {new_state.value}")

        job.update(changes)
        job['state'] = new_state.value
        job['updated_at'] = _now()
        self.adapter.update_document(_COLLECTION, job_id, job)
        logger.info(f"Thumbnail job {job_id}: {current.value} -> {new_state.value}")
        return job

    def mark_processing(self, job_id: str, attempts: int) -> Dict[str, Any]:
        return self._transition(job_id, JobState.PROCESSING, attempts=attempts)

    def mark_completed(self, job_id: str, renditions: List[RenditionResult]) -> Dict[str, Any]:
        """Close the job with its per-width results; failed widths stay listed"""
        failed_widths = [r.width for r in renditions if not r.ok]
        return self._transition(
            job_id,
            JobState.COMPLETED,
            renditions=[r.model_dump() for r in renditions],
            failed_widths=failed_widths,
            error_message=None,
        )

    def mark_failed(self, job_id: str, error_message: str, dead_letter: bool = True) -> Dict[str, Any]:
        return self._transition(
            job_id,
            JobState.FAILED,
            error_message=error_message,
            dead_letter=dead_letter,
        )

    def requeue(self, job_id: str, error_message: str) -> Dict[str, Any]:
        """Return a processing job to enqueued ahead of another delivery"""
        return self._transition(job_id, JobState.ENQUEUED, error_message=error_message)
