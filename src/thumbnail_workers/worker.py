import asyncio
import logging
from typing import Any, Dict, Optional

from database import DocumentAdapter
from database.schemas import FileKind, JobState
from files_manager.adapters.queue import BaseQueue, QueuedTask
from files_manager.adapters.storage import BaseBlobStore, BlobNotFoundError
from files_manager.services.thumbnail_jobs import JobTracker
from files_manager.settings import Settings
from files_manager.utils.decorators import async_log_execution_time
from thumbnail_workers.thumbnails import generate_renditions

logger = logging.getLogger(__name__)

_TERMINAL_STATES = {JobState.COMPLETED.value, JobState.FAILED.value}


class PermanentJobError(Exception):
    """A job that cannot succeed on any later delivery"""
    pass


class Worker:
    """Consumes thumbnail jobs and writes the renditions next to the original"""

    def __init__(
        self,
        queue: BaseQueue,
        adapter: DocumentAdapter,
        blob_store: BaseBlobStore,
        job_tracker: JobTracker,
        settings: Settings,
    ):
        self.queue = queue
        self.adapter = adapter
        self.blob_store = blob_store
        self.job_tracker = job_tracker
        self.widths = tuple(settings.thumbnail_widths)
        self.job_timeout = settings.thumbnail_job_timeout_seconds
        self.max_attempts = settings.thumbnail_max_attempts
        self.poll_interval = settings.worker_poll_interval_seconds
        self.running = True
        logger.info("Worker initialized")

    def _load_job(self, job_id: Optional[str]) -> Optional[Dict[str, Any]]:
        return self.job_tracker.get_job(job_id) if job_id else None

    @async_log_execution_time
    async def process_task(self, task: QueuedTask) -> str:
        """Run one delivery to a terminal outcome, or hand it back to the queue"""
        body = task.body
        job_id = body.get('job_id')
        file_id = body.get('fileId')
        user_id = body.get('userId')

        try:
            if not file_id:
                raise PermanentJobError("Missing fileId")
            if not user_id:
                raise PermanentJobError("Missing userId")

            job = self._load_job(job_id)
            if job and job['state'] in _TERMINAL_STATES:
                # Duplicate delivery of a finished job
                await self.queue.ack(task)
                return f"Job {job_id} already {job['state']}"
            if job:
                self.job_tracker.mark_processing(job_id, task.attempts)

            node = self.adapter.find_one('files', {'file_id': file_id, 'user_id': user_id})
            if not node:
                raise PermanentJobError("File not found")
            if node['type'] != FileKind.IMAGE.value or not node.get('local_path'):
                raise PermanentJobError("File is not an image")

            try:
                data = await asyncio.to_thread(self.blob_store.read, node['local_path'])
            except BlobNotFoundError:
                raise PermanentJobError("Original image not found")

            results = await generate_renditions(
                self.blob_store, node['local_path'], data, self.widths, self.job_timeout
            )
            if job:
                self.job_tracker.mark_completed(job_id, results)
            await self.queue.ack(task)

            failed = [r.width for r in results if not r.ok]
            if failed:
                logger.warning(f"Thumbnails for file {file_id} completed without widths {failed}")
            return f"Generated thumbnails for file {file_id} ({len(results) - len(failed)}/{len(results)} widths)"

        except PermanentJobError as e:
            await self._fail(task, job_id, str(e))
            return f"Job for file {file_id} failed: {e}"

        except Exception as e:
            logger.error(f"Error processing task {body}: {str(e)}", exc_info=True)
            if task.attempts >= self.max_attempts:
                await self._fail(task, job_id, f"{e} (gave up after {task.attempts} attempts)")
                return f"Job for file {file_id} failed after {task.attempts} attempts"

            job = self._load_job(job_id)
            if job and job['state'] == JobState.PROCESSING.value:
                self.job_tracker.requeue(job_id, str(e))
            await self.queue.nack(task)
            return f"Job for file {file_id} returned to the queue (attempt {task.attempts})"

    async def _fail(self, task: QueuedTask, job_id: Optional[str], reason: str) -> None:
        """Record a permanent failure on the job and dead-letter the delivery"""
        logger.error(f"Thumbnail job {job_id} failed permanently: {reason}")
        job = self._load_job(job_id)
        if job and job['state'] not in _TERMINAL_STATES:
            self.job_tracker.mark_failed(job_id, reason, dead_letter=True)
        await self.queue.dead_letter(task, reason)

    async def listen_for_tasks(self):
        """Poll the queue until stopped, backing off on repeated errors"""
        logger.info("Worker started listening for tasks")
        consecutive_errors = 0

        while self.running:
            try:
                task = await self.queue.get_task()
                if task:
                    logger.info(f"Received task: {task.body}")
                    result = await self.process_task(task)
                    logger.info(result)
                    consecutive_errors = 0
                else:
                    # Recover claims abandoned by crashed workers
                    self.queue.requeue_stale()
                    await asyncio.sleep(self.poll_interval)
            except Exception as e:
                consecutive_errors += 1
                logger.error(f"Error in task processing loop: {str(e)}", exc_info=True)

                backoff_time = min(30, 2 ** consecutive_errors)
                logger.warning(f"Backing off for {backoff_time} seconds after error...")
                await asyncio.sleep(backoff_time)

    async def run(self, concurrency: int = 1):
        """Recover stale claims, then run concurrency listening loops"""
        self.queue.requeue_stale()
        await asyncio.gather(*(self.listen_for_tasks() for _ in range(concurrency)))

    def stop(self):
        """Stop the worker gracefully"""
        logger.info("Stopping worker...")
        self.running = False
