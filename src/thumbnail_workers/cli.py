"""
CLI commands for thumbnail worker management.

Kept apart from files_manager/cli.py to separate worker concerns from API
concerns; the commands are mounted on the main `files-manager` group.
"""

import asyncio
import logging

import click

from database import get_nosql_adapter, init_db
from files_manager.adapters.queue import LocalQueue, QueueFactory
from files_manager.adapters.storage import get_blob_store
from files_manager.services.thumbnail_jobs import JobTracker
from files_manager.settings import Settings, get_settings
from thumbnail_workers.worker import Worker

# Configure logging
logger = logging.getLogger(__name__)


def build_worker(settings: Settings) -> Worker:
    adapter = get_nosql_adapter(settings.database_backend, settings.db_path, settings.mongodb_uri)
    init_db(adapter)
    return Worker(
        QueueFactory.get_queue_handler(settings),
        adapter,
        get_blob_store(settings),
        JobTracker(adapter),
        settings,
    )


@click.command()
@click.option("--concurrency", type=int, default=None,
              help="Concurrent job loops (defaults to WORKER_CONCURRENCY)")
def worker(concurrency):
    """Start the thumbnail worker"""
    settings = get_settings()
    concurrency = concurrency or settings.worker_concurrency
    print(f"Starting thumbnail worker in {settings.deployment_mode} mode...")
    print(f"  Widths: {', '.join(str(w) for w in settings.thumbnail_widths)}")
    print(f"  Concurrency: {concurrency}")

    worker_instance = build_worker(settings)
    print(f"Queue handler initialized: {type(worker_instance.queue).__name__}")

    try:
        print("Worker ready to process tasks")
        asyncio.run(worker_instance.run(concurrency))
    except KeyboardInterrupt:
        print("Received shutdown signal...")
        worker_instance.stop()
    finally:
        print("Worker shutdown complete")


@click.command()
def requeue_stale():
    """Return local-queue jobs stuck in processing to pending"""
    settings = get_settings()
    queue = QueueFactory.get_queue_handler(settings)
    if not isinstance(queue, LocalQueue):
        print("SQS redelivers stale messages through its visibility timeout; nothing to do")
        return
    count = queue.requeue_stale()
    print(f"Requeued {count} stale task(s)")
