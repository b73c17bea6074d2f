import json
import logging
import os
import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from files_manager.settings import Settings

logger = logging.getLogger(__name__)


class QueueFullError(Exception):
    """Raised when the queue already holds its maximum number of pending tasks"""
    pass


@dataclass
class QueuedTask:
    """A delivered task; must be acked, nacked or dead-lettered by the consumer"""
    body: Dict[str, Any]
    receipt: str
    attempts: int


class BaseQueue:
    """Base class for queue handling (to be extended by specific implementations)"""

    async def add_task(self, task: Dict[str, Any]) -> str:
        raise NotImplementedError

    async def get_task(self) -> Optional[QueuedTask]:
        raise NotImplementedError

    async def ack(self, task: QueuedTask) -> None:
        raise NotImplementedError

    async def nack(self, task: QueuedTask) -> None:
        raise NotImplementedError

    async def dead_letter(self, task: QueuedTask, reason: str) -> None:
        raise NotImplementedError

    def requeue_stale(self) -> int:
        """Make abandoned claims visible again; brokers that expire claims themselves return 0"""
        return 0

    def depth(self) -> Dict[str, int]:
        raise NotImplementedError

    def is_alive(self) -> bool:
        raise NotImplementedError


class LocalQueue(BaseQueue):
    """Handles local queue using file system for IPC

    Tasks move between three directories: ``pending/`` (visible),
    ``processing/`` (claimed by a worker) and ``failed/`` (dead letters).
    A claim is an atomic rename, so two workers never receive the same
    delivery.
    """

    def __init__(self, queue_dir: str, max_depth: int = 1000, visibility_timeout: int = 300):
        self.queue_dir = Path(queue_dir)
        self.pending_dir = self.queue_dir / "pending"
        self.processing_dir = self.queue_dir / "processing"
        self.failed_dir = self.queue_dir / "failed"
        for directory in (self.pending_dir, self.processing_dir, self.failed_dir):
            directory.mkdir(parents=True, exist_ok=True)
        self.max_depth = max_depth
        self.visibility_timeout = visibility_timeout
        logger.info("LocalQueue initialized at: %s", self.queue_dir)

    def _write_json(self, path: Path, payload: Dict[str, Any]) -> None:
        tmp_path = path.with_name(f".{path.name}.tmp")
        with open(tmp_path, 'w') as f:
            json.dump(payload, f)
        os.replace(tmp_path, path)

    async def add_task(self, task: Dict[str, Any]) -> str:
        """Add task to queue"""
        pending = len(list(self.pending_dir.glob("*.json")))
        if pending >= self.max_depth:
            logger.warning("Queue full (%d pending), rejecting task: %s", pending, task)
            raise QueueFullError(f"Queue holds {pending} pending tasks (max {self.max_depth})")

        # Timestamp prefix keeps names sortable in arrival order
        message_id = f"{time.time_ns():020d}_{uuid.uuid4().hex}"
        self._write_json(self.pending_dir / f"{message_id}.json", {
            "body": task,
            "attempts": 0,
            "enqueued_at": datetime.now(timezone.utc).isoformat(),
        })

        logger.info("Added task to queue: %s", task)
        return message_id

    async def get_task(self) -> Optional[QueuedTask]:
        """Claim the oldest pending task"""
        for task_file in sorted(self.pending_dir.glob("*.json")):
            claimed = self.processing_dir / task_file.name
            try:
                task_file.rename(claimed)
            except FileNotFoundError:
                # Another worker claimed it first
                continue

            try:
                with open(claimed, 'r') as f:
                    envelope = json.load(f)
            except (OSError, json.JSONDecodeError) as e:
                logger.error("Error reading task file %s: %s", claimed, str(e))
                claimed.rename(self.failed_dir / claimed.name)
                continue

            envelope["attempts"] = envelope.get("attempts", 0) + 1
            envelope["claimed_at"] = datetime.now(timezone.utc).isoformat()
            # Rewriting also refreshes the mtime used by requeue_stale
            self._write_json(claimed, envelope)

            logger.info("Retrieved task from queue: %s", envelope["body"])
            return QueuedTask(body=envelope["body"], receipt=str(claimed), attempts=envelope["attempts"])

        return None

    async def ack(self, task: QueuedTask) -> None:
        Path(task.receipt).unlink(missing_ok=True)

    async def nack(self, task: QueuedTask) -> None:
        claimed = Path(task.receipt)
        try:
            claimed.rename(self.pending_dir / claimed.name)
            logger.info("Returned task to queue: %s", task.body)
        except FileNotFoundError:
            logger.warning("Task %s no longer claimed, cannot return it", claimed.name)

    async def dead_letter(self, task: QueuedTask, reason: str) -> None:
        claimed = Path(task.receipt)
        self._write_json(self.failed_dir / claimed.name, {
            "body": task.body,
            "attempts": task.attempts,
            "reason": reason,
            "failed_at": datetime.now(timezone.utc).isoformat(),
        })
        claimed.unlink(missing_ok=True)
        logger.warning("Dead-lettered task %s: %s", task.body, reason)

    def requeue_stale(self) -> int:
        """Return tasks claimed longer than the visibility timeout to pending"""
        cutoff = time.time() - self.visibility_timeout
        requeued = 0
        for claimed in self.processing_dir.glob("*.json"):
            try:
                if claimed.stat().st_mtime < cutoff:
                    claimed.rename(self.pending_dir / claimed.name)
                    requeued += 1
            except FileNotFoundError:
                continue
        if requeued:
            logger.info("Requeued %d stale tasks", requeued)
        return requeued

    def depth(self) -> Dict[str, int]:
        return {
            "pending": len(list(self.pending_dir.glob("*.json"))),
            "processing": len(list(self.processing_dir.glob("*.json"))),
            "dead_letter": len(list(self.failed_dir.glob("*.json"))),
            "capacity": self.max_depth,
        }

    def is_alive(self) -> bool:
        return self.pending_dir.is_dir()


class SQSQueue(BaseQueue):
    """Handles AWS SQS queue"""

    def __init__(
        self,
        sqs_client,
        queue_url: str,
        dead_letter_queue_url: Optional[str] = None,
        max_depth: int = 1000,
        visibility_timeout: int = 300,
        wait_time_seconds: int = 5,
    ):
        self.sqs = sqs_client
        self.queue_url = queue_url
        self.dead_letter_queue_url = dead_letter_queue_url
        self.max_depth = max_depth
        self.visibility_timeout = visibility_timeout
        self.wait_time_seconds = wait_time_seconds

        logger.info(f"SQSQueue initialized")
        logger.info(f"  Queue URL: {self.queue_url}")
        logger.info(f"  Dead-letter queue URL: {self.dead_letter_queue_url}")

    def _attributes(self, queue_url: str) -> Dict[str, str]:
        response = self.sqs.get_queue_attributes(
            QueueUrl=queue_url,
            AttributeNames=["ApproximateNumberOfMessages", "ApproximateNumberOfMessagesNotVisible"],
        )
        return response.get("Attributes", {})

    async def add_task(self, task: Dict[str, Any]) -> str:
        """Add a task to the SQS queue."""
        pending = int(self._attributes(self.queue_url).get("ApproximateNumberOfMessages", 0))
        if pending >= self.max_depth:
            logger.warning(f"Queue full ({pending} pending), rejecting task: {task}")
            raise QueueFullError(f"Queue holds {pending} pending tasks (max {self.max_depth})")

        response = self.sqs.send_message(
            QueueUrl=self.queue_url,
            MessageBody=json.dumps(task),
        )
        logger.info(f"Task added to SQS queue with ID: {response.get('MessageId')}")
        return response["MessageId"]

    async def get_task(self) -> Optional[QueuedTask]:
        messages = self.sqs.receive_message(
            QueueUrl=self.queue_url,
            MaxNumberOfMessages=1,
            WaitTimeSeconds=self.wait_time_seconds,
            VisibilityTimeout=self.visibility_timeout,
            AttributeNames=["ApproximateReceiveCount"],
        )
        if "Messages" not in messages:
            return None

        message = messages["Messages"][0]
        try:
            body = json.loads(message["Body"])
        except json.JSONDecodeError:
            body = {"raw": message["Body"]}
        attempts = int(message.get("Attributes", {}).get("ApproximateReceiveCount", 1))

        logger.info(f"Retrieved task from SQS queue: {body}")
        return QueuedTask(body=body, receipt=message["ReceiptHandle"], attempts=attempts)

    async def ack(self, task: QueuedTask) -> None:
        self.sqs.delete_message(QueueUrl=self.queue_url, ReceiptHandle=task.receipt)

    async def nack(self, task: QueuedTask) -> None:
        self.sqs.change_message_visibility(
            QueueUrl=self.queue_url,
            ReceiptHandle=task.receipt,
            VisibilityTimeout=0,
        )

    async def dead_letter(self, task: QueuedTask, reason: str) -> None:
        if self.dead_letter_queue_url:
            self.sqs.send_message(
                QueueUrl=self.dead_letter_queue_url,
                MessageBody=json.dumps({"body": task.body, "attempts": task.attempts, "reason": reason}),
            )
        else:
            logger.warning("No dead-letter queue configured, dropping failed task")
        self.sqs.delete_message(QueueUrl=self.queue_url, ReceiptHandle=task.receipt)
        logger.warning(f"Dead-lettered task {task.body}: {reason}")

    def depth(self) -> Dict[str, int]:
        attributes = self._attributes(self.queue_url)
        dead_letter = 0
        if self.dead_letter_queue_url:
            dead_letter = int(self._attributes(self.dead_letter_queue_url).get("ApproximateNumberOfMessages", 0))
        return {
            "pending": int(attributes.get("ApproximateNumberOfMessages", 0)),
            "processing": int(attributes.get("ApproximateNumberOfMessagesNotVisible", 0)),
            "dead_letter": dead_letter,
            "capacity": self.max_depth,
        }

    def is_alive(self) -> bool:
        try:
            self._attributes(self.queue_url)
            return True
        except (BotoCoreError, ClientError) as e:
            logger.error(f"SQS queue check failed: {e}")
            return False


class QueueFactory:
    """Factory to initialize the correct queue handler based on deployment mode"""

    @staticmethod
    def get_queue_handler(settings: Settings, sqs_client=None) -> BaseQueue:
        queue_classes = {
            "local-dev": LocalQueue,
            "aws-mock": SQSQueue,
            "aws-prod": SQSQueue,
        }

        deployment_mode = settings.deployment_mode
        if deployment_mode not in queue_classes:
            raise ValueError(
                f"Invalid deployment_mode: {deployment_mode}. "
                f"Choose from {list(queue_classes.keys())}"
            )

        logger.info(f"Creating queue handler for mode: {deployment_mode}")
        if queue_classes[deployment_mode] is LocalQueue:
            return LocalQueue(
                settings.queue_dir,
                max_depth=settings.queue_max_depth,
                visibility_timeout=settings.queue_visibility_timeout_seconds,
            )

        if not settings.sqs_queue_url:
            raise ValueError("SQS_QUEUE_URL must be set in aws deployment modes")
        if sqs_client is None:
            sqs_client = boto3.client(
                "sqs",
                region_name=settings.aws_region,
                endpoint_url=settings.aws_endpoint_url,
                aws_access_key_id=settings.aws_access_key_id,
                aws_secret_access_key=settings.aws_secret_access_key,
            )
        return SQSQueue(
            sqs_client,
            settings.sqs_queue_url,
            dead_letter_queue_url=settings.sqs_dead_letter_queue_url,
            max_depth=settings.queue_max_depth,
            visibility_timeout=settings.queue_visibility_timeout_seconds,
        )
