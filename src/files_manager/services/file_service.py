"""
File service: uploads, listing, publication and content retrieval.

Nodes are documents in the ``files`` collection. Bytes live in the blob store;
a node only references them through ``local_path``, which is never returned to
clients.
"""

import base64
import binascii
import logging
import mimetypes
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union

from botocore.exceptions import BotoCoreError, ClientError
from bson import ObjectId

from database import DocumentAdapter
from database.schemas import FileKind
from files_manager.adapters.queue import BaseQueue, QueueFullError
from files_manager.adapters.storage import BaseBlobStore, BlobNotFoundError, BlobStoreError
from files_manager.errors import InternalError, NotFound, ValidationError
from files_manager.services.auth_service import AccessMode, User, authorize
from files_manager.services.thumbnail_jobs import JobTracker
from files_manager.settings import Settings

logger = logging.getLogger(__name__)

ROOT_SENTINEL = "0"


class NodeRef(Enum):
    ROOT = 'root'
    INVALID = 'invalid'


def parse_node_id(value: Any) -> Union[str, NodeRef]:
    """Parse a client supplied node id.

    Returns the normalized id string, ``NodeRef.ROOT`` for the root sentinel
    (``"0"``, ``0`` or no value at all) or ``NodeRef.INVALID``.
    """
    if value is None or value == "" or (isinstance(value, int) and not isinstance(value, bool) and value == 0):
        return NodeRef.ROOT
    if not isinstance(value, str):
        return NodeRef.INVALID
    value = value.strip()
    if value == ROOT_SENTINEL:
        return NodeRef.ROOT
    if len(value) == 24 and ObjectId.is_valid(value):
        return value.lower()
    return NodeRef.INVALID


def parse_page(value: Any) -> int:
    """Lenient page number: anything that is not a non-negative integer is page 0"""
    try:
        page = int(value)
    except (TypeError, ValueError):
        return 0
    return max(page, 0)


def project(node: Dict[str, Any]) -> Dict[str, Any]:
    """Public view of a node, without its storage location"""
    return {
        'id': node['file_id'],
        'userId': node['user_id'],
        'name': node['name'],
        'type': node['type'],
        'isPublic': bool(node.get('is_public', False)),
        'parentId': node.get('parent_id'),
    }


def content_type_for(name: str) -> str:
    content_type, _ = mimetypes.guess_type(name)
    return content_type or 'application/octet-stream'


class FileService:
    """Service for managing file nodes and their content"""

    def __init__(
        self,
        adapter: DocumentAdapter,
        blob_store: BaseBlobStore,
        queue: BaseQueue,
        job_tracker: JobTracker,
        settings: Settings,
    ):
        self.adapter = adapter
        self.blob_store = blob_store
        self.queue = queue
        self.job_tracker = job_tracker
        self.page_size = settings.files_page_size
        self.thumbnail_widths = tuple(settings.thumbnail_widths)

    def _resolve_parent(self, parent_id: Any) -> Optional[str]:
        ref = parse_node_id(parent_id)
        if ref is NodeRef.ROOT:
            return None
        if ref is NodeRef.INVALID:
            raise ValidationError("Parent not found")

        parent = self.adapter.get_document('files', ref)
        if not parent:
            raise ValidationError("Parent not found")
        if parent['type'] != FileKind.FOLDER.value:
            raise ValidationError("Parent is not a folder")
        return ref

    def _load_node(self, user: User, node_id: Any, mode: AccessMode) -> Dict[str, Any]:
        """Fetch a node the user may access; anything else looks absent"""
        ref = parse_node_id(node_id)
        if isinstance(ref, NodeRef):
            raise NotFound()

        node = self.adapter.get_document('files', ref)
        if not node or not authorize(user, node, mode):
            raise NotFound()
        return node

    async def upload(
        self,
        user: User,
        name: Optional[str],
        type: Optional[str],
        parent_id: Any = None,
        is_public: bool = False,
        data: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Validate and store a new folder, file or image"""
        if not name:
            raise ValidationError("Missing name")
        if type not in {kind.value for kind in FileKind}:
            raise ValidationError("Missing type")
        kind = FileKind(type)
        if kind != FileKind.FOLDER and not data:
            raise ValidationError("Missing data")
        parent = self._resolve_parent(parent_id)

        node = {
            'file_id': str(ObjectId()),
            'user_id': user.id,
            'name': name,
            'type': kind.value,
            'is_public': bool(is_public),
            'parent_id': parent,
            'local_path': None,
        }

        if kind != FileKind.FOLDER:
            try:
                content = base64.b64decode(data, validate=True)
            except (binascii.Error, ValueError):
                raise ValidationError("Invalid data")

            try:
                node['local_path'] = self.blob_store.save(content)
            except BlobStoreError as e:
                logger.error(f"Blob write failed for upload by {user.id}: {e}")
                raise InternalError("Cannot store file")

        try:
            self.adapter.create_document('files', node)
        except Exception as e:
            logger.error(f"Metadata write failed for upload by {user.id}: {e}", exc_info=True)
            self._discard_blob(node['local_path'])
            raise InternalError("Cannot store file") from e
        logger.info(f"Stored {kind.value} {node['file_id']} for user {user.id}")

        if kind == FileKind.IMAGE:
            await self._enqueue_thumbnails(node)

        return project(node)

    def _discard_blob(self, path: Optional[str]) -> None:
        """Remove bytes whose node was never recorded"""
        if path is None:
            return
        try:
            self.blob_store.delete(path)
        except BlobStoreError as e:
            logger.error(f"Orphan blob {path} left behind: {e}")

    async def _enqueue_thumbnails(self, node: Dict[str, Any]) -> None:
        """Create the thumbnail job; queue trouble never fails the upload"""
        job = self.job_tracker.create_job(node['file_id'], node['user_id'])
        task = {
            'job_id': job['job_id'],
            'fileId': node['file_id'],
            'userId': node['user_id'],
            'enqueuedAt': job['enqueued_at'],
        }
        try:
            await self.queue.add_task(task)
        except QueueFullError as e:
            logger.error(f"Thumbnail job {job['job_id']} rejected: {e}")
            self.job_tracker.mark_failed(job['job_id'], "queue full")
        except (BotoCoreError, ClientError, OSError) as e:
            logger.error(f"Thumbnail job {job['job_id']} could not be enqueued: {e}")
            self.job_tracker.mark_failed(job['job_id'], f"queue unavailable: {e}")

    def get_by_id(self, user: User, node_id: Any) -> Dict[str, Any]:
        return project(self._load_node(user, node_id, AccessMode.READ))

    def list_files(self, user: User, parent_id: Any = None, page: int = 0) -> List[Dict[str, Any]]:
        """One page of the user's nodes, optionally under a single parent"""
        query: Dict[str, Any] = {'user_id': user.id}
        if parent_id is not None:
            ref = parse_node_id(parent_id)
            if ref is NodeRef.INVALID:
                return []
            query['parent_id'] = None if ref is NodeRef.ROOT else ref

        nodes = self.adapter.query_documents(
            'files', query, limit=self.page_size, offset=page * self.page_size
        )
        return [project(node) for node in nodes]

    def _set_public(self, user: User, node_id: Any, is_public: bool) -> Dict[str, Any]:
        node = self._load_node(user, node_id, AccessMode.WRITE)
        node['is_public'] = is_public
        self.adapter.update_document('files', node['file_id'], node)
        logger.info(f"File {node['file_id']} is_public set to {is_public}")
        return project(node)

    def publish(self, user: User, node_id: Any) -> Dict[str, Any]:
        return self._set_public(user, node_id, True)

    def unpublish(self, user: User, node_id: Any) -> Dict[str, Any]:
        return self._set_public(user, node_id, False)

    def get_content(self, user: User, node_id: Any, size: Optional[Any] = None) -> Tuple[bytes, str]:
        """Return (bytes, content type) of a node or one of its thumbnails"""
        node = self._load_node(user, node_id, AccessMode.READ)
        if node['type'] == FileKind.FOLDER.value:
            raise ValidationError("A folder doesn't have content")

        path = node['local_path']
        if size is not None:
            try:
                width = int(size)
            except (TypeError, ValueError):
                raise ValidationError("Invalid size")
            if width not in self.thumbnail_widths:
                raise ValidationError("Invalid size")
            path = f"{path}_{width}"

        try:
            content = self.blob_store.read(path)
        except BlobNotFoundError:
            raise NotFound()
        except BlobStoreError as e:
            logger.error(f"Blob read failed for {node['file_id']}: {e}")
            raise InternalError("Cannot read file")

        return content, content_type_for(node['name'])

    def count_files(self) -> int:
        return self.adapter.count_documents('files')
