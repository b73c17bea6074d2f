"""
Files Manager services.

Domain operations sitting between the HTTP routers and the adapters.
"""

from .auth_service import AccessMode, AuthService, User, authorize, hash_password
from .file_service import FileService, NodeRef, parse_node_id, project
from .thumbnail_jobs import JobStateError, JobTracker

__all__ = [
    'AccessMode', 'AuthService', 'User', 'authorize', 'hash_password',
    'FileService', 'NodeRef', 'parse_node_id', 'project',
    'JobStateError', 'JobTracker',
]
