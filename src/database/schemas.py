"""
Pydantic schemas for NoSQL document validation.
This module defines schemas for validating documents in the NoSQL collections.
"""

from typing import Dict, Any, List, Optional
from enum import Enum

from pydantic import BaseModel, Field, field_validator


class FileKind(str, Enum):
    """Kinds of nodes a user can store"""
    FOLDER = 'folder'
    FILE = 'file'
    IMAGE = 'image'


class JobState(str, Enum):
    """Lifecycle states of a thumbnail job"""
    ENQUEUED = 'enqueued'
    PROCESSING = 'processing'
    COMPLETED = 'completed'
    FAILED = 'failed'


class UserSchema(BaseModel):
    """Schema for user documents"""
    user_id: str = Field(..., min_length=1, description="Unique user identifier")
    email: str = Field(..., min_length=1, description="Login email, unique")
    password: str = Field(..., min_length=1, description="Password digest")


class FileNodeSchema(BaseModel):
    """Schema for file node documents"""
    file_id: str = Field(..., min_length=1, description="Unique node identifier")
    user_id: str = Field(..., min_length=1, description="Owner identifier")
    name: str = Field(..., min_length=1, description="Display name")
    type: FileKind = Field(..., description="Node kind")
    is_public: bool = Field(False, description="Readable by any authenticated user")
    parent_id: Optional[str] = Field(None, description="Parent folder, None for root level")
    local_path: Optional[str] = Field(None, description="Blob location")

    @field_validator('local_path')
    def folders_have_no_blob(cls, v, info):
        if info.data.get('type') == FileKind.FOLDER and v is not None:
            raise ValueError("folders cannot reference a blob")
        return v


class SessionSchema(BaseModel):
    """Schema for session documents"""
    session_key: str = Field(..., min_length=1, description="session:<token>")
    user_id: str = Field(..., min_length=1)
    expires_at: float = Field(..., description="Expiry as a unix timestamp")


class RenditionResult(BaseModel):
    """Outcome of a single thumbnail width"""
    width: int
    ok: bool
    path: Optional[str] = None
    error: Optional[str] = None


class ThumbnailJobSchema(BaseModel):
    """Schema for thumbnail job documents"""
    job_id: str = Field(..., min_length=1)
    file_id: str = Field(..., min_length=1)
    user_id: str = Field(..., min_length=1)
    state: JobState = Field(JobState.ENQUEUED)
    enqueued_at: str = Field(..., description="ISO timestamp")
    updated_at: Optional[str] = None
    attempts: int = Field(0, ge=0)
    renditions: List[RenditionResult] = Field(default_factory=list)
    failed_widths: List[int] = Field(default_factory=list)
    error_message: Optional[str] = None
    dead_letter: bool = False


def _validator(schema):
    def validate(document: Dict[str, Any]) -> None:
        schema.model_validate(document)
    return validate


DOCUMENT_SCHEMAS = {
    'users': UserSchema,
    'files': FileNodeSchema,
    'sessions': SessionSchema,
    'thumbnail_jobs': ThumbnailJobSchema,
}

DOCUMENT_VALIDATORS = {name: _validator(schema) for name, schema in DOCUMENT_SCHEMAS.items()}

# Primary key field of each collection
COLLECTION_KEYS = {
    'users': 'user_id',
    'files': 'file_id',
    'sessions': 'session_key',
    'thumbnail_jobs': 'job_id',
}
