####################################
# --- Request/response schemas --- #
####################################

from typing import Any, Dict, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
)


class CreateUserRequest(BaseModel):
    """Request body for `POST /users`."""
    email: Optional[str] = None
    password: Optional[str] = None


class UserResponse(BaseModel):
    """Response model for `POST /users` and `GET /users/me`."""
    id: str
    email: str


class TokenResponse(BaseModel):
    """Response model for `GET /connect`."""
    token: str


class UploadRequest(BaseModel):
    """Request body for `POST /files`.

    Fields are optional at the schema level so the service can report the
    first missing one with its own message.
    """
    name: Optional[str] = None
    type: Optional[str] = None
    parentId: Optional[Any] = Field(None, description="Parent folder id, or 0 for the root")
    isPublic: bool = False
    data: Optional[str] = Field(None, description="Base64 encoded content, required for file and image")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "name": "a.png",
                "type": "image",
                "parentId": "0",
                "isPublic": False,
                "data": "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mNk+M9QDwADhgGAWjR9awAAAABJRU5ErkJggg==",
            }
        }
    )


class FileNodeResponse(BaseModel):
    """Public projection of a stored node."""
    id: str
    userId: str
    name: str
    type: str
    isPublic: bool
    parentId: Optional[str] = None

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id": "5f1e7cda04a394508232559d",
                "userId": "5f1e7cda04a394508232559c",
                "name": "a.png",
                "type": "image",
                "isPublic": False,
                "parentId": None,
            }
        }
    )


class StatusResponse(BaseModel):
    """Response model for `GET /status`."""
    redis: bool = Field(description="Session store reachable")
    db: bool = Field(description="Document database reachable")


class StatsResponse(BaseModel):
    """Response model for `GET /stats`."""
    users: int
    files: int


class QueueStatsResponse(BaseModel):
    """Response model for `GET /status/queue`."""
    pending: int
    processing: int
    dead_letter: int
    capacity: int
    jobs: Dict[str, int] = Field(default_factory=dict, description="Thumbnail jobs per state")
