"""Request-scoped accessors for the services built in `create_app`."""

from typing import Optional

from fastapi import Header, Request

from files_manager.services.auth_service import AuthService, User
from files_manager.services.file_service import FileService
from files_manager.services.thumbnail_jobs import JobTracker


def get_auth_service(request: Request) -> AuthService:
    return request.app.state.auth_service


def get_file_service(request: Request) -> FileService:
    return request.app.state.file_service


def get_job_tracker(request: Request) -> JobTracker:
    return request.app.state.job_tracker


def get_current_user(request: Request, x_token: Optional[str] = Header(None)) -> User:
    """Resolve the `X-Token` header to a user or fail Unauthorized"""
    return get_auth_service(request).authenticate(x_token)
