from fastapi import APIRouter, Depends, Request

from files_manager.dependencies import get_auth_service, get_file_service, get_job_tracker
from files_manager.schemas import QueueStatsResponse, StatsResponse, StatusResponse
from files_manager.services.auth_service import AuthService
from files_manager.services.file_service import FileService
from files_manager.services.thumbnail_jobs import JobTracker

router = APIRouter()


@router.get("/status", response_model=StatusResponse)
async def get_status(request: Request):
    """
    Liveness of the backing stores.

    `redis` reports the session store and `db` the document database.
    """
    return StatusResponse(
        redis=request.app.state.session_store.is_alive(),
        db=request.app.state.adapter.ping(),
    )


@router.get("/stats", response_model=StatsResponse)
async def get_stats(
    auth_service: AuthService = Depends(get_auth_service),
    file_service: FileService = Depends(get_file_service),
):
    """Number of registered users and stored nodes."""
    return StatsResponse(users=auth_service.count_users(), files=file_service.count_files())


@router.get("/status/queue", response_model=QueueStatsResponse)
async def get_queue_status(
    request: Request,
    job_tracker: JobTracker = Depends(get_job_tracker),
):
    """Thumbnail queue depth against its capacity, plus job counts per state."""
    depth = request.app.state.queue.depth()
    return QueueStatsResponse(**depth, jobs=job_tracker.count_by_state())
