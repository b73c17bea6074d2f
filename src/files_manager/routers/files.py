from typing import List, Optional

from fastapi import APIRouter, Depends, Path, Query, Response, status

from files_manager.dependencies import get_current_user, get_file_service
from files_manager.schemas import FileNodeResponse, UploadRequest
from files_manager.services.auth_service import User
from files_manager.services.file_service import FileService, parse_page

router = APIRouter()


@router.post("/files", response_model=FileNodeResponse, status_code=status.HTTP_201_CREATED)
async def upload_file(
    body: UploadRequest,
    user: User = Depends(get_current_user),
    file_service: FileService = Depends(get_file_service),
):
    """
    Store a folder, a file or an image.

    Files and images carry their content base64 encoded in `data`. Images are
    queued for thumbnail generation once stored.
    """
    return await file_service.upload(
        user,
        name=body.name,
        type=body.type,
        parent_id=body.parentId,
        is_public=body.isPublic,
        data=body.data,
    )


@router.get("/files/{file_id}", response_model=FileNodeResponse)
async def get_file(
    file_id: str = Path(..., description="Node id"),
    user: User = Depends(get_current_user),
    file_service: FileService = Depends(get_file_service),
):
    """A node owned by the user, or a public one."""
    return file_service.get_by_id(user, file_id)


@router.get("/files", response_model=List[FileNodeResponse])
async def list_files(
    parentId: Optional[str] = Query(None, description="Only nodes under this folder; 0 for the root"),
    page: Optional[str] = Query(None, description="Zero based page of 20 items"),
    user: User = Depends(get_current_user),
    file_service: FileService = Depends(get_file_service),
):
    """The user's nodes, in insertion order."""
    return file_service.list_files(user, parent_id=parentId, page=parse_page(page))


@router.put("/files/{file_id}/publish", response_model=FileNodeResponse)
async def publish_file(
    file_id: str,
    user: User = Depends(get_current_user),
    file_service: FileService = Depends(get_file_service),
):
    return file_service.publish(user, file_id)


@router.put("/files/{file_id}/unpublish", response_model=FileNodeResponse)
async def unpublish_file(
    file_id: str,
    user: User = Depends(get_current_user),
    file_service: FileService = Depends(get_file_service),
):
    return file_service.unpublish(user, file_id)


@router.get("/files/{file_id}/data")
async def get_file_data(
    file_id: str,
    size: Optional[str] = Query(None, description="Thumbnail width: 100, 250 or 500"),
    user: User = Depends(get_current_user),
    file_service: FileService = Depends(get_file_service),
):
    """
    Raw content of a file or image, or of one of its thumbnails.

    A thumbnail that has not been generated yet answers 404.
    """
    content, content_type = file_service.get_content(user, file_id, size=size)
    return Response(content=content, media_type=content_type)
