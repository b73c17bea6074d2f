from fastapi import APIRouter, Depends, status

from files_manager.dependencies import get_auth_service, get_current_user
from files_manager.schemas import CreateUserRequest, UserResponse
from files_manager.services.auth_service import AuthService, User

router = APIRouter()


@router.post("/users", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_user(
    body: CreateUserRequest,
    auth_service: AuthService = Depends(get_auth_service),
):
    """Register a user from an email and a password."""
    user = auth_service.register(body.email, body.password)
    return UserResponse(id=user.id, email=user.email)


@router.get("/users/me", response_model=UserResponse)
async def get_me(user: User = Depends(get_current_user)):
    """The user owning the presented token."""
    return UserResponse(id=user.id, email=user.email)
