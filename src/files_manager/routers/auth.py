from typing import Optional

from fastapi import APIRouter, Depends, Header, Response, status

from files_manager.dependencies import get_auth_service, get_current_user
from files_manager.schemas import TokenResponse
from files_manager.services.auth_service import AuthService, User, parse_basic_auth

router = APIRouter()


@router.get("/connect", response_model=TokenResponse)
async def connect(
    authorization: Optional[str] = Header(None),
    auth_service: AuthService = Depends(get_auth_service),
):
    """
    Exchange `Authorization: Basic <base64(email:password)>` for a session token.
    """
    email, password = parse_basic_auth(authorization)
    return TokenResponse(token=auth_service.login(email, password))


@router.get("/disconnect", status_code=status.HTTP_204_NO_CONTENT)
async def disconnect(
    x_token: Optional[str] = Header(None),
    user: User = Depends(get_current_user),
    auth_service: AuthService = Depends(get_auth_service),
):
    """End the session of the presented token."""
    auth_service.logout(x_token)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
