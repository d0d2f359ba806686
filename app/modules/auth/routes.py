from fastapi import APIRouter, Depends
from app.core.dependencies import get_auth_service, get_current_user
from app.modules.auth.service import AuthService
from typing import Dict

router = APIRouter(prefix="/auth", tags=["auth"])


@router.get("/me")
async def get_me(
    current_user: Dict = Depends(get_current_user),
    auth_service: AuthService = Depends(get_auth_service),
):
    """Resolve the caller's token (used by the frontends to check a session)"""
    return {**current_user, "is_admin": auth_service.is_admin(current_user)}
