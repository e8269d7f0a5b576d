"""User router - Profile endpoints and admin user management"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...auth import get_active_user, require_admin
from ...database import get_db
from ...models import User
from .schemas import (
    ProfileResponse,
    ProfileUpdate,
    SuspendUserRequest,
    UserIdRequest,
    UserResponse,
)
from .service import UserService

router = APIRouter(prefix="/profile", tags=["Profile"])
admin_router = APIRouter(prefix="/admin/users", tags=["Admin Users"])


def get_user_service(db: Session = Depends(get_db)) -> UserService:
    """Dependency injection for UserService"""
    return UserService(db)


@router.get("")
async def get_profile(current_user: User = Depends(get_active_user)):
    return {"profile": ProfileResponse.model_validate(current_user)}


@router.patch("")
async def update_profile(
    data: ProfileUpdate,
    current_user: User = Depends(get_active_user),
    service: UserService = Depends(get_user_service),
):
    user = service.update_profile(current_user, data)
    return {"profile": ProfileResponse.model_validate(user)}


# ============================================================================
# ADMIN
# ============================================================================


@admin_router.get("", response_model=list[UserResponse])
async def list_users(
    _: User = Depends(require_admin),
    service: UserService = Depends(get_user_service),
):
    return service.list_users()


@admin_router.post("/suspend", response_model=UserResponse)
async def suspend_user(
    data: SuspendUserRequest,
    admin: User = Depends(require_admin),
    service: UserService = Depends(get_user_service),
):
    return service.suspend_user(admin, data.user_id, data.duration)


@admin_router.post("/unsuspend", response_model=UserResponse)
async def unsuspend_user(
    data: UserIdRequest,
    admin: User = Depends(require_admin),
    service: UserService = Depends(get_user_service),
):
    return service.unsuspend_user(admin, data.user_id)


@admin_router.post("/delete")
async def delete_user(
    data: UserIdRequest,
    admin: User = Depends(require_admin),
    service: UserService = Depends(get_user_service),
):
    return service.delete_user(admin, data.user_id)
