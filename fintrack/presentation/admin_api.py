from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from fintrack.data.base import get_db
from fintrack.domain.models.user import Identity, Role
from fintrack.domain.services.auth_service import (
    create_user,
    delete_user,
    list_users,
    reset_password,
    update_user_profile,
    update_user_role,
)
from fintrack.presentation.guard import require_superadmin

router = APIRouter(prefix="/api/admin/users", tags=["admin"])


class UserCreateRequest(BaseModel):
    email: str
    password: str
    name: str
    role: Role = Role.ADMINISTRATOR


class _UserTarget(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: int = Field(alias="userId")


class UpdateRoleRequest(_UserTarget):
    role: Role


class UpdateProfileRequest(_UserTarget):
    name: str
    email: str


class DeleteUserRequest(_UserTarget):
    pass


class ResetPasswordRequest(_UserTarget):
    new_password: str = Field(alias="newPassword")


def _user_dict(user) -> dict:
    return {
        **user.summary(),
        "created_at": user.created_at.isoformat() if user.created_at else None,
        "updated_at": user.updated_at.isoformat() if user.updated_at else None,
    }


@router.get("")
def get_users(
    identity: Identity = Depends(require_superadmin), db: Session = Depends(get_db)
):
    return {"users": [_user_dict(u) for u in list_users(db)]}


@router.post("", status_code=201)
def create_user_endpoint(
    req: UserCreateRequest,
    identity: Identity = Depends(require_superadmin),
    db: Session = Depends(get_db),
):
    user = create_user(db, req.email, req.password, req.name, req.role)
    return {"success": True, "user": user.summary()}


@router.patch("")
def update_role_endpoint(
    req: UpdateRoleRequest,
    identity: Identity = Depends(require_superadmin),
    db: Session = Depends(get_db),
):
    update_user_role(db, req.user_id, req.role)
    return {"success": True, "message": "User role updated"}


@router.put("")
def update_profile_endpoint(
    req: UpdateProfileRequest,
    identity: Identity = Depends(require_superadmin),
    db: Session = Depends(get_db),
):
    user = update_user_profile(db, req.user_id, req.name, req.email)
    return {"success": True, "message": "User updated", "user": user.summary()}


@router.delete("")
def delete_user_endpoint(
    req: DeleteUserRequest,
    identity: Identity = Depends(require_superadmin),
    db: Session = Depends(get_db),
):
    delete_user(db, req.user_id)
    return {"success": True, "message": "User deleted"}


@router.post("/reset-password")
def reset_password_endpoint(
    req: ResetPasswordRequest,
    identity: Identity = Depends(require_superadmin),
    db: Session = Depends(get_db),
):
    reset_password(db, req.user_id, req.new_password)
    return {"success": True, "message": "Password reset"}
