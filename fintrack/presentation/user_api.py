from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from fintrack.data.base import get_db
from fintrack.domain.errors import AuthenticationError
from fintrack.domain.models.user import Identity
from fintrack.domain.services.auth_service import (
    authenticate_user,
    change_password,
    create_session_token,
    get_user_profile,
)
from fintrack.presentation.guard import (
    clear_session_cookie,
    current_identity,
    set_session_cookie,
)

router = APIRouter(prefix="/api/auth", tags=["auth"])


class LoginRequest(BaseModel):
    email: str
    password: str


class ChangePasswordRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    current_password: str = Field(alias="currentPassword")
    new_password: str = Field(alias="newPassword")


@router.post("/login")
def login(req: LoginRequest, db: Session = Depends(get_db)):
    user = authenticate_user(db, req.email, req.password)
    if not user:
        raise AuthenticationError("Incorrect email or password")
    token = create_session_token(user)
    response = JSONResponse(
        content={
            "success": True,
            "message": "Login successful",
            "user": user.summary(),
            "access_token": token,
            "token_type": "bearer",
        }
    )
    set_session_cookie(response, token)
    return response


@router.post("/logout")
def logout(identity: Identity = Depends(current_identity)):
    response = JSONResponse(content={"success": True, "message": "Logged out"})
    clear_session_cookie(response)
    return response


@router.get("/me")
def read_users_me(
    identity: Identity = Depends(current_identity), db: Session = Depends(get_db)
):
    user = get_user_profile(db, identity.user_id)
    return {"success": True, "user": user.summary()}


@router.post("/me")
def change_own_password(
    req: ChangePasswordRequest,
    identity: Identity = Depends(current_identity),
    db: Session = Depends(get_db),
):
    change_password(db, identity.user_id, req.current_password, req.new_password)
    return {"success": True, "message": "Password changed"}
