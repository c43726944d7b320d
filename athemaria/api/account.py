"""
Account routes: signup, login, password reset, and the current user.
"""

from fastapi import APIRouter, Depends
from pydantic import Field
import logging

from athemaria.api.dependencies import AppServices, get_services, get_current_user
from athemaria.models import DocumentModel
from athemaria.services import AuthenticatedUser

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


class SignupRequest(DocumentModel):
    email: str = Field(..., min_length=3)
    password: str = Field(..., min_length=6)
    display_name: str = Field(..., min_length=1)


class LoginRequest(DocumentModel):
    email: str
    password: str


class PasswordResetRequest(DocumentModel):
    email: str


class PasswordResetConfirm(DocumentModel):
    oob_code: str
    new_password: str = Field(..., min_length=6)


@router.post("/signup", status_code=201)
async def signup(body: SignupRequest, services: AppServices = Depends(get_services)):
    user = await services.auth.signup(body.email, body.password, body.display_name)
    return {"success": True, "user": user}


@router.post("/login")
async def login(body: LoginRequest, services: AppServices = Depends(get_services)):
    session = await services.auth.login(body.email, body.password)
    return {"success": True, "session": session}


@router.post("/password-reset")
async def request_password_reset(body: PasswordResetRequest, services: AppServices = Depends(get_services)):
    await services.auth.send_password_reset_email(body.email)
    return {"success": True}


@router.post("/password-reset/confirm")
async def confirm_password_reset(body: PasswordResetConfirm, services: AppServices = Depends(get_services)):
    email = await services.auth.confirm_password_reset(body.oob_code, body.new_password)
    return {"success": True, "email": email}


@router.get("/me")
async def current_user(
    user: AuthenticatedUser = Depends(get_current_user),
    services: AppServices = Depends(get_services),
):
    return {"user": user, "is_admin": services.auth.is_admin(user)}
