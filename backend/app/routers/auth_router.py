"""
Authentication routes
---------------------------------
Features:
- /auth/register - create an account
- /auth/token - log in (opens a session, returns a JWT)
- /auth/logout - revoke the current session
- /auth/me - current user profile
- /auth/route-access - page access decision for the web client

Usage:
- The frontend stores the token and sends `Authorization: Bearer <token>`
- The token only identifies a server-side session; logging out or session
  expiry invalidates it immediately
"""

from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.security import OAuth2PasswordRequestForm
from pydantic import BaseModel, EmailStr, Field
from sqlalchemy.ext.asyncio import AsyncSession

from ..config.database import get_db
from ..models.response_schema import ApiResponse
from ..models.user import User
from ..services.access_policy import Actor, route_redirect
from ..services.auth_service import (
    create_session, revoke_session, oauth2_scheme, get_current_user, get_actor_optional,
)
from ..services.user_service import user_service
from ..utils.logger import log

router = APIRouter(prefix="/auth", tags=["auth"])


# ============================================================================
# Pydantic models
# ============================================================================

class RegisterRequest(BaseModel):
    """Registration request"""
    email: EmailStr
    password: str = Field(..., min_length=6, description="Password")
    first_name: Optional[str] = Field(default=None, max_length=100)
    last_name: Optional[str] = Field(default=None, max_length=100)
    phone_number: Optional[str] = Field(default=None, max_length=20)


# ============================================================================
# API routes
# ============================================================================

@router.post("/register", response_model=ApiResponse)
async def register(req: RegisterRequest, db: AsyncSession = Depends(get_db)):
    """
    Register

    Body:
    - email, password (at least 6 characters)
    - first_name, last_name, phone_number (optional)

    Returns:
    - the new user's profile
    """
    user = await user_service.register(
        db,
        email=req.email,
        password=req.password,
        first_name=req.first_name,
        last_name=req.last_name,
        phone_number=req.phone_number,
    )
    return ApiResponse.ok(user_service.profile(user), message="Registration successful")


@router.post("/token", response_model=ApiResponse)
async def login(
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: AsyncSession = Depends(get_db),
):
    """
    Log in

    Body (application/x-www-form-urlencoded):
    - username: the account email (OAuth2 field name)
    - password

    Returns:
    - access_token, token_type "bearer", user profile
    """
    user = await user_service.authenticate(db, form_data.username, form_data.password)
    access_token = await create_session(user, db)
    await db.commit()

    log.info(f"User {user.id} logged in")
    return ApiResponse.ok({
        "access_token": access_token,
        "token_type": "bearer",
        "user": user_service.profile(user),
    })


@router.post("/logout", response_model=ApiResponse)
async def logout(
    token: Optional[str] = Depends(oauth2_scheme),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Revoke the session behind the bearer token"""
    await revoke_session(token, db)
    log.info(f"User {current_user.id} logged out")
    return ApiResponse.ok(message="Logged out")


@router.get("/me", response_model=ApiResponse)
async def get_me(current_user: User = Depends(get_current_user)):
    """
    Current user

    Requires `Authorization: Bearer <token>`.
    """
    return ApiResponse.ok(user_service.profile(current_user))


@router.get("/route-access", response_model=ApiResponse)
async def route_access(path: str, actor: Optional[Actor] = Depends(get_actor_optional)):
    """
    Whether the caller may open page `path`

    Returns:
    - allowed: bool
    - redirect: path to send the browser to when not allowed
    """
    redirect = route_redirect(path, actor)
    return ApiResponse.ok({"allowed": redirect is None, "redirect": redirect})
