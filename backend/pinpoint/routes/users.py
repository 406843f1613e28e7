"""
Pinpoint Backend — User & Session Routes
=========================================

    POST   /api/User   sign up                       (public)
    GET    /api/Me     current user                  (authenticated)
    PUT    /api/Me     sign in, sets session cookie  (public)
    DELETE /api/Me     sign out, clears the cookie   (public)

Sessions are stateless: signing out only removes the cookie. The token
itself stays valid until it expires or the password changes.
"""

import logging

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from pinpoint.database import get_db_session
from pinpoint.dependencies import get_registry, require_user
from pinpoint.models import User
from pinpoint.registry import ServiceRegistry
from pinpoint.schemas.common import ErrorResponse
from pinpoint.schemas.user import (
    AddUserInput,
    AddUserOutput,
    MeOutput,
    SignInInput,
    SignInOutput,
    UserOut,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Users"])


@router.post(
    "/User",
    status_code=201,
    response_model=AddUserOutput,
    responses={
        400: {"description": "Invalid name, e-mail or password", "model": ErrorResponse},
        409: {"description": "Username already taken", "model": ErrorResponse},
    },
    summary="Sign up",
)
async def add_user(
    body: AddUserInput,
    db: AsyncSession = Depends(get_db_session),
    registry: ServiceRegistry = Depends(get_registry),
) -> AddUserOutput:
    user = await registry.users.sign_up(
        db, name=body.name, username=str(body.username), password=body.password
    )
    return AddUserOutput(user=UserOut.model_validate(user), password=body.password)


@router.get(
    "/Me",
    response_model=MeOutput,
    responses={401: {"description": "Not signed in", "model": ErrorResponse}},
    summary="Current user",
)
async def get_me(user: User = Depends(require_user)) -> MeOutput:
    return MeOutput(user=UserOut.model_validate(user))


@router.put(
    "/Me",
    response_model=SignInOutput,
    responses={401: {"description": "Wrong username or password", "model": ErrorResponse}},
    summary="Sign in",
)
async def sign_in(
    body: SignInInput,
    request: Request,
    response: Response,
    db: AsyncSession = Depends(get_db_session),
    registry: ServiceRegistry = Depends(get_registry),
) -> SignInOutput:
    user, token = await registry.users.sign_in(db, body.username, body.password)

    settings = registry.settings
    response.set_cookie(
        key=settings.token_cookie_name,
        value=token,
        max_age=settings.token_expire_hours * 3600,
        httponly=True,
        secure=request.url.scheme == "https",
        samesite="lax",
    )
    return SignInOutput(user=UserOut.model_validate(user), cy_token=token)


@router.delete("/Me", status_code=205, summary="Sign out")
async def sign_out(registry: ServiceRegistry = Depends(get_registry)) -> Response:
    response = Response(status_code=205)
    response.delete_cookie(key=registry.settings.token_cookie_name, httponly=True)
    return response
