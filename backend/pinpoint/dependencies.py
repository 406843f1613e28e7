"""
Pinpoint Backend — FastAPI Dependencies
========================================

What:  Request-scoped accessors for the service registry, the current user
       and the entities named in the URL path.

Authentication:
    The session token is read from `Authorization: Bearer <token>` first,
    then from the session cookie. A missing or invalid token simply means
    "anonymous"; only `require_user` turns that into a 401.

Path ids:
    An id that is not a UUID cannot name an existing entity, so it is a
    404 like any other unknown id.
"""

import uuid
from typing import Optional

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from pinpoint.database import get_db_session
from pinpoint.exceptions import AuthError, NotFoundError
from pinpoint.models import Comment, Image, Marker, User
from pinpoint.registry import ServiceRegistry


def get_registry(request: Request) -> ServiceRegistry:
    return request.app.state.registry


def read_token(request: Request, cookie_name: str) -> Optional[str]:
    authorization = request.headers.get("Authorization", "")
    scheme, _, credentials = authorization.partition(" ")
    if scheme.lower() == "bearer" and credentials.strip():
        return credentials.strip()
    return request.cookies.get(cookie_name) or None


async def get_current_user(
    request: Request,
    db: AsyncSession = Depends(get_db_session),
    registry: ServiceRegistry = Depends(get_registry),
) -> Optional[User]:
    token = read_token(request, registry.settings.token_cookie_name)
    if token is None:
        return None
    return await registry.users.authenticate(db, token)


async def require_user(user: Optional[User] = Depends(get_current_user)) -> User:
    if user is None:
        raise AuthError()
    return user


def parse_id(value: str, resource: str) -> uuid.UUID:
    try:
        return uuid.UUID(value)
    except (ValueError, TypeError, AttributeError):
        raise NotFoundError(resource=resource, resource_id=value) from None


async def image_from_path(
    image_id: str,
    db: AsyncSession = Depends(get_db_session),
    registry: ServiceRegistry = Depends(get_registry),
) -> Image:
    return await registry.store.get_image(db, parse_id(image_id, "Image"))


async def marker_from_path(
    marker_id: str,
    db: AsyncSession = Depends(get_db_session),
    registry: ServiceRegistry = Depends(get_registry),
) -> Marker:
    return await registry.store.get_marker(db, parse_id(marker_id, "Marker"))


async def comment_from_path(
    comment_id: str,
    marker: Marker = Depends(marker_from_path),
    db: AsyncSession = Depends(get_db_session),
    registry: ServiceRegistry = Depends(get_registry),
) -> Comment:
    return await registry.store.get_comment(db, parse_id(comment_id, "Comment"), marker)
