"""
Pinpoint Backend — Image Routes
================================

    GET   /api/Image             list
    POST  /api/Image             create, owned by the caller
    GET   /api/Image/{id}        read
    PATCH /api/Image/{id}        move (x, y)
    PUT   /api/Image/{id}/blob   upload bytes (owner only), 302 to the file

All routes require a signed-in user.
"""

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession

from pinpoint.database import get_db_session
from pinpoint.dependencies import get_registry, image_from_path, require_user
from pinpoint.exceptions import ForbiddenError
from pinpoint.models import Image, User
from pinpoint.registry import ServiceRegistry
from pinpoint.schemas.common import ErrorResponse
from pinpoint.schemas.image import (
    AddImageInput,
    ImageListOutput,
    ImageOut,
    ImageOutput,
    PositionPatch,
)

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/Image",
    tags=["Images"],
    dependencies=[Depends(require_user)],
    responses={401: {"description": "Not signed in", "model": ErrorResponse}},
)


@router.get("", response_model=ImageListOutput, summary="List images")
async def list_images(
    db: AsyncSession = Depends(get_db_session),
    registry: ServiceRegistry = Depends(get_registry),
) -> ImageListOutput:
    images = await registry.store.list_images(db)
    return ImageListOutput(images=[ImageOut.model_validate(i) for i in images])


@router.post(
    "",
    status_code=201,
    response_model=ImageOutput,
    responses={400: {"description": "Unsupported extension or bad position", "model": ErrorResponse}},
    summary="Create an image record",
)
async def add_image(
    body: AddImageInput,
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_db_session),
    registry: ServiceRegistry = Depends(get_registry),
) -> ImageOutput:
    image = await registry.store.create_image(
        db, user_id=user.id, extension=body.extension, x=body.x, y=body.y
    )
    return ImageOutput(image=ImageOut.model_validate(image))


@router.get(
    "/{image_id}",
    response_model=ImageOutput,
    responses={404: {"description": "Unknown image", "model": ErrorResponse}},
    summary="Get an image",
)
async def get_image(image: Image = Depends(image_from_path)) -> ImageOutput:
    return ImageOutput(image=ImageOut.model_validate(image))


@router.patch(
    "/{image_id}",
    response_model=ImageOutput,
    responses={404: {"description": "Unknown image", "model": ErrorResponse}},
    summary="Move an image",
)
async def update_image(
    body: PositionPatch,
    image: Image = Depends(image_from_path),
    db: AsyncSession = Depends(get_db_session),
    registry: ServiceRegistry = Depends(get_registry),
) -> ImageOutput:
    image = await registry.store.update_image(db, image, body.model_dump(exclude_unset=True))
    return ImageOutput(image=ImageOut.model_validate(image))


@router.put(
    "/{image_id}/blob",
    status_code=302,
    responses={
        302: {"description": "Stored; redirects to the served file"},
        403: {"description": "Caller does not own the image", "model": ErrorResponse},
        404: {"description": "Unknown image", "model": ErrorResponse},
    },
    summary="Upload the image bytes",
)
async def upload_blob(
    request: Request,
    image: Image = Depends(image_from_path),
    user: User = Depends(require_user),
    registry: ServiceRegistry = Depends(get_registry),
) -> RedirectResponse:
    if image.user_id != user.id:
        raise ForbiddenError(context={"image_id": str(image.id), "user_id": str(user.id)})

    content_length = request.headers.get("content-length")
    await registry.files.store_blob(
        image,
        request.stream(),
        int(content_length) if content_length and content_length.isdigit() else None,
    )
    return RedirectResponse(registry.files.public_url(image), status_code=302)
