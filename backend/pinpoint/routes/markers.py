"""
Pinpoint Backend — Marker & Comment Routes
===========================================

    GET    /api/Marker                                list
    POST   /api/Marker                                marker + seed comment
    GET    /api/Marker/{markerId}                     read
    PATCH  /api/Marker/{markerId}                     move (x, y)
    DELETE /api/Marker/{markerId}                     delete with its comments
    GET    /api/Marker/{markerId}/Comment             thread, oldest first
    POST   /api/Marker/{markerId}/Comment             reply
    DELETE /api/Marker/{markerId}/Comment/{commentId} delete; the last one
                                                      takes the marker along

All routes require a signed-in user. Markers on the free canvas have no
`imageId` in their JSON.
"""

import logging

from fastapi import APIRouter, Depends, Response
from sqlalchemy.ext.asyncio import AsyncSession

from pinpoint.database import get_db_session
from pinpoint.dependencies import (
    comment_from_path,
    get_registry,
    marker_from_path,
    require_user,
)
from pinpoint.models import Comment, Marker, User
from pinpoint.registry import ServiceRegistry
from pinpoint.schemas.common import ErrorResponse
from pinpoint.schemas.image import PositionPatch
from pinpoint.schemas.marker import (
    AddCommentInput,
    AddMarkerInput,
    AddMarkerOutput,
    CommentListOutput,
    CommentOut,
    CommentOutput,
    MarkerListOutput,
    MarkerOut,
    MarkerOutput,
)

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/Marker",
    tags=["Markers"],
    dependencies=[Depends(require_user)],
    responses={401: {"description": "Not signed in", "model": ErrorResponse}},
)

_not_found = {404: {"description": "Unknown marker or comment", "model": ErrorResponse}}


@router.get(
    "",
    response_model=MarkerListOutput,
    response_model_exclude_none=True,
    summary="List markers",
)
async def list_markers(
    db: AsyncSession = Depends(get_db_session),
    registry: ServiceRegistry = Depends(get_registry),
) -> MarkerListOutput:
    markers = await registry.store.list_markers(db)
    return MarkerListOutput(markers=[MarkerOut.model_validate(m) for m in markers])


@router.post(
    "",
    status_code=201,
    response_model=AddMarkerOutput,
    response_model_exclude_none=True,
    responses={400: {"description": "Unknown image or bad position", "model": ErrorResponse}},
    summary="Create a marker with its first comment",
)
async def add_marker(
    body: AddMarkerInput,
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_db_session),
    registry: ServiceRegistry = Depends(get_registry),
) -> AddMarkerOutput:
    marker, comment = await registry.store.create_marker_with_comment(
        db,
        image_id=body.image_id,
        x=body.x,
        y=body.y,
        user_id=user.id,
        text=body.text,
    )
    return AddMarkerOutput(
        marker=MarkerOut.model_validate(marker),
        comment=CommentOut.model_validate(comment),
    )


@router.get(
    "/{marker_id}",
    response_model=MarkerOutput,
    response_model_exclude_none=True,
    responses=_not_found,
    summary="Get a marker",
)
async def get_marker(marker: Marker = Depends(marker_from_path)) -> MarkerOutput:
    return MarkerOutput(marker=MarkerOut.model_validate(marker))


@router.patch(
    "/{marker_id}",
    response_model=MarkerOutput,
    response_model_exclude_none=True,
    responses=_not_found,
    summary="Move a marker",
)
async def update_marker(
    body: PositionPatch,
    marker: Marker = Depends(marker_from_path),
    db: AsyncSession = Depends(get_db_session),
    registry: ServiceRegistry = Depends(get_registry),
) -> MarkerOutput:
    marker = await registry.store.update_marker(db, marker, body.model_dump(exclude_unset=True))
    return MarkerOutput(marker=MarkerOut.model_validate(marker))


@router.delete("/{marker_id}", status_code=204, responses=_not_found, summary="Delete a marker")
async def delete_marker(
    marker: Marker = Depends(marker_from_path),
    db: AsyncSession = Depends(get_db_session),
    registry: ServiceRegistry = Depends(get_registry),
) -> Response:
    await registry.store.delete_marker(db, marker)
    return Response(status_code=204)


@router.get(
    "/{marker_id}/Comment",
    response_model=CommentListOutput,
    responses=_not_found,
    summary="List a marker's comments",
)
async def list_comments(
    marker: Marker = Depends(marker_from_path),
    db: AsyncSession = Depends(get_db_session),
    registry: ServiceRegistry = Depends(get_registry),
) -> CommentListOutput:
    comments = await registry.store.list_comments(db, marker)
    return CommentListOutput(comments=[CommentOut.model_validate(c) for c in comments])


@router.post(
    "/{marker_id}/Comment",
    status_code=201,
    response_model=CommentOutput,
    responses=_not_found,
    summary="Reply to a marker",
)
async def add_comment(
    body: AddCommentInput,
    marker: Marker = Depends(marker_from_path),
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_db_session),
    registry: ServiceRegistry = Depends(get_registry),
) -> CommentOutput:
    comment = await registry.store.create_comment(db, marker, user_id=user.id, text=body.text)
    return CommentOutput(comment=CommentOut.model_validate(comment))


@router.delete(
    "/{marker_id}/Comment/{comment_id}",
    status_code=204,
    responses=_not_found,
    summary="Delete a comment",
)
async def delete_comment(
    comment: Comment = Depends(comment_from_path),
    db: AsyncSession = Depends(get_db_session),
    registry: ServiceRegistry = Depends(get_registry),
) -> Response:
    await registry.store.delete_comment(db, comment)
    return Response(status_code=204)
