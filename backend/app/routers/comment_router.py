"""
Comment and response routes
---------------------------------
Features:
- Edit / delete a comment or an official response
- Like / unlike a comment or an official response

Endpoints:
- PATCH  /api/comments/{id}        - edit own comment
- DELETE /api/comments/{id}        - delete own comment (admins: any)
- POST   /api/comments/{id}/like   - like / unlike a comment
- PATCH  /api/responses/{id}       - edit own response
- DELETE /api/responses/{id}       - delete own response (admins: any)
- POST   /api/responses/{id}/like  - like / unlike a response
"""

from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ..config.database import get_db
from ..models.feedback import LikeSubject
from ..models.feedback_schema import CommentUpdate, LikeRequest, ResponseUpdate
from ..models.response_schema import ApiResponse
from ..services.access_policy import Actor
from ..services.auth_service import get_actor, get_actor_optional
from ..services.engagement_service import engagement_service
from ..services.feedback_service import feedback_service

router = APIRouter(prefix="/api", tags=["comments"])


@router.patch("/comments/{comment_id}", response_model=ApiResponse)
async def update_comment(
    comment_id: int,
    req: CommentUpdate,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    """Only the comment author may edit, and only while the ticket is open for comments"""
    comment = await feedback_service.update_comment(db, comment_id, actor, req.message)
    return ApiResponse.ok(feedback_service.comment_out(comment).model_dump(by_alias=True, mode="json"))


@router.delete("/comments/{comment_id}", response_model=ApiResponse)
async def delete_comment(
    comment_id: int,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    await feedback_service.delete_comment(db, comment_id, actor)
    return ApiResponse.ok({"commentId": comment_id}, message="Comment deleted")


@router.post("/comments/{comment_id}/like", response_model=ApiResponse)
async def like_comment(
    comment_id: int,
    req: Optional[LikeRequest] = None,
    actor: Optional[Actor] = Depends(get_actor_optional),
    db: AsyncSession = Depends(get_db),
):
    state = await engagement_service.toggle_like(
        db, LikeSubject.COMMENT, comment_id, actor, like=req.like if req else None
    )
    return ApiResponse.ok(state.model_dump(by_alias=True))


@router.post("/responses/{response_id}/like", response_model=ApiResponse)
async def like_response(
    response_id: int,
    req: Optional[LikeRequest] = None,
    actor: Optional[Actor] = Depends(get_actor_optional),
    db: AsyncSession = Depends(get_db),
):
    state = await engagement_service.toggle_like(
        db, LikeSubject.RESPONSE, response_id, actor, like=req.like if req else None
    )
    return ApiResponse.ok(state.model_dump(by_alias=True))


@router.patch("/responses/{response_id}", response_model=ApiResponse)
async def update_response(
    response_id: int,
    req: ResponseUpdate,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    """Only the staff member who posted the response may edit it"""
    response = await feedback_service.update_response(db, response_id, actor, req.message)
    return ApiResponse.ok(feedback_service.response_out(response).model_dump(by_alias=True, mode="json"))


@router.delete("/responses/{response_id}", response_model=ApiResponse)
async def delete_response(
    response_id: int,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    await feedback_service.delete_response(db, response_id, actor)
    return ApiResponse.ok({"responseId": response_id}, message="Response deleted")
