from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession
from forum.database import get_db
from forum.dependencies import EntityId, get_current_user, require_admin
from forum.models import User
from forum.notifications import COMMENT_CREATED, notifier
from forum.schemas import MAX_ID, CommentCreate, CommentLikes, CommentResponse, CommentUpdate, MessageResponse
from forum.services import comment_service

router = APIRouter(prefix="/api/v1/comments", tags=["comments"])

COMMENT_NOT_FOUND = "Comment not found"

# --- open endpoints ---

@router.get("", response_model=list[CommentResponse])
async def list_comments(
    post_id: int | None = Query(None, ge=1, le=MAX_ID, description="Only comments on this post."),
    db: AsyncSession = Depends(get_db),
):
    return await comment_service.get_comments(db, post_id)

@router.get("/{comment_id}", response_model=CommentResponse)
async def get_comment(comment_id: EntityId, db: AsyncSession = Depends(get_db)):
    comment = await comment_service.get_comment(db, comment_id)
    if not comment:
        raise HTTPException(status_code=404, detail=COMMENT_NOT_FOUND)
    return comment

# --- authenticated endpoints ---

@router.post("", response_model=CommentResponse)
async def create_comment(
    data: CommentCreate,
    background_tasks: BackgroundTasks,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    comment = await comment_service.create_comment(db, user.id, data)
    background_tasks.add_task(
        notifier.publish,
        COMMENT_CREATED,
        {"user_id": user.id, "post_id": data.post_id, "comment_id": comment["id"]},
    )
    return comment

@router.put("/{comment_id}", response_model=CommentResponse)
async def update_comment(
    comment_id: EntityId,
    data: CommentUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    comment = await comment_service.update_comment(db, comment_id, user.id, data)
    if not comment:
        raise HTTPException(status_code=404, detail=COMMENT_NOT_FOUND)
    return comment

@router.put("/delete/{comment_id}", response_model=MessageResponse)
async def delete_comment(
    comment_id: EntityId,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    if not await comment_service.soft_delete_comment(db, comment_id):
        raise HTTPException(status_code=404, detail=COMMENT_NOT_FOUND)
    return {"message": "Your comment has already been deleted!"}

@router.patch("/like/{comment_id}", response_model=CommentLikes)
async def toggle_comment_like(
    comment_id: EntityId,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    like_set = await comment_service.toggle_comment_like(db, comment_id, user.id)
    if like_set is None:
        raise HTTPException(status_code=404, detail=COMMENT_NOT_FOUND)
    return {"comment_id": comment_id, "likes": like_set}
