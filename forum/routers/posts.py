from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from forum.database import get_db
from forum.dependencies import EntityId, PaginationParams, get_current_user, require_admin
from forum.models import User
from forum.notifications import POST_CREATED, notifier
from forum.schemas import (
    LikeStatus,
    MessageResponse,
    MoviePostCreate,
    PaginatedPosts,
    PostCreate,
    PostDetail,
    PostLikes,
    PostUpdate,
)
from forum.services import post_service

router = APIRouter(prefix="/api/v1/posts", tags=["posts"])

POST_NOT_FOUND = "Post not found"

# --- open endpoints ---

@router.get("", response_model=PaginatedPosts)
async def list_posts(
    pagination: PaginationParams = Depends(),
    db: AsyncSession = Depends(get_db),
):
    return await post_service.get_posts(
        db, pagination.page_number, pagination.n_per_page, pagination.sort_by, pagination.author_id
    )

@router.get("/{post_id}", response_model=PostDetail)
async def get_post(post_id: EntityId, db: AsyncSession = Depends(get_db)):
    post = await post_service.get_post_and_increment_view(db, post_id)
    if not post:
        raise HTTPException(status_code=404, detail=POST_NOT_FOUND)
    return post

# --- authenticated endpoints ---

@router.post("", response_model=PostDetail)
async def create_post(
    data: PostCreate,
    background_tasks: BackgroundTasks,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    post = await post_service.create_post(db, user.id, data)
    background_tasks.add_task(notifier.publish, POST_CREATED, {"user_id": user.id, "post_id": post["id"]})
    return post

@router.post("/movie", response_model=PostDetail)
async def create_movie_post(
    data: MoviePostCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await post_service.create_movie_post(db, data.resource_id)

@router.put("/{post_id}", response_model=PostDetail)
async def update_post(
    post_id: EntityId,
    data: PostUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    post = await post_service.update_post(db, post_id, user.id, data)
    if not post:
        raise HTTPException(status_code=404, detail=POST_NOT_FOUND)
    return post

@router.patch("/{post_id}", response_model=PostDetail)
async def patch_post(
    post_id: EntityId,
    data: PostUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await update_post(post_id, data, user, db)

@router.patch("/delete/{post_id}", response_model=MessageResponse)
async def delete_post(
    post_id: EntityId,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    if not await post_service.soft_delete_post(db, post_id):
        raise HTTPException(status_code=404, detail=POST_NOT_FOUND)
    return {"message": "Successfully deleted"}

@router.patch("/like/{post_id}", response_model=MessageResponse)
async def like_post(
    post_id: EntityId,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    if not await post_service.like_post(db, post_id, user.id):
        raise HTTPException(status_code=404, detail=POST_NOT_FOUND)
    return {"message": "Liked"}

@router.patch("/unlike/{post_id}", response_model=MessageResponse)
async def unlike_post(
    post_id: EntityId,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    if not await post_service.unlike_post(db, post_id, user.id):
        raise HTTPException(status_code=404, detail=POST_NOT_FOUND)
    return {"message": "Unliked"}

@router.get("/{post_id}/likes", response_model=PostLikes)
async def list_likes(
    post_id: EntityId,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    like_set = await post_service.get_post_likes(db, post_id)
    if like_set is None:
        raise HTTPException(status_code=404, detail=POST_NOT_FOUND)
    return {"post_id": post_id, "likes": like_set}

@router.get("/{post_id}/likes/{user_id}", response_model=LikeStatus)
async def check_like(
    post_id: EntityId,
    user_id: EntityId,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    liked = await post_service.check_like(db, post_id, user_id)
    if liked is None:
        raise HTTPException(status_code=404, detail=POST_NOT_FOUND)
    return {"post_id": post_id, "user_id": user_id, "liked": liked}
