from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional

from ..core.dependencies import get_db
from ..schemas.social import BookmarkStatus, CommentCreate, CommentResponse, LikeStatus, UserAction
from ..schemas.video import VideoResponse
from ..services.social_service import SocialService

router = APIRouter()


async def get_social_service(db: AsyncSession = Depends(get_db)) -> SocialService:
    """Dependency function that provides an instance of SocialService."""
    return SocialService(db)


# Likes

@router.get("/videos/{video_id}/likes", response_model=LikeStatus)
async def get_video_likes(
    video_id: int,
    user_id: Optional[int] = Query(None),
    service: SocialService = Depends(get_social_service)
):
    """
    **Video Likes**

    Like count of the video, shared by all videos of the same business.
    Pass `user_id` to learn whether that user likes it.
    """
    return await service.get_like_status(video_id, user_id)


@router.post("/videos/{video_id}/likes", response_model=LikeStatus)
async def like_video(video_id: int, action: UserAction, service: SocialService = Depends(get_social_service)):
    """Liking twice is a no-op"""
    return await service.like_video(video_id, action.user_id)


@router.delete("/videos/{video_id}/likes/{user_id}", response_model=LikeStatus)
async def unlike_video(video_id: int, user_id: int, service: SocialService = Depends(get_social_service)):
    return await service.unlike_video(video_id, user_id)


# Bookmarks

@router.post("/videos/{video_id}/bookmarks", response_model=BookmarkStatus)
async def bookmark_video(video_id: int, action: UserAction, service: SocialService = Depends(get_social_service)):
    return await service.bookmark_video(video_id, action.user_id)


@router.delete("/videos/{video_id}/bookmarks/{user_id}", response_model=BookmarkStatus)
async def remove_bookmark(video_id: int, user_id: int, service: SocialService = Depends(get_social_service)):
    return await service.remove_bookmark(video_id, user_id)


@router.get("/users/{user_id}/bookmarks", response_model=List[VideoResponse])
async def get_bookmarks(user_id: int, service: SocialService = Depends(get_social_service)):
    """Bookmarked videos of a user, most recently saved first"""
    return await service.get_bookmarks(user_id)


# Comments

@router.get("/videos/{video_id}/comments", response_model=List[CommentResponse])
async def get_comments(
    video_id: int,
    user_id: Optional[int] = Query(None),
    service: SocialService = Depends(get_social_service)
):
    """
    **Video Comments**

    Top-level comments, newest first, with like and reply counts.
    `is_liked` is filled in for the `user_id` given.
    """
    return await service.get_comments(video_id, user_id)


@router.post("/videos/{video_id}/comments", response_model=CommentResponse, status_code=201)
async def create_comment(
    video_id: int,
    comment_data: CommentCreate,
    service: SocialService = Depends(get_social_service)
):
    """
    **Post Comment**

    **Request Body:**
    - **user_id**: author
    - **content**: 1-2000 characters
    - **rating**: optional 1-5, top-level comments only
    - **image_url**: optional
    - **parent_id**: set to reply to a top-level comment
    """
    return await service.create_comment(video_id, comment_data)


@router.get("/comments/{comment_id}/replies", response_model=List[CommentResponse])
async def get_replies(
    comment_id: int,
    user_id: Optional[int] = Query(None),
    service: SocialService = Depends(get_social_service)
):
    return await service.get_replies(comment_id, user_id)


@router.delete("/comments/{comment_id}")
async def delete_comment(
    comment_id: int,
    user_id: int = Query(...),
    service: SocialService = Depends(get_social_service)
):
    """Authors can delete their comments; replies go with them"""
    await service.delete_comment(comment_id, user_id)
    return {"message": f"Comment {comment_id} deleted successfully"}


@router.post("/comments/{comment_id}/likes", response_model=LikeStatus)
async def like_comment(comment_id: int, action: UserAction, service: SocialService = Depends(get_social_service)):
    return await service.like_comment(comment_id, action.user_id)


@router.delete("/comments/{comment_id}/likes/{user_id}", response_model=LikeStatus)
async def unlike_comment(comment_id: int, user_id: int, service: SocialService = Depends(get_social_service)):
    return await service.unlike_comment(comment_id, user_id)
