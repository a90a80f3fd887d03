import logging
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import and_, delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..models import Bookmark, Comment, CommentLike, Like, Profile, Video
from ..schemas.profile import ProfileSummary
from ..schemas.social import CommentCreate
from ..exceptions import BadRequestException, ForbiddenException, NotFoundException

logger = logging.getLogger(__name__)


class SocialService:
    """Likes, bookmarks and comments on videos"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _get_video(self, video_id: int) -> Video:
        video = await self.db.get(Video, video_id)
        if not video:
            raise NotFoundException("Video not found")
        return video

    async def _get_user(self, user_id: int) -> Profile:
        profile = await self.db.get(Profile, user_id)
        if not profile:
            raise NotFoundException("User not found")
        return profile

    @staticmethod
    def _like_target(video: Video) -> Tuple[Any, int]:
        # a business's videos share one like count
        if video.business_id is not None:
            return Like.business_id, video.business_id
        return Like.video_id, video.id

    # Likes

    async def get_like_status(self, video_id: int, user_id: Optional[int] = None) -> Dict[str, Any]:
        column, target = self._like_target(await self._get_video(video_id))

        count_query = select(func.count(Like.id)).where(column == target)
        like_count = (await self.db.execute(count_query)).scalar_one()

        liked = False
        if user_id is not None:
            liked_query = select(Like.id).where(and_(column == target, Like.user_id == user_id))
            liked = (await self.db.execute(liked_query)).first() is not None

        return {"like_count": like_count, "liked": liked}

    async def like_video(self, video_id: int, user_id: int) -> Dict[str, Any]:
        video = await self._get_video(video_id)
        await self._get_user(user_id)

        column, target = self._like_target(video)
        self.db.add(Like(user_id=user_id, **{column.key: target}))
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            logger.debug(f"User {user_id} already likes video {video_id}")

        return await self.get_like_status(video_id, user_id)

    async def unlike_video(self, video_id: int, user_id: int) -> Dict[str, Any]:
        column, target = self._like_target(await self._get_video(video_id))

        stmt = delete(Like).where(and_(column == target, Like.user_id == user_id))
        await self.db.execute(stmt)
        await self.db.commit()

        return await self.get_like_status(video_id, user_id)

    # Bookmarks

    async def bookmark_video(self, video_id: int, user_id: int) -> Dict[str, Any]:
        await self._get_video(video_id)
        await self._get_user(user_id)

        self.db.add(Bookmark(user_id=user_id, video_id=video_id))
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()

        return {"video_id": video_id, "bookmarked": True}

    async def remove_bookmark(self, video_id: int, user_id: int) -> Dict[str, Any]:
        stmt = delete(Bookmark).where(and_(Bookmark.video_id == video_id, Bookmark.user_id == user_id))
        await self.db.execute(stmt)
        await self.db.commit()
        return {"video_id": video_id, "bookmarked": False}

    async def get_bookmarks(self, user_id: int) -> List[Video]:
        """Bookmarked videos, most recently saved first"""
        query = (
            select(Video)
            .join(Bookmark, Bookmark.video_id == Video.id)
            .where(Bookmark.user_id == user_id)
            .order_by(Bookmark.created_at.desc(), Bookmark.id.desc())
        )
        result = await self.db.execute(query)
        return list(result.scalars().all())

    # Comments

    async def create_comment(self, video_id: int, comment_data: CommentCreate) -> Dict[str, Any]:
        """
        Post a comment, or a reply when parent_id is set.

        Replies go one level deep and attach to a top-level comment of the
        same video. Ratings belong on top-level comments only.
        """
        await self._get_video(video_id)
        await self._get_user(comment_data.user_id)

        if comment_data.parent_id is not None:
            parent = await self.db.get(Comment, comment_data.parent_id)
            if not parent or parent.video_id != video_id:
                raise NotFoundException("Comment not found")
            if parent.parent_id is not None:
                raise BadRequestException("Replies can only be made to top-level comments")
            if comment_data.rating is not None:
                raise BadRequestException("Replies can't carry a rating")

        comment = Comment(video_id=video_id, **comment_data.model_dump())
        self.db.add(comment)
        await self.db.commit()

        logger.info(f"Comment {comment.id} posted on video {video_id} by user {comment.user_id}")
        [created] = await self._load_comments(Comment.id == comment.id, viewer_id=comment.user_id)
        return created

    async def get_comments(self, video_id: int, viewer_id: Optional[int] = None) -> List[Dict[str, Any]]:
        """Top-level comments of a video, newest first"""
        await self._get_video(video_id)
        return await self._load_comments(
            and_(Comment.video_id == video_id, Comment.parent_id.is_(None)),
            viewer_id=viewer_id,
            newest_first=True,
        )

    async def get_replies(self, comment_id: int, viewer_id: Optional[int] = None) -> List[Dict[str, Any]]:
        """Replies to a comment in posting order"""
        if not await self.db.get(Comment, comment_id):
            raise NotFoundException("Comment not found")
        return await self._load_comments(Comment.parent_id == comment_id, viewer_id=viewer_id)

    async def delete_comment(self, comment_id: int, user_id: int) -> None:
        """Delete a comment with its replies and likes. Authors only."""
        comment = await self.db.get(Comment, comment_id)
        if not comment:
            raise NotFoundException("Comment not found")
        if comment.user_id != user_id:
            raise ForbiddenException("You can only delete your own comments")

        await self.db.delete(comment)
        await self.db.commit()

    async def like_comment(self, comment_id: int, user_id: int) -> Dict[str, Any]:
        if not await self.db.get(Comment, comment_id):
            raise NotFoundException("Comment not found")
        await self._get_user(user_id)

        self.db.add(CommentLike(comment_id=comment_id, user_id=user_id))
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()

        return await self._comment_like_status(comment_id, user_id)

    async def unlike_comment(self, comment_id: int, user_id: int) -> Dict[str, Any]:
        stmt = delete(CommentLike).where(
            and_(CommentLike.comment_id == comment_id, CommentLike.user_id == user_id)
        )
        await self.db.execute(stmt)
        await self.db.commit()
        return await self._comment_like_status(comment_id, user_id)

    async def _comment_like_status(self, comment_id: int, user_id: int) -> Dict[str, Any]:
        like_counts, liked = await self._like_counts([comment_id], user_id)
        return {"like_count": like_counts.get(comment_id, 0), "liked": comment_id in liked}

    async def _like_counts(self, comment_ids: List[int], viewer_id: Optional[int]):
        query = (
            select(CommentLike.comment_id, func.count(CommentLike.id))
            .where(CommentLike.comment_id.in_(comment_ids))
            .group_by(CommentLike.comment_id)
        )
        like_counts = dict((await self.db.execute(query)).all())

        liked = set()
        if viewer_id is not None:
            query = select(CommentLike.comment_id).where(
                and_(CommentLike.comment_id.in_(comment_ids), CommentLike.user_id == viewer_id)
            )
            liked = set((await self.db.execute(query)).scalars().all())

        return like_counts, liked

    async def _load_comments(self, condition, viewer_id: Optional[int] = None, newest_first: bool = False):
        order = (Comment.created_at.desc(), Comment.id.desc()) if newest_first else (Comment.created_at, Comment.id)
        query = (
            select(Comment)
            .options(selectinload(Comment.user))
            .where(condition)
            .order_by(*order)
            .execution_options(populate_existing=True)
        )
        comments = list((await self.db.execute(query)).scalars().all())
        if not comments:
            return []

        ids = [comment.id for comment in comments]
        like_counts, liked = await self._like_counts(ids, viewer_id)

        reply_query = (
            select(Comment.parent_id, func.count(Comment.id))
            .where(Comment.parent_id.in_(ids))
            .group_by(Comment.parent_id)
        )
        reply_counts = dict((await self.db.execute(reply_query)).all())

        return [
            {
                "id": comment.id,
                "video_id": comment.video_id,
                "user_id": comment.user_id,
                "parent_id": comment.parent_id,
                "content": comment.content,
                "rating": comment.rating,
                "image_url": comment.image_url,
                "created_at": comment.created_at,
                "user": ProfileSummary.model_validate(comment.user) if comment.user else None,
                "like_count": like_counts.get(comment.id, 0),
                "is_liked": comment.id in liked,
                "reply_count": reply_counts.get(comment.id, 0),
            }
            for comment in comments
        ]
