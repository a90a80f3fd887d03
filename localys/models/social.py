from sqlalchemy import Column, Integer, String, Text, ForeignKey, CheckConstraint, UniqueConstraint
from sqlalchemy.orm import relationship

from ..db.base import Base
from ..models.base import TimeStampMixin


class Like(Base, TimeStampMixin):
    """
    A user's like. Videos of a business share the business's likes; videos
    without one are liked directly.
    """
    __tablename__ = "likes"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("profiles.id"), nullable=False, index=True)
    business_id = Column(Integer, ForeignKey("businesses.id", ondelete="CASCADE"), nullable=True, index=True)
    video_id = Column(Integer, ForeignKey("videos.id", ondelete="CASCADE"), nullable=True, index=True)

    __table_args__ = (
        UniqueConstraint("user_id", "business_id", name="uq_like_user_business"),
        UniqueConstraint("user_id", "video_id", name="uq_like_user_video"),
        CheckConstraint(
            "(business_id IS NULL) <> (video_id IS NULL)",
            name="ck_like_single_target",
        ),
    )


class Bookmark(Base, TimeStampMixin):
    __tablename__ = "bookmarks"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("profiles.id"), nullable=False, index=True)
    video_id = Column(Integer, ForeignKey("videos.id", ondelete="CASCADE"), nullable=False)

    video = relationship("Video")

    __table_args__ = (
        UniqueConstraint("user_id", "video_id", name="uq_bookmark_user_video"),
    )


class Comment(Base, TimeStampMixin):
    __tablename__ = "comments"

    id = Column(Integer, primary_key=True, index=True)
    video_id = Column(Integer, ForeignKey("videos.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("profiles.id"), nullable=False)
    parent_id = Column(Integer, ForeignKey("comments.id", ondelete="CASCADE"), nullable=True, index=True)
    content = Column(Text, nullable=False)
    rating = Column(Integer, nullable=True)   # optional 1-5 stars on top-level comments
    image_url = Column(String, nullable=True)

    # Relationships
    user = relationship("Profile")
    replies = relationship("Comment", cascade="all, delete-orphan")
    likes = relationship("CommentLike", cascade="all, delete-orphan")


class CommentLike(Base, TimeStampMixin):
    __tablename__ = "comment_likes"

    id = Column(Integer, primary_key=True, index=True)
    comment_id = Column(Integer, ForeignKey("comments.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("profiles.id"), nullable=False)

    __table_args__ = (
        UniqueConstraint("comment_id", "user_id", name="uq_comment_like_user"),
    )
