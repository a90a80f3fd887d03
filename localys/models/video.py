from sqlalchemy import Column, Integer, String, Text, Float, ForeignKey, DateTime
from sqlalchemy.orm import relationship

from ..db.base import Base
from ..models.base import TimeStampMixin


class Video(Base, TimeStampMixin):
    __tablename__ = "videos"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("profiles.id"), nullable=False, index=True)
    business_id = Column(Integer, ForeignKey("businesses.id"), nullable=True, index=True)
    caption = Column(Text, nullable=True)
    video_url = Column(String, nullable=False)
    thumbnail_url = Column(String, nullable=True)
    view_count = Column(Integer, nullable=False, default=0)
    boost_value = Column(Float, nullable=False, default=1.0)
    coins_spent_on_promotion = Column(Integer, nullable=False, default=0)
    last_promoted_at = Column(DateTime, nullable=True)

    # Relationships
    owner = relationship("Profile", back_populates="videos")
    business = relationship("Business", back_populates="videos")
    promotions = relationship("PromotionHistory", back_populates="video", cascade="all, delete-orphan")


class PromotionHistory(Base, TimeStampMixin):
    __tablename__ = "promotion_history"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("profiles.id"), nullable=False, index=True)
    video_id = Column(Integer, ForeignKey("videos.id", ondelete="CASCADE"), nullable=False)
    coins_spent = Column(Integer, nullable=False)
    previous_boost = Column(Float, nullable=False)
    new_boost = Column(Float, nullable=False)

    video = relationship("Video", back_populates="promotions")
