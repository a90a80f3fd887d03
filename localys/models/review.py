from sqlalchemy import Column, Integer, String, Text, ForeignKey, Float, UniqueConstraint
from sqlalchemy.orm import relationship

from ..db.base import Base
from .base import TimeStampMixin


class Review(Base, TimeStampMixin):
    __tablename__ = "reviews"

    id = Column(Integer, primary_key=True, index=True)
    business_id = Column(Integer, ForeignKey("businesses.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("profiles.id"), nullable=False)
    rating = Column(Float, nullable=False)  # 1-5 star rating
    title = Column(String(200), nullable=True)
    comment = Column(Text, nullable=True)

    # Relationships
    business = relationship("Business", back_populates="reviews")
    user = relationship("Profile")

    # One review per user per business
    __table_args__ = (
        UniqueConstraint("business_id", "user_id", name="uq_review_business_user"),
    )
