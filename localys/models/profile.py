from sqlalchemy import Column, Integer, String, Text
from sqlalchemy.orm import relationship

from ..models.base import TimeStampMixin, Base


class Profile(Base, TimeStampMixin):
    __tablename__ = "profiles"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    username = Column(String, unique=True, index=True, nullable=False)
    full_name = Column(String, nullable=False)
    bio = Column(Text, nullable=True)
    profile_picture_url = Column(String, nullable=True)
    coin_balance = Column(Integer, nullable=False, default=0)

    # Relationships
    business = relationship("Business", back_populates="owner", uselist=False)
    videos = relationship("Video", back_populates="owner")
    coupons = relationship("UserCoupon", back_populates="user")
