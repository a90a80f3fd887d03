from sqlalchemy import Column, Integer, String, Float, ForeignKey, JSON, Enum
from sqlalchemy.orm import relationship

from ..db.base import Base
from ..enums import BusinessCategory
from ..models.base import TimeStampMixin


class Business(Base, TimeStampMixin):
    __tablename__ = "businesses"

    id = Column(Integer, primary_key=True, index=True)
    owner_id = Column(Integer, ForeignKey("profiles.id"), nullable=False, unique=True)
    business_name = Column(String, nullable=False, index=True)
    category = Column(Enum(BusinessCategory), nullable=True)
    business_type = Column(String, nullable=True)   # e.g. restaurant, cafe, salon
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    profile_picture_url = Column(String, nullable=True)
    business_hours = Column(JSON, nullable=True)    # {"monday": {"open": "09:00", "close": "17:00", "closed": false}}

    # Relationships
    owner = relationship("Profile", back_populates="business")
    locations = relationship(
        "BusinessLocation",
        back_populates="business",
        cascade="all, delete-orphan",
        order_by="BusinessLocation.created_at",
    )
    menu_items = relationship("MenuItem", back_populates="business", cascade="all, delete-orphan")
    reviews = relationship("Review", back_populates="business", cascade="all, delete-orphan")
    videos = relationship("Video", back_populates="business")

    def __repr__(self):
        return f"<Business(id={self.id}, owner_id={self.owner_id}, category={self.category})>"


class BusinessLocation(Base, TimeStampMixin):
    __tablename__ = "business_locations"

    id = Column(Integer, primary_key=True, index=True)
    business_id = Column(Integer, ForeignKey("businesses.id", ondelete="CASCADE"), nullable=False, index=True)
    label = Column(String(100), nullable=False)
    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)

    business = relationship("Business", back_populates="locations")
