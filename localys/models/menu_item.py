from sqlalchemy import Column, Integer, String, Text, Boolean, Float, ForeignKey
from sqlalchemy.orm import relationship

from ..db.base import Base
from ..models.base import TimeStampMixin


class MenuItem(Base, TimeStampMixin):
    __tablename__ = "menu_items"

    id = Column(Integer, primary_key=True, index=True)
    business_id = Column(Integer, ForeignKey("businesses.id", ondelete="CASCADE"), nullable=False, index=True)
    item_name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Float, nullable=False)
    category = Column(String, nullable=True)     # e.g. mains, drinks
    image_url = Column(String, nullable=True)
    is_available = Column(Boolean, default=True, nullable=False)

    business = relationship("Business", back_populates="menu_items")
