from sqlalchemy import Column, Integer, String, Float, Boolean, DateTime, ForeignKey
from sqlalchemy.sql import func

from database import Base


class Medication(Base):
    __tablename__ = "medications"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    commercial_name = Column(String(200), nullable=False)
    active_ingredient = Column(String(200), nullable=True)
    unit = Column(String(40), nullable=False, default="units")
    initial_quantity = Column(Float, nullable=False, default=0)
    current_quantity = Column(Float, nullable=False, default=0)
    expiration_date = Column(DateTime(timezone=True), nullable=False)
    archived = Column(Boolean, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
