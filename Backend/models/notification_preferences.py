from sqlalchemy import Column, Integer, Float, Boolean, DateTime, ForeignKey
from sqlalchemy.sql import func

from config import DEFAULT_DAYS_BEFORE_EXPIRATION, DEFAULT_LOW_STOCK_THRESHOLD
from database import Base


class NotificationPreferences(Base):
    __tablename__ = "notification_preferences"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, unique=True, index=True)
    push = Column(Boolean, default=True)
    email = Column(Boolean, default=False)
    browser = Column(Boolean, default=True)
    sound = Column(Boolean, default=False)
    days_before_expiration = Column(Integer, default=DEFAULT_DAYS_BEFORE_EXPIRATION)
    low_stock_threshold = Column(Float, default=DEFAULT_LOW_STOCK_THRESHOLD)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


def default_preferences(user_id: int) -> NotificationPreferences:
    # Column defaults only apply on flush; set them explicitly for unsaved rows.
    return NotificationPreferences(
        user_id=user_id,
        push=True,
        email=False,
        browser=True,
        sound=False,
        days_before_expiration=DEFAULT_DAYS_BEFORE_EXPIRATION,
        low_stock_threshold=DEFAULT_LOW_STOCK_THRESHOLD,
    )
