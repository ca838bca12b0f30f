from sqlalchemy import (
    Column, Integer, String, Boolean, DateTime, ForeignKey, UniqueConstraint, Enum as SAEnum
)
from sqlalchemy.sql import func
import enum

from database import Base


class NotificationChannel(str, enum.Enum):
    push = "push"
    email = "email"
    browser = "browser"
    sound = "sound"


class Notification(Base):
    __tablename__ = "notifications"
    # One reminder per dose occurrence and channel, even across overlapping runs.
    __table_args__ = (
        UniqueConstraint(
            "treatment_medication_id", "dose_index", "channel",
            name="uq_notification_dose_channel",
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    treatment_id = Column(Integer, ForeignKey("treatments.id", ondelete="CASCADE"), nullable=False, index=True)
    treatment_medication_id = Column(
        Integer, ForeignKey("treatment_medications.id", ondelete="CASCADE"), nullable=False
    )
    dose_index = Column(Integer, nullable=False)
    channel = Column(SAEnum(NotificationChannel), nullable=False)
    dose_time = Column(DateTime(timezone=True), nullable=False)
    scheduled_for = Column(DateTime(timezone=True), nullable=False, index=True)
    title = Column(String(200), nullable=False)
    body = Column(String(500), nullable=False)
    sent = Column(Boolean, default=False)
    sent_at = Column(DateTime(timezone=True), nullable=True)
    attempts = Column(Integer, default=0)
    is_read = Column(Boolean, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
