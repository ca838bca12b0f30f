from sqlalchemy import Column, Integer, Float, DateTime, ForeignKey, Index
from sqlalchemy.sql import func

from database import Base


class IntakeEvent(Base):
    """A dose that was actually administered. Never updated after insert."""

    __tablename__ = "intake_events"
    __table_args__ = (Index("ix_intake_events_medication_taken", "medication_id", "taken_at"),)

    id = Column(Integer, primary_key=True, index=True)
    medication_id = Column(Integer, ForeignKey("medications.id"), nullable=False)
    treatment_medication_id = Column(Integer, ForeignKey("treatment_medications.id", ondelete="SET NULL"), nullable=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    profile_id = Column(Integer, ForeignKey("profiles.id"), nullable=True, index=True)
    quantity = Column(Float, nullable=False, default=1)
    taken_at = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
