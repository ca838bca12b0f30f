import enum

from sqlalchemy import (
    Column, Integer, String, Float, Boolean, DateTime, ForeignKey, CheckConstraint, Enum as SAEnum
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from database import Base


class PatientType(str, enum.Enum):
    user = "user"
    profile = "profile"


class StartMode(str, enum.Enum):
    immediate = "immediate"
    specific_time = "specific_time"


class Treatment(Base):
    __tablename__ = "treatments"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    name = Column(String(200), nullable=False)
    patient = Column(String(120), nullable=False)
    patient_id = Column(Integer, nullable=True)
    patient_type = Column(SAEnum(PatientType), default=PatientType.user)
    symptoms = Column(String(500), nullable=True)
    start_date = Column(DateTime(timezone=True), nullable=False)
    end_date = Column(DateTime(timezone=True), nullable=False, index=True)
    is_active = Column(Boolean, default=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    user = relationship("User")
    medications = relationship(
        "TreatmentMedication",
        back_populates="treatment",
        cascade="all, delete-orphan",
    )


class TreatmentMedication(Base):
    __tablename__ = "treatment_medications"
    __table_args__ = (
        CheckConstraint("frequency_hours > 0", name="ck_treatment_medication_frequency"),
        CheckConstraint("duration_days > 0", name="ck_treatment_medication_duration"),
    )

    id = Column(Integer, primary_key=True, index=True)
    treatment_id = Column(Integer, ForeignKey("treatments.id", ondelete="CASCADE"), nullable=False, index=True)
    medication_id = Column(Integer, ForeignKey("medications.id"), nullable=False, index=True)
    dosage = Column(Float, nullable=False, default=1)
    frequency_hours = Column(Integer, nullable=False)
    duration_days = Column(Integer, nullable=False)
    start_mode = Column(SAEnum(StartMode), nullable=False, default=StartMode.immediate)
    specific_start_time = Column(DateTime(timezone=True), nullable=True)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    treatment = relationship("Treatment", back_populates="medications")
    medication = relationship("Medication")
