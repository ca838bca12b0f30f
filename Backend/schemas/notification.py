from datetime import datetime

from pydantic import BaseModel

from models.notification import NotificationChannel


class NotificationOut(BaseModel):
    id: int
    user_id: int
    treatment_id: int
    treatment_medication_id: int
    dose_index: int
    channel: NotificationChannel
    title: str
    body: str
    dose_time: datetime
    scheduled_for: datetime
    sent: bool
    sent_at: datetime | None
    is_read: bool
    created_at: datetime | None

    class Config:
        from_attributes = True
