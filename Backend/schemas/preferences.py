from pydantic import BaseModel, Field


class NotificationPreferencesOut(BaseModel):
    user_id: int
    push: bool
    email: bool
    browser: bool
    sound: bool
    days_before_expiration: int
    low_stock_threshold: float

    class Config:
        from_attributes = True


class NotificationPreferencesUpdate(BaseModel):
    push: bool | None = None
    email: bool | None = None
    browser: bool | None = None
    sound: bool | None = None
    days_before_expiration: int | None = Field(default=None, ge=0, le=365)
    low_stock_threshold: float | None = Field(default=None, ge=0)
