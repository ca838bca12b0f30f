from datetime import datetime

from pydantic import BaseModel, Field


class PushSubscribeIn(BaseModel):
    token: str = Field(min_length=10, max_length=512)
    platform: str | None = Field(default=None, max_length=20)
    user_agent: str | None = Field(default=None, max_length=300)


class PushUnsubscribeIn(BaseModel):
    token: str = Field(min_length=10, max_length=512)


class PushSubscriptionOut(BaseModel):
    id: int
    platform: str | None
    created_at: datetime | None

    class Config:
        from_attributes = True
