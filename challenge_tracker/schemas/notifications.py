import uuid
from datetime import datetime

from pydantic import BaseModel


class NotificationResponse(BaseModel):
    id: str
    challenge_id: uuid.UUID
    account_alias: str
    symbol: str
    side: str
    volume: float
    profit: float | None = None
    open_price: float
    close_price: float | None = None
    open_time: datetime | None = None
    close_time: datetime | None = None
    is_open: bool
    is_master: bool = False
    timestamp: datetime | None = None


class NotificationListResponse(BaseModel):
    notifications: list[NotificationResponse]
    total: int
    unread_count: int = 0
    include_master: bool = True
    last_poll_at: datetime | None = None


class IncludeMasterRequest(BaseModel):
    enabled: bool


class IncludeMasterResponse(BaseModel):
    include_master: bool
    affected: int = 0


class PollResponse(BaseModel):
    new_notifications: int
    total: int


class PushPermissionResponse(BaseModel):
    supported: bool
    permission: str
