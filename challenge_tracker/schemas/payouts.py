import uuid
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


class PayoutStatus(str, Enum):
    PENDING = "pending"
    RECEIVED = "received"
    REJECTED = "rejected"


class PayoutCreate(BaseModel):
    challenge_id: uuid.UUID
    amount: float = Field(gt=0)
    status: PayoutStatus = PayoutStatus.PENDING
    requested_at: datetime | None = None
    received_at: datetime | None = None
    notes: str | None = None


class PayoutUpdate(BaseModel):
    amount: float | None = Field(default=None, gt=0)
    status: PayoutStatus | None = None
    received_at: datetime | None = None
    notes: str | None = None


class PayoutResponse(BaseModel):
    id: uuid.UUID
    challenge_id: uuid.UUID
    amount: float
    status: str
    requested_at: datetime
    received_at: datetime | None = None
    notes: str | None = None
    created_at: datetime


class PayoutListResponse(BaseModel):
    payouts: list[PayoutResponse]
    total: int


class PayoutTotalsResponse(BaseModel):
    total_received: float = 0
    total_pending: float = 0
