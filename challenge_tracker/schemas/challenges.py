import uuid
from datetime import datetime
from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field


class ChallengePhase(str, Enum):
    PHASE_1 = "Phase 1"
    PHASE_2 = "Phase 2"
    FUNDED = "Funded"
    MASTER = "Master"


class ChallengeCreate(BaseModel):
    metacopier_account_id: str = Field(min_length=1, max_length=255)
    alias: str = Field(default="", max_length=255)
    prop_firm: str = Field(min_length=1, max_length=100)
    phase: ChallengePhase
    platform: str = ""
    target_pct: float = Field(default=0, ge=0)
    owner: str = ""
    login_number: str = ""
    login_server: str = ""
    cost: float = Field(default=0, ge=0)
    daily_dd_pct: float | None = Field(default=None, ge=0)
    max_dd_pct: float | None = Field(default=None, ge=0)
    is_master: bool = False
    started_at: datetime | None = None


class ChallengeUpdate(BaseModel):
    alias: str | None = Field(default=None, max_length=255)
    prop_firm: str | None = Field(default=None, min_length=1, max_length=100)
    phase: ChallengePhase | None = None
    target_pct: float | None = Field(default=None, ge=0)
    owner: str | None = None
    cost: float | None = Field(default=None, ge=0)
    daily_dd_pct: float | None = Field(default=None, ge=0)
    max_dd_pct: float | None = Field(default=None, ge=0)
    is_master: bool | None = None
    started_at: datetime | None = None


class ChallengeResponse(BaseModel):
    id: uuid.UUID
    metacopier_account_id: str
    alias: str
    prop_firm: str
    phase: str
    platform: str
    target_pct: float
    owner: str
    login_number: str
    login_server: str
    cost: float = 0
    daily_dd_pct: float | None = None
    max_dd_pct: float | None = None
    is_master: bool = False
    started_at: datetime | None = None
    created_at: datetime


class StreakData(BaseModel):
    direction: Literal["W", "L"]
    count: int


class OpenPositionRow(BaseModel):
    symbol: str
    side: str
    volume: float
    profit: float
    tp: float | None = None
    sl: float | None = None


class ChallengeRow(BaseModel):
    id: uuid.UUID
    metacopier_account_id: str
    alias: str
    owner: str
    prop_firm: str
    phase: str
    platform: str
    balance: float = 0
    equity: float = 0
    starting_balance: float = 0
    target_pct: float = 0
    progress: float = 0
    pnl: float = 0
    open_pnl: float = 0
    daily_pnl: float = 0
    open_positions: list[OpenPositionRow] = Field(default_factory=list)
    daily_dd_pct: float = 0
    max_dd_pct: float = 0
    current_dd: float = 0
    state: Literal["Connected", "Disconnected"] = "Disconnected"
    challenge_status: Literal["Active", "Passed", "Failed"] = "Active"
    is_master: bool = False
    cost: float = 0
    trades_count: int = 0
    last_trade: str | None = None
    login_number: str = ""
    login_server: str = ""
    started_at: str | None = None
    streak: StreakData | None = None
    created_at: str | None = None


class ChallengeListResponse(BaseModel):
    challenges: list[ChallengeRow]
    total: int
    last_refresh_at: datetime | None = None


class SnapshotCaptureResponse(BaseModel):
    message: str
    snapshots_saved: int = 0
