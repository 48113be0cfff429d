from datetime import datetime

from pydantic import BaseModel


class AccountResponse(BaseModel):
    id: str
    name: str
    login: str
    server: str
    platform: str
    balance: float = 0
    equity: float = 0
    margin: float = 0
    free_margin: float = 0
    connected: bool = False
    trades_count: int = 0
    unrealized_pnl: float = 0
    is_master: bool = False
    guessed_prop_firm: str = "Unknown"


class AccountListResponse(BaseModel):
    accounts: list[AccountResponse]
    total: int
    last_refresh_at: datetime | None = None
    last_refresh_error: str | None = None


class TradeResponse(BaseModel):
    id: str
    symbol: str
    side: str
    volume: float
    open_price: float
    close_price: float | None = None
    profit: float = 0
    swap: float = 0
    commission: float = 0
    open_time: datetime | None = None
    close_time: datetime | None = None
    is_open: bool = False


class TradeListResponse(BaseModel):
    trades: list[TradeResponse]
    total: int
