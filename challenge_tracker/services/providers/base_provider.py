from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime

UNKNOWN_PLATFORM = "Unknown"


@dataclass
class NormalizedTrade:
    external_trade_id: str = ""
    symbol: str = ""
    side: str = ""
    volume: float = 0
    open_price: float = 0
    close_price: float | None = None
    pnl: float = 0
    swap: float = 0
    commission: float = 0
    open_time: datetime | None = None
    close_time: datetime | None = None
    take_profit: float | None = None
    stop_loss: float | None = None
    metadata: dict = field(default_factory=dict)

    @property
    def is_open(self) -> bool:
        return self.close_time is None


@dataclass
class AccountInfo:
    account_id: str = ""
    account_name: str = ""
    login: str = ""
    server: str = ""
    platform: str = UNKNOWN_PLATFORM
    balance: float = 0
    equity: float = 0
    margin: float = 0
    free_margin: float = 0
    connected: bool = False
    trades_count: int = 0
    unrealized_pnl: float = 0
    is_master: bool = False
    metadata: dict = field(default_factory=dict)


class BaseProvider(ABC):
    provider_name: str = ""

    @abstractmethod
    async def fetch_accounts(self) -> dict[str, AccountInfo]:
        pass

    @abstractmethod
    async def fetch_account(self, account_id: str) -> AccountInfo:
        pass

    @abstractmethod
    async def fetch_account_trades(
        self, account_id: str, from_date: datetime | None = None, to_date: datetime | None = None
    ) -> list[NormalizedTrade]:
        pass

    @abstractmethod
    async def fetch_open_positions(self, account_id: str) -> list[NormalizedTrade]:
        pass

    async def close(self) -> None:
        pass
