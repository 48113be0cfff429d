"""
Shared fixtures for challenge tracker tests.

Providers and push delivery are replaced by in-memory fakes; no test touches
the network or the database.
"""

import uuid
from datetime import datetime, timedelta, timezone

import pytest

from challenge_tracker.models import payout, snapshot  # noqa: F401  registers relationship targets
from challenge_tracker.models.challenge import Challenge
from challenge_tracker.services.providers.base_provider import AccountInfo, BaseProvider, NormalizedTrade
from challenge_tracker.services.tracker_state import SeenTradeSet, TrackerState

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


def make_challenge(account_id: str, **overrides) -> Challenge:
    values = {
        "id": uuid.uuid4(),
        "metacopier_account_id": account_id,
        "alias": f"alias-{account_id}",
        "prop_firm": "FTMO",
        "phase": "Phase 1",
        "platform": "MT5",
        "target_pct": 10,
        "owner": "tester",
        "login_number": "1001",
        "login_server": "FTMO-Demo",
        "cost": 155,
        "daily_dd_pct": None,
        "max_dd_pct": None,
        "is_master": False,
        "started_at": None,
        "created_at": NOW,
    }
    values.update(overrides)
    return Challenge(**values)


def make_account(account_id: str, **overrides) -> AccountInfo:
    values = {
        "account_id": account_id,
        "account_name": f"name-{account_id}",
        "login": "1001",
        "server": "FTMO-Demo",
        "platform": "MT5",
        "balance": 1000.0,
        "equity": 1000.0,
        "connected": True,
    }
    values.update(overrides)
    return AccountInfo(**values)


def make_trade(trade_id: str, pnl: float = 0.0, closed_minutes_ago: int | None = 10, **overrides) -> NormalizedTrade:
    close_time = NOW - timedelta(minutes=closed_minutes_ago) if closed_minutes_ago is not None else None
    values = {
        "external_trade_id": trade_id,
        "symbol": "EURUSD",
        "side": "buy",
        "volume": 0.5,
        "open_price": 1.1,
        "close_price": 1.2 if close_time else None,
        "pnl": pnl,
        "open_time": NOW - timedelta(hours=2),
        "close_time": close_time,
    }
    values.update(overrides)
    return NormalizedTrade(**values)


class FakeProvider(BaseProvider):
    provider_name = "fake"

    def __init__(self):
        self.accounts: dict[str, AccountInfo] = {}
        self.trades: dict[str, list[NormalizedTrade]] = {}
        self.positions: dict[str, list[NormalizedTrade]] = {}
        self.failing_accounts: set[str] = set()
        self.failing_positions: set[str] = set()
        self.trade_calls: list[str] = []
        self.closed = False

    async def fetch_accounts(self) -> dict[str, AccountInfo]:
        return dict(self.accounts)

    async def fetch_account(self, account_id: str) -> AccountInfo:
        return self.accounts[account_id]

    async def fetch_account_trades(self, account_id, from_date=None, to_date=None):
        self.trade_calls.append(account_id)
        if account_id in self.failing_accounts:
            raise RuntimeError(f"boom {account_id}")
        return list(self.trades.get(account_id, []))

    async def fetch_open_positions(self, account_id):
        if account_id in self.failing_accounts or account_id in self.failing_positions:
            raise RuntimeError(f"boom {account_id}")
        return list(self.positions.get(account_id, []))

    async def close(self) -> None:
        self.closed = True


class RecordingPush:
    def __init__(self):
        self.sent: list[tuple[str, str, str | None]] = []

    async def notify(self, title: str, body: str, tag: str | None = None) -> bool:
        self.sent.append((title, body, tag))
        return True


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def push() -> RecordingPush:
    return RecordingPush()


@pytest.fixture
def state() -> TrackerState:
    return TrackerState(seen_trade_keys=SeenTradeSet(2000), include_master=True)
