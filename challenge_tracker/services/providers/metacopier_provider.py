import asyncio
import json
import logging
from datetime import datetime, timedelta, timezone
from typing import Any

import aiohttp

from challenge_tracker.core.config import settings
from challenge_tracker.core.exceptions import MetaCopierApiError
from challenge_tracker.services.providers.base_provider import (
    UNKNOWN_PLATFORM,
    AccountInfo,
    BaseProvider,
    NormalizedTrade,
)

logger = logging.getLogger(__name__)


def extract_platform(raw: Any) -> str:
    """Return a matchable platform string from whatever shape the API sends.

    Strings pass through untouched. Objects and lists are serialized so that
    ``normalize_platform`` can still find tokens such as ``meta_trader_5``.
    """
    if raw is None or raw == "" or raw is False:
        return UNKNOWN_PLATFORM
    if isinstance(raw, str):
        return raw
    try:
        serialized = json.dumps(raw, default=str)
    except (TypeError, ValueError):
        return UNKNOWN_PLATFORM
    if serialized and serialized not in ("{}", "[]", "null"):
        return serialized
    return UNKNOWN_PLATFORM


def normalize_platform(platform: str) -> str:
    p = (platform or "").lower()
    if "mt5" in p or "metatrader 5" in p or "meta_trader_5" in p:
        return "MT5"
    if "mt4" in p or "metatrader 4" in p or "meta_trader_4" in p:
        return "MT4"
    if "ctrader" in p or "c_trader" in p:
        return "cTrader"
    return platform or UNKNOWN_PLATFORM


def _to_float(value: Any, default: float = 0.0) -> float:
    if value is None or isinstance(value, bool):
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _to_optional_float(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _first(payload: dict, *keys: str) -> Any:
    for key in keys:
        value = payload.get(key)
        if value is not None:
            return value
    return None


def _parse_dt(value: Any) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        seconds = value / 1000 if value > 1e11 else value
        return datetime.fromtimestamp(seconds, tz=timezone.utc)
    if not isinstance(value, str):
        return None
    raw = value.strip()
    if raw.endswith("Z"):
        raw = raw[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(raw)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _normalize_side(raw: Any) -> str:
    lower = str(raw or "").strip().lower()
    if "buy" in lower or lower in ("long", "b"):
        return "buy"
    if "sell" in lower or lower in ("short", "s"):
        return "sell"
    return lower


def _account_name(acc: dict) -> str:
    return str(acc.get("alias") or acc.get("name") or acc.get("number") or acc.get("id") or "")


def _is_master(acc: dict) -> bool:
    flag = _first(acc, "master", "isMaster", "is_master")
    if isinstance(flag, str):
        return flag.strip().lower() in ("true", "1", "yes")
    return bool(flag)


def normalize_account(acc: dict, info: dict | None) -> AccountInfo:
    """Build an ``AccountInfo`` from the raw account and information payloads.

    ``info=None`` means the information endpoint failed; the account is then
    reported disconnected with zeroed figures.
    """
    account = AccountInfo(
        account_id=str(acc.get("id") or ""),
        account_name=_account_name(acc),
        login=str(acc.get("number") if acc.get("number") is not None else ""),
        server=str(acc.get("server") if acc.get("server") is not None else ""),
        platform=normalize_platform(extract_platform(_first(acc, "type", "platform"))),
        is_master=_is_master(acc),
    )
    if info is None:
        return account

    account.balance = _to_float(info.get("balance"))
    account.equity = _to_float(info.get("equity"))
    account.margin = _to_float(info.get("usedMargin"))
    account.free_margin = _to_float(info.get("freeMargin"))
    account.connected = bool(info.get("connected"))
    account.trades_count = int(_to_float(info.get("openPositionsCount")))
    account.unrealized_pnl = _to_float(info.get("unrealizedProfit"))
    return account


def normalize_position(p: dict) -> NormalizedTrade:
    trade_id = _first(p, "id", "positionId", "ticket")
    return NormalizedTrade(
        external_trade_id=str(trade_id) if trade_id is not None else "",
        symbol=str(p.get("symbol") or ""),
        side=_normalize_side(_first(p, "type", "side", "dealType")),
        volume=_to_float(_first(p, "volume", "lots")),
        open_price=_to_float(_first(p, "openPrice", "entryPrice")),
        close_price=_to_optional_float(_first(p, "closePrice", "exitPrice")),
        pnl=_to_float(_first(p, "profit", "pnl")),
        swap=_to_float(p.get("swap")),
        commission=_to_float(p.get("commission")),
        open_time=_parse_dt(_first(p, "openTime", "openedAt")),
        close_time=_parse_dt(_first(p, "closeTime", "closedAt")),
        take_profit=_to_optional_float(_first(p, "takeProfit", "tp")) or None,
        stop_loss=_to_optional_float(_first(p, "stopLoss", "sl")) or None,
        metadata={"source": "metacopier"},
    )


class MetaCopierProvider(BaseProvider):
    provider_name = "metacopier"

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        timeout_seconds: int | None = None,
    ):
        self.api_key = api_key if api_key is not None else settings.METACOPIER_API_KEY
        self.base_url = (base_url or settings.metacopier_base_url).rstrip("/")
        self.timeout_seconds = timeout_seconds or settings.METACOPIER_TIMEOUT_SECONDS
        self.session: aiohttp.ClientSession | None = None

    def _get_session(self) -> aiohttp.ClientSession:
        if self.session is None or self.session.closed:
            self.session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout_seconds),
                headers={
                    "X-API-KEY": self.api_key,
                    "Content-Type": "application/json",
                },
            )
        return self.session

    async def _get(self, endpoint: str, params: dict[str, str] | None = None) -> Any:
        url = f"{self.base_url}{endpoint}"
        session = self._get_session()
        async with session.get(url, params=params) as response:
            if response.status >= 400:
                raise MetaCopierApiError(response.status, response.reason or "")
            return await response.json(content_type=None)

    async def _fetch_information(self, acc: dict) -> AccountInfo:
        try:
            info = await self._get(f"/accounts/{acc.get('id')}/information")
        except Exception as e:
            logger.warning(f"MetaCopier information failed for account {acc.get('id')}: {e}")
            return normalize_account(acc, None)
        return normalize_account(acc, info if isinstance(info, dict) else {})

    async def fetch_accounts(self) -> dict[str, AccountInfo]:
        raw = await self._get("/accounts")
        raw_accounts = [acc for acc in (raw if isinstance(raw, list) else []) if isinstance(acc, dict)]

        results = await asyncio.gather(*(self._fetch_information(acc) for acc in raw_accounts))

        accounts = {account.account_id: account for account in results}
        logger.info(
            "MetaCopier fetch_accounts: total=%d connected=%d",
            len(accounts), sum(1 for a in accounts.values() if a.connected),
        )
        return accounts

    async def fetch_account(self, account_id: str) -> AccountInfo:
        acc, info = await asyncio.gather(
            self._get(f"/accounts/{account_id}"),
            self._get(f"/accounts/{account_id}/information"),
        )
        return normalize_account(acc or {}, info or {})

    async def fetch_account_trades(
        self, account_id: str, from_date: datetime | None = None, to_date: datetime | None = None
    ) -> list[NormalizedTrade]:
        to_date = to_date or datetime.now(timezone.utc)
        from_date = from_date or to_date - timedelta(days=settings.TRADE_HISTORY_DAYS)

        data = await self._get(
            f"/accounts/{account_id}/history/positions",
            {"startDate": from_date.isoformat(), "endDate": to_date.isoformat()},
        )
        positions = data if isinstance(data, list) else []
        return [normalize_position(p) for p in positions if isinstance(p, dict)]

    async def fetch_open_positions(self, account_id: str) -> list[NormalizedTrade]:
        data = await self._get(f"/accounts/{account_id}/positions")
        positions = data if isinstance(data, list) else []
        trades = [normalize_position(p) for p in positions if isinstance(p, dict)]
        for trade in trades:
            trade.close_time = None
        return trades

    async def close(self) -> None:
        if self.session and not self.session.closed:
            await self.session.close()
        self.session = None
