import asyncio
import logging
from datetime import datetime, timedelta, timezone

from challenge_tracker.core.config import settings
from challenge_tracker.models.challenge import Challenge
from challenge_tracker.services.providers.base_provider import BaseProvider, NormalizedTrade
from challenge_tracker.services.push_service import PushNotifier
from challenge_tracker.services.tracker_state import TrackerState, TradeNotification

logger = logging.getLogger(__name__)

UNREAD_WINDOW = timedelta(hours=1)
OPEN_SUFFIX = "-open"


def trade_key(account_id: str, trade_id: str, is_open: bool = False) -> str:
    """Dedup key of a trade; an open position and its later close are separate events."""
    key = f"{account_id}-{trade_id}"
    return key + OPEN_SUFFIX if is_open else key


class NotificationService:
    def __init__(
        self,
        state: TrackerState,
        provider: BaseProvider,
        push: PushNotifier | None = None,
        limit: int | None = None,
    ):
        self.state = state
        self.provider = provider
        self.push = push
        self.limit = limit or settings.NOTIFICATION_LIMIT

    async def _fetch_trades(
        self, challenge: Challenge
    ) -> tuple[list[NormalizedTrade], list[NormalizedTrade]] | None:
        """Closed history and open positions of one account, or None when the history fetch fails."""
        account_id = challenge.metacopier_account_id
        history, positions = await asyncio.gather(
            self.provider.fetch_account_trades(account_id),
            self.provider.fetch_open_positions(account_id),
            return_exceptions=True,
        )
        if isinstance(history, Exception):
            logger.error(f"[NOTIFY] Failed to fetch trades for {account_id}: {history}")
            return None
        if isinstance(positions, Exception):
            logger.warning(f"[NOTIFY] Failed to fetch open positions for {account_id}: {positions}")
            positions = []
        return history, positions

    def _alias(self, challenge: Challenge) -> str:
        account = self.state.accounts.get(challenge.metacopier_account_id)
        return (
            challenge.alias
            or (account.account_name if account else "")
            or challenge.login_number
            or challenge.metacopier_account_id
        )

    def _tracked_challenges(self) -> list[Challenge]:
        if self.state.include_master:
            return list(self.state.challenges)
        return [c for c in self.state.challenges if not self.state.is_master(c)]

    async def poll_for_new_trades(self) -> int:
        tracked = self._tracked_challenges()
        results = await asyncio.gather(*(self._fetch_trades(c) for c in tracked))

        notifications = list(self.state.notifications)
        trades_cache = dict(self.state.trades)
        new_keys: list[str] = []
        pending_keys: set[str] = set()
        alerts: list[TradeNotification] = []

        for challenge, result in zip(tracked, results):
            if result is None:
                continue
            history, positions = result
            account_id = challenge.metacopier_account_id
            trades_cache[account_id] = history
            is_master = self.state.is_master(challenge)
            # include_master may have been switched off while fetching
            if is_master and not self.state.include_master:
                continue
            alias = self._alias(challenge)

            for trade in [*positions, *history]:
                is_open = trade.close_time is None
                key = trade_key(account_id, trade.external_trade_id, is_open)
                if key in self.state.seen_trade_keys or key in pending_keys:
                    continue
                pending_keys.add(key)
                new_keys.append(key)

                notification = TradeNotification(
                    id=key,
                    challenge_id=challenge.id,
                    account_id=account_id,
                    account_alias=alias,
                    symbol=trade.symbol,
                    side=trade.side,
                    volume=trade.volume,
                    profit=trade.pnl,
                    open_price=trade.open_price,
                    close_price=trade.close_price,
                    open_time=trade.open_time,
                    close_time=trade.close_time,
                    is_open=is_open,
                    is_master=is_master,
                    timestamp=trade.close_time or trade.open_time,
                )
                notifications.insert(0, notification)
                if is_master:
                    alerts.append(notification)

        if len(notifications) > self.limit:
            notifications = notifications[: self.limit]

        for key in new_keys:
            self.state.seen_trade_keys.add(key)
        self.state.notifications = notifications
        self.state.trades = trades_cache
        self.state.last_poll_at = datetime.now(timezone.utc)

        if new_keys:
            logger.info(
                "[NOTIFY] Poll complete: challenges=%d new=%d total=%d",
                len(tracked), len(new_keys), len(notifications),
            )

        for notification in alerts:
            await self._push_alert(notification)

        return len(new_keys)

    def count_followers(self, symbol: str, side: str) -> int:
        """Connected non-master challenges holding an open position on the same symbol and side."""
        count = 0
        for challenge in self.state.challenges:
            if self.state.is_master(challenge):
                continue
            account = self.state.accounts.get(challenge.metacopier_account_id)
            if not account or not account.connected:
                continue
            positions = self.state.open_positions.get(challenge.metacopier_account_id, [])
            if any(p.symbol == symbol and p.side == side for p in positions):
                count += 1
        return count

    async def _push_alert(self, notification: TradeNotification) -> None:
        if self.push is None:
            return

        side = notification.side.upper()
        if notification.is_open:
            followers = self.count_followers(notification.symbol, notification.side)
            title = "Trade Opened"
            body = (
                f"{notification.account_alias}: {side} {notification.volume:g} {notification.symbol}"
                f" - copied on {followers} account{'s' if followers != 1 else ''}"
            )
        else:
            profit = notification.profit or 0
            if profit > 0:
                title = "Take Profit hit"
            elif profit < 0:
                title = "Stop Loss hit"
            else:
                title = "Trade Closed"
            body = f"{notification.account_alias}: {side} {notification.symbol} closed at {profit:+.2f}"

        await self.push.notify(title, body, tag=notification.id)

    async def set_include_master(self, enabled: bool) -> int:
        """Toggle master-account notifications.

        Turning it off drops master notifications and forgets their keys so
        they can reappear later. Turning it on polls immediately and returns
        the number of new notifications.
        """
        self.state.include_master = enabled
        if enabled:
            logger.info("[NOTIFY] Master notifications enabled")
            return await self.poll_for_new_trades()

        removed = [n for n in self.state.notifications if n.is_master]
        self.state.notifications = [n for n in self.state.notifications if not n.is_master]
        for notification in removed:
            self.state.seen_trade_keys.discard(notification.id)
        logger.info(f"[NOTIFY] Master notifications disabled, removed {len(removed)}")
        return len(removed)

    def unread_count(self, now: datetime | None = None) -> int:
        cutoff = (now or datetime.now(timezone.utc)) - UNREAD_WINDOW
        return sum(
            1 for n in self.state.notifications
            if n.timestamp is not None and n.timestamp > cutoff
        )
