import asyncio
import logging
from collections.abc import Callable
from contextlib import AbstractAsyncContextManager
from datetime import datetime, timezone

from sqlalchemy.ext.asyncio import AsyncSession

from challenge_tracker.services import challenge_service
from challenge_tracker.services.providers.base_provider import AccountInfo, BaseProvider, NormalizedTrade
from challenge_tracker.services.tracker_state import TrackerState

logger = logging.getLogger(__name__)


class AccountRefreshService:
    def __init__(
        self,
        state: TrackerState,
        provider: BaseProvider,
        session_factory: Callable[[], AbstractAsyncContextManager[AsyncSession]] | None = None,
    ):
        self.state = state
        self.provider = provider
        self.session_factory = session_factory

    async def _fetch_positions(self, account: AccountInfo) -> list[NormalizedTrade]:
        try:
            return await self.provider.fetch_open_positions(account.account_id)
        except Exception as e:
            logger.warning(f"[REFRESH] Open positions failed for {account.account_id}: {e}")
            return []

    async def refresh_accounts(self) -> dict[str, AccountInfo]:
        try:
            accounts = await self.provider.fetch_accounts()
        except Exception as e:
            self.state.last_refresh_error = str(e)[:500]
            logger.error(f"[REFRESH] Failed to fetch accounts: {e}")
            raise

        connected = [a for a in accounts.values() if a.connected]
        positions = await asyncio.gather(*(self._fetch_positions(a) for a in connected))
        open_positions = {a.account_id: p for a, p in zip(connected, positions)}

        self.state.replace_accounts(accounts, open_positions, datetime.now(timezone.utc))
        return accounts

    async def reload_challenges(self) -> None:
        if self.session_factory is None:
            return
        async with self.session_factory() as db:
            challenges = await challenge_service.list_challenges(db)
            starting_balances = await challenge_service.get_earliest_snapshot_balances(db)
        self.state.replace_challenges(challenges, starting_balances)

    async def refresh(self) -> None:
        await self.reload_challenges()
        accounts = await self.refresh_accounts()
        logger.info(
            "[REFRESH] accounts=%d challenges=%d",
            len(accounts), len(self.state.challenges),
        )
