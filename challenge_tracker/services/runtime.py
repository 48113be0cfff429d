import logging
from collections.abc import Callable
from contextlib import AbstractAsyncContextManager
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from challenge_tracker.core.config import settings
from challenge_tracker.services.notification_service import NotificationService
from challenge_tracker.services.providers.base_provider import BaseProvider
from challenge_tracker.services.push_service import PushNotifier
from challenge_tracker.services.refresh_service import AccountRefreshService
from challenge_tracker.services.scheduler import PeriodicTask
from challenge_tracker.services.tracker_state import TrackerState

logger = logging.getLogger(__name__)


@dataclass
class TrackerRuntime:
    state: TrackerState
    provider: BaseProvider
    push: PushNotifier
    refresh_service: AccountRefreshService
    notification_service: NotificationService
    account_timer: PeriodicTask
    notification_timer: PeriodicTask

    def start_polling(self) -> None:
        self.account_timer.start()
        self.notification_timer.start()

    def stop_polling(self) -> None:
        self.account_timer.stop()
        self.notification_timer.stop()

    async def shutdown(self) -> None:
        self.stop_polling()
        await self.account_timer.wait_idle()
        await self.notification_timer.wait_idle()
        await self.provider.close()
        await self.push.close()
        self.state.reset()


def create_runtime(
    provider: BaseProvider,
    session_factory: Callable[[], AbstractAsyncContextManager[AsyncSession]] | None = None,
    push: PushNotifier | None = None,
) -> TrackerRuntime:
    state = TrackerState()
    push = push or PushNotifier()
    refresh_service = AccountRefreshService(state, provider, session_factory)
    notification_service = NotificationService(state, provider, push)
    return TrackerRuntime(
        state=state,
        provider=provider,
        push=push,
        refresh_service=refresh_service,
        notification_service=notification_service,
        account_timer=PeriodicTask(
            "account-refresh", refresh_service.refresh, settings.ACCOUNT_REFRESH_INTERVAL_SECONDS
        ),
        notification_timer=PeriodicTask(
            "trade-notifications",
            notification_service.poll_for_new_trades,
            settings.NOTIFICATION_POLL_INTERVAL_SECONDS,
        ),
    )
