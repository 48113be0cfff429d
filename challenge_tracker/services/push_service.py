import logging
from datetime import datetime, timezone

import aiohttp

from challenge_tracker.core.config import settings

logger = logging.getLogger(__name__)

PERMISSION_DEFAULT = "default"
PERMISSION_GRANTED = "granted"
PERMISSION_DENIED = "denied"


class PushNotifier:
    """Delivers alerts to a push webhook.

    Without a webhook URL the notifier is unsupported and every alert is a
    no-op. Delivery failures are logged and swallowed so a broken endpoint
    never interrupts a polling cycle.
    """

    def __init__(self, webhook_url: str | None = None, icon_url: str | None = None, timeout_seconds: int = 10):
        self.webhook_url = webhook_url if webhook_url is not None else settings.PUSH_WEBHOOK_URL
        self.icon_url = icon_url if icon_url is not None else settings.PUSH_ICON_URL
        self.timeout_seconds = timeout_seconds
        self.permission = PERMISSION_DEFAULT if self.supported else PERMISSION_DENIED
        self.session: aiohttp.ClientSession | None = None

    @property
    def supported(self) -> bool:
        return bool(self.webhook_url)

    async def request_permission(self) -> bool:
        if not self.supported:
            return False
        self.permission = PERMISSION_GRANTED
        logger.info("[PUSH] Permission granted, alerts enabled")
        return True

    def revoke_permission(self) -> None:
        self.permission = PERMISSION_DENIED
        logger.info("[PUSH] Permission revoked, alerts disabled")

    async def _post(self, payload: dict) -> None:
        if self.session is None or self.session.closed:
            self.session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout_seconds)
            )
        async with self.session.post(self.webhook_url, json=payload) as response:
            if response.status >= 400:
                raise aiohttp.ClientResponseError(
                    response.request_info, response.history,
                    status=response.status, message=response.reason or "",
                )

    async def notify(self, title: str, body: str, tag: str | None = None) -> bool:
        if not self.supported or self.permission != PERMISSION_GRANTED:
            return False
        payload = {
            "title": title,
            "body": body,
            "icon": self.icon_url,
            "badge": self.icon_url,
            "tag": tag or f"trade-{int(datetime.now(timezone.utc).timestamp() * 1000)}",
        }
        try:
            await self._post(payload)
        except Exception as e:
            logger.warning(f"[PUSH] Push notification failed: {e}")
            return False
        return True

    async def close(self) -> None:
        if self.session and not self.session.closed:
            await self.session.close()
        self.session = None
