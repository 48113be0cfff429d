import logging
import uuid
from collections import OrderedDict
from collections.abc import Iterator
from dataclasses import dataclass, field
from datetime import datetime

from challenge_tracker.core.config import settings
from challenge_tracker.models.challenge import Challenge
from challenge_tracker.services.providers.base_provider import AccountInfo, NormalizedTrade

logger = logging.getLogger(__name__)


@dataclass
class TradeNotification:
    id: str
    challenge_id: uuid.UUID
    account_id: str
    account_alias: str
    symbol: str
    side: str
    volume: float
    profit: float | None
    open_price: float
    close_price: float | None
    open_time: datetime | None
    close_time: datetime | None
    is_open: bool
    is_master: bool
    timestamp: datetime | None


class SeenTradeSet:
    """Insertion-ordered set of trade keys that evicts the oldest key when full."""

    def __init__(self, capacity: int):
        self.capacity = max(capacity, 1)
        self._keys: OrderedDict[str, None] = OrderedDict()

    def __contains__(self, key: object) -> bool:
        return key in self._keys

    def __len__(self) -> int:
        return len(self._keys)

    def __iter__(self) -> Iterator[str]:
        return iter(self._keys)

    def add(self, key: str) -> None:
        if key in self._keys:
            self._keys.move_to_end(key)
            return
        self._keys[key] = None
        while len(self._keys) > self.capacity:
            self._keys.popitem(last=False)

    def discard(self, key: str) -> None:
        self._keys.pop(key, None)

    def clear(self) -> None:
        self._keys.clear()


@dataclass
class TrackerState:
    """Live data shared by the refresh job, the notification poller and the API.

    Created once in the application lifespan and passed around explicitly.
    Each poll step builds its results locally and only then replaces the
    corresponding fields here.
    """

    accounts: dict[str, AccountInfo] = field(default_factory=dict)
    open_positions: dict[str, list[NormalizedTrade]] = field(default_factory=dict)
    trades: dict[str, list[NormalizedTrade]] = field(default_factory=dict)
    challenges: list[Challenge] = field(default_factory=list)
    starting_balances: dict[uuid.UUID, float] = field(default_factory=dict)
    notifications: list[TradeNotification] = field(default_factory=list)
    seen_trade_keys: SeenTradeSet = field(
        default_factory=lambda: SeenTradeSet(settings.SEEN_TRADE_CAPACITY)
    )
    include_master: bool = settings.INCLUDE_MASTER_NOTIFICATIONS
    last_refresh_at: datetime | None = None
    last_refresh_error: str | None = None
    last_poll_at: datetime | None = None

    def replace_accounts(
        self,
        accounts: dict[str, AccountInfo],
        open_positions: dict[str, list[NormalizedTrade]],
        refreshed_at: datetime,
    ) -> None:
        self.accounts = accounts
        self.open_positions = open_positions
        self.last_refresh_at = refreshed_at
        self.last_refresh_error = None

    def replace_challenges(
        self, challenges: list[Challenge], starting_balances: dict[uuid.UUID, float]
    ) -> None:
        self.challenges = challenges
        self.starting_balances = starting_balances

    def add_challenge(self, challenge: Challenge) -> None:
        self.challenges.insert(0, challenge)

    def replace_challenge(self, challenge: Challenge) -> None:
        for idx, existing in enumerate(self.challenges):
            if existing.id == challenge.id:
                self.challenges[idx] = challenge
                return
        self.add_challenge(challenge)

    def remove_challenge(self, challenge_id: uuid.UUID) -> None:
        self.challenges = [c for c in self.challenges if c.id != challenge_id]
        self.starting_balances.pop(challenge_id, None)

    def get_challenge(self, challenge_id: uuid.UUID) -> Challenge | None:
        for challenge in self.challenges:
            if challenge.id == challenge_id:
                return challenge
        return None

    def is_master(self, challenge: Challenge) -> bool:
        if challenge.is_master or challenge.phase == "Master":
            return True
        account = self.accounts.get(challenge.metacopier_account_id)
        return bool(account and account.is_master)

    def reset(self) -> None:
        self.accounts = {}
        self.open_positions = {}
        self.trades = {}
        self.challenges = []
        self.starting_balances = {}
        self.notifications = []
        self.seen_trade_keys.clear()
        logger.info("Tracker state cleared")
