import logging
from dataclasses import replace
from datetime import datetime

from challenge_tracker.models.challenge import Challenge
from challenge_tracker.schemas.challenges import ChallengeRow, OpenPositionRow, StreakData
from challenge_tracker.services.prop_firms import PhaseRule, get_phase_rules
from challenge_tracker.services.providers.base_provider import UNKNOWN_PLATFORM, AccountInfo, NormalizedTrade
from challenge_tracker.services.tracker_state import TrackerState

logger = logging.getLogger(__name__)

STATUS_ACTIVE = "Active"
STATUS_PASSED = "Passed"
STATUS_FAILED = "Failed"


def _num(value) -> float:
    return float(value or 0)


def progress_pct(starting_balance: float, equity: float) -> float:
    """Percentage gain of equity over the starting balance."""
    return ((equity - starting_balance) / max(starting_balance, 1)) * 100


def drawdown_pct(starting_balance: float, equity: float) -> float:
    if starting_balance <= 0:
        return 0.0
    return max(((starting_balance - equity) / starting_balance) * 100, 0)


# Rounded for display only; status is decided on the raw percentages.
def compute_progress(starting_balance: float, equity: float) -> float:
    return round(progress_pct(starting_balance, equity), 1)


def compute_drawdown(starting_balance: float, equity: float) -> float:
    return round(drawdown_pct(starting_balance, equity), 2)


def derive_status(
    progress: float,
    current_drawdown: float,
    max_dd_pct: float,
    target_pct: float,
    is_master: bool,
) -> str:
    if is_master:
        return STATUS_ACTIVE
    if max_dd_pct > 0 and current_drawdown >= max_dd_pct:
        return STATUS_FAILED
    if target_pct > 0 and progress >= 100:
        return STATUS_PASSED
    return STATUS_ACTIVE


def compute_streak(trades: list[NormalizedTrade]) -> StreakData | None:
    closed = [t for t in trades if t.close_time is not None and t.pnl != 0]
    if not closed:
        return None
    closed.sort(key=lambda t: t.close_time, reverse=True)

    winning = closed[0].pnl > 0
    count = 0
    for trade in closed:
        if (trade.pnl > 0) != winning:
            break
        count += 1
    return StreakData(direction="W" if winning else "L", count=count)


def compute_daily_pnl(trades: list[NormalizedTrade], now: datetime | None = None) -> float:
    now = (now or datetime.now()).astimezone()
    midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
    total = sum(
        t.pnl for t in trades
        if t.close_time is not None and t.close_time.astimezone() >= midnight
    )
    return round(total, 2)


def resolve_starting_balance(snapshot_balance: float | None, account: AccountInfo | None) -> float:
    if snapshot_balance is not None and snapshot_balance > 0:
        return float(snapshot_balance)
    return account.balance if account else 0.0


def resolve_rules(challenge: Challenge) -> PhaseRule:
    rule = get_phase_rules(challenge.prop_firm, challenge.phase)
    if challenge.daily_dd_pct is not None:
        rule = replace(rule, daily_dd_pct=float(challenge.daily_dd_pct))
    if challenge.max_dd_pct is not None:
        rule = replace(rule, max_dd_pct=float(challenge.max_dd_pct))
    return rule


def _platform(challenge: Challenge, account: AccountInfo | None) -> str:
    stored = challenge.platform if challenge.platform and "[object" not in challenge.platform else None
    return stored or (account.platform if account else UNKNOWN_PLATFORM)


def _last_trade(trades: list[NormalizedTrade]) -> str | None:
    closed = [t.close_time for t in trades if t.close_time is not None]
    return max(closed).isoformat() if closed else None


def derive_challenge_row(
    challenge: Challenge,
    account: AccountInfo | None,
    trades: list[NormalizedTrade],
    open_positions: list[NormalizedTrade],
    starting_balance: float,
    is_master: bool,
    now: datetime | None = None,
) -> ChallengeRow:
    rules = resolve_rules(challenge)
    target_pct = _num(challenge.target_pct)

    if account is not None:
        balance = account.balance
        equity = account.equity
        raw_progress = progress_pct(starting_balance, equity)
        raw_dd = drawdown_pct(starting_balance, equity)
        progress = round(raw_progress, 1)
        current_dd = round(raw_dd, 2)
        pnl = round(equity - starting_balance, 2)
        status = derive_status(raw_progress, raw_dd, rules.max_dd_pct, target_pct, is_master)
    else:
        balance = equity = starting_balance = 0.0
        progress = current_dd = pnl = 0.0
        status = STATUS_ACTIVE

    return ChallengeRow(
        id=challenge.id,
        metacopier_account_id=challenge.metacopier_account_id,
        alias=challenge.alias or (account.account_name if account else "") or challenge.login_number or "",
        owner=challenge.owner or "",
        prop_firm=challenge.prop_firm,
        phase=challenge.phase,
        platform=_platform(challenge, account),
        balance=round(balance, 2),
        equity=round(equity, 2),
        starting_balance=round(starting_balance, 2),
        target_pct=target_pct,
        progress=progress,
        pnl=pnl,
        open_pnl=round(account.unrealized_pnl, 2) if account else 0,
        daily_pnl=compute_daily_pnl(trades, now),
        open_positions=[
            OpenPositionRow(
                symbol=p.symbol,
                side=p.side,
                volume=p.volume,
                profit=round(p.pnl, 2),
                tp=p.take_profit,
                sl=p.stop_loss,
            )
            for p in open_positions
        ],
        daily_dd_pct=rules.daily_dd_pct,
        max_dd_pct=rules.max_dd_pct,
        current_dd=current_dd,
        state="Connected" if account and account.connected else "Disconnected",
        challenge_status=status,
        is_master=is_master,
        cost=_num(challenge.cost),
        trades_count=account.trades_count if account else 0,
        last_trade=_last_trade(trades),
        login_number=challenge.login_number or "",
        login_server=challenge.login_server or "",
        started_at=challenge.started_at.isoformat() if challenge.started_at else None,
        streak=compute_streak(trades),
        created_at=challenge.created_at.isoformat() if challenge.created_at else None,
    )


def build_challenge_rows(state: TrackerState, now: datetime | None = None) -> list[ChallengeRow]:
    rows = []
    for challenge in state.challenges:
        account = state.accounts.get(challenge.metacopier_account_id)
        starting = resolve_starting_balance(state.starting_balances.get(challenge.id), account)
        rows.append(derive_challenge_row(
            challenge,
            account,
            state.trades.get(challenge.metacopier_account_id, []),
            state.open_positions.get(challenge.metacopier_account_id, []),
            starting,
            state.is_master(challenge),
            now,
        ))
    return rows
