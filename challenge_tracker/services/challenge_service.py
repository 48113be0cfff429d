import logging
import uuid

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from challenge_tracker.core.exceptions import ChallengeNotFoundError, DuplicateChallengeError
from challenge_tracker.models.challenge import Challenge
from challenge_tracker.models.snapshot import Snapshot
from challenge_tracker.schemas.challenges import ChallengeCreate, ChallengeRow, ChallengeUpdate
from challenge_tracker.services.providers.base_provider import AccountInfo
from challenge_tracker.services.tracker_state import TrackerState

logger = logging.getLogger(__name__)


async def create_challenge(db: AsyncSession, data: ChallengeCreate) -> Challenge:
    existing = await db.execute(
        select(Challenge).where(Challenge.metacopier_account_id == data.metacopier_account_id)
    )
    if existing.scalar_one_or_none():
        raise DuplicateChallengeError()

    values = data.model_dump()
    values["phase"] = data.phase.value
    challenge = Challenge(**values)
    db.add(challenge)
    try:
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(f"Failed to insert challenge for account {data.metacopier_account_id}: {e}")
        raise
    await db.refresh(challenge)
    return challenge


async def get_challenge(db: AsyncSession, challenge_id: uuid.UUID) -> Challenge:
    result = await db.execute(select(Challenge).where(Challenge.id == challenge_id))
    challenge = result.scalar_one_or_none()
    if not challenge:
        raise ChallengeNotFoundError()
    return challenge


async def list_challenges(db: AsyncSession) -> list[Challenge]:
    try:
        result = await db.execute(select(Challenge).order_by(Challenge.created_at.desc()))
    except SQLAlchemyError as e:
        logger.error(f"Failed to fetch challenges: {e}")
        raise
    return list(result.scalars().all())


async def update_challenge(db: AsyncSession, challenge: Challenge, data: ChallengeUpdate) -> Challenge:
    for name, value in data.model_dump(exclude_unset=True).items():
        if name == "phase" and value is not None:
            value = data.phase.value
        setattr(challenge, name, value)
    await db.commit()
    await db.refresh(challenge)
    return challenge


async def delete_challenge(db: AsyncSession, challenge_id: uuid.UUID) -> None:
    challenge = await get_challenge(db, challenge_id)
    await db.delete(challenge)
    try:
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(f"Failed to delete challenge {challenge_id}: {e}")
        raise


async def get_earliest_snapshot_balances(db: AsyncSession) -> dict[uuid.UUID, float]:
    """Balance of the oldest snapshot of every challenge that has one."""
    result = await db.execute(
        select(Snapshot.challenge_id, Snapshot.balance)
        .distinct(Snapshot.challenge_id)
        .order_by(Snapshot.challenge_id, Snapshot.timestamp.asc())
    )
    return {row.challenge_id: float(row.balance) for row in result.all()}


async def save_snapshot(
    db: AsyncSession, challenge_id: uuid.UUID, balance: float, equity: float
) -> Snapshot:
    drawdown = ((balance - equity) / balance) * 100 if balance > 0 else 0
    snapshot = Snapshot(
        challenge_id=challenge_id,
        balance=balance,
        equity=equity,
        drawdown=round(drawdown, 2),
        unrealized_pnl=round(equity - balance, 2),
    )
    db.add(snapshot)
    return snapshot


async def capture_snapshots(db: AsyncSession, rows: list[ChallengeRow]) -> int:
    saved = 0
    for row in rows:
        if row.state == "Connected" and row.balance > 0:
            await save_snapshot(db, row.id, row.balance, row.equity)
            saved += 1
    try:
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(f"Failed to store snapshots: {e}")
        raise
    logger.info(f"Captured {saved} snapshots")
    return saved


def unlinked_accounts(state: TrackerState) -> list[AccountInfo]:
    linked = {c.metacopier_account_id for c in state.challenges}
    return [a for a in state.accounts.values() if a.account_id not in linked]
