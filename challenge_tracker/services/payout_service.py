import logging
import uuid

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from challenge_tracker.core.exceptions import PayoutNotFoundError
from challenge_tracker.models.payout import Payout
from challenge_tracker.schemas.payouts import PayoutCreate, PayoutStatus, PayoutTotalsResponse, PayoutUpdate
from challenge_tracker.services.challenge_service import get_challenge

logger = logging.getLogger(__name__)


async def list_payouts(db: AsyncSession) -> list[Payout]:
    try:
        result = await db.execute(select(Payout).order_by(Payout.requested_at.desc()))
    except SQLAlchemyError as e:
        logger.error(f"Failed to fetch payouts: {e}")
        raise
    return list(result.scalars().all())


async def get_payout(db: AsyncSession, payout_id: uuid.UUID) -> Payout:
    result = await db.execute(select(Payout).where(Payout.id == payout_id))
    payout = result.scalar_one_or_none()
    if not payout:
        raise PayoutNotFoundError()
    return payout


async def create_payout(db: AsyncSession, data: PayoutCreate) -> Payout:
    await get_challenge(db, data.challenge_id)

    values = data.model_dump(exclude_none=True)
    values["status"] = data.status.value
    payout = Payout(**values)
    db.add(payout)
    try:
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(f"Failed to insert payout for challenge {data.challenge_id}: {e}")
        raise
    await db.refresh(payout)
    return payout


async def update_payout(db: AsyncSession, payout_id: uuid.UUID, data: PayoutUpdate) -> Payout:
    payout = await get_payout(db, payout_id)
    for name, value in data.model_dump(exclude_unset=True).items():
        if isinstance(value, PayoutStatus):
            value = value.value
        setattr(payout, name, value)
    await db.commit()
    await db.refresh(payout)
    return payout


async def delete_payout(db: AsyncSession, payout_id: uuid.UUID) -> None:
    payout = await get_payout(db, payout_id)
    await db.delete(payout)
    await db.commit()


def payout_totals(payouts: list[Payout]) -> PayoutTotalsResponse:
    received = sum(float(p.amount or 0) for p in payouts if p.status == PayoutStatus.RECEIVED.value)
    pending = sum(float(p.amount or 0) for p in payouts if p.status == PayoutStatus.PENDING.value)
    return PayoutTotalsResponse(total_received=round(received, 2), total_pending=round(pending, 2))
