import uuid

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from challenge_tracker.db.session import get_db
from challenge_tracker.models.payout import Payout
from challenge_tracker.schemas.payouts import (
    PayoutCreate,
    PayoutListResponse,
    PayoutResponse,
    PayoutTotalsResponse,
    PayoutUpdate,
)
from challenge_tracker.services import payout_service

router = APIRouter(prefix="/api/v1/payouts", tags=["payouts"])


def _payout_response(p: Payout) -> PayoutResponse:
    return PayoutResponse(
        id=p.id,
        challenge_id=p.challenge_id,
        amount=float(p.amount),
        status=p.status,
        requested_at=p.requested_at,
        received_at=p.received_at,
        notes=p.notes,
        created_at=p.created_at,
    )


@router.get("", response_model=PayoutListResponse)
async def list_payouts(db: AsyncSession = Depends(get_db)):
    payouts = await payout_service.list_payouts(db)
    return PayoutListResponse(payouts=[_payout_response(p) for p in payouts], total=len(payouts))


@router.get("/totals", response_model=PayoutTotalsResponse)
async def get_payout_totals(db: AsyncSession = Depends(get_db)):
    payouts = await payout_service.list_payouts(db)
    return payout_service.payout_totals(payouts)


@router.post("", response_model=PayoutResponse, status_code=status.HTTP_201_CREATED)
async def create_payout(body: PayoutCreate, db: AsyncSession = Depends(get_db)):
    payout = await payout_service.create_payout(db, body)
    return _payout_response(payout)


@router.patch("/{payout_id}", response_model=PayoutResponse)
async def update_payout(payout_id: uuid.UUID, body: PayoutUpdate, db: AsyncSession = Depends(get_db)):
    payout = await payout_service.update_payout(db, payout_id, body)
    return _payout_response(payout)


@router.delete("/{payout_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_payout(payout_id: uuid.UUID, db: AsyncSession = Depends(get_db)):
    await payout_service.delete_payout(db, payout_id)
