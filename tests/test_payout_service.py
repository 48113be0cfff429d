import uuid

from challenge_tracker.models.payout import Payout
from challenge_tracker.schemas.payouts import PayoutCreate, PayoutStatus
from challenge_tracker.services.payout_service import payout_totals


def _payout(amount: float, status: str) -> Payout:
    return Payout(id=uuid.uuid4(), challenge_id=uuid.uuid4(), amount=amount, status=status)


def test_totals_split_by_status() -> None:
    payouts = [
        _payout(1200.10, "received"),
        _payout(799.95, "received"),
        _payout(500, "pending"),
        _payout(300, "rejected"),
    ]

    totals = payout_totals(payouts)

    assert totals.total_received == 2000.05
    assert totals.total_pending == 500


def test_totals_empty() -> None:
    totals = payout_totals([])
    assert (totals.total_received, totals.total_pending) == (0, 0)


def test_create_defaults_to_pending() -> None:
    data = PayoutCreate(challenge_id=uuid.uuid4(), amount=250)
    assert data.status is PayoutStatus.PENDING
