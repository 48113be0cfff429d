import pytest

from challenge_tracker.services.challenge_service import capture_snapshots, save_snapshot, unlinked_accounts
from challenge_tracker.services.metrics_service import derive_challenge_row
from conftest import NOW, make_account, make_challenge


class RecordingSession:
    def __init__(self):
        self.added = []
        self.commits = 0

    def add(self, obj) -> None:
        self.added.append(obj)

    async def commit(self) -> None:
        self.commits += 1

    async def rollback(self) -> None:
        pass


@pytest.mark.asyncio
async def test_snapshot_drawdown_and_unrealized() -> None:
    db = RecordingSession()
    challenge = make_challenge("a")

    snapshot = await save_snapshot(db, challenge.id, 10000, 9875)

    assert snapshot.drawdown == 1.25
    assert snapshot.unrealized_pnl == -125
    assert db.added == [snapshot]


@pytest.mark.asyncio
async def test_capture_skips_disconnected_and_empty_accounts() -> None:
    db = RecordingSession()
    rows = [
        derive_challenge_row(make_challenge("a"), make_account("a"), [], [], 1000, False, NOW),
        derive_challenge_row(make_challenge("b"), make_account("b", connected=False), [], [], 1000, False, NOW),
        derive_challenge_row(make_challenge("c"), make_account("c", balance=0, equity=0), [], [], 1000, False, NOW),
        derive_challenge_row(make_challenge("d"), None, [], [], 1000, False, NOW),
    ]

    saved = await capture_snapshots(db, rows)

    assert saved == 1
    assert db.added[0].challenge_id == rows[0].id
    assert db.commits == 1


def test_unlinked_accounts(state) -> None:
    state.challenges = [make_challenge("a")]
    state.accounts = {"a": make_account("a"), "b": make_account("b")}
    assert [a.account_id for a in unlinked_accounts(state)] == ["b"]
