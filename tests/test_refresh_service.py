from contextlib import asynccontextmanager

import pytest

from challenge_tracker.services import challenge_service
from challenge_tracker.services.push_service import PushNotifier
from challenge_tracker.services.refresh_service import AccountRefreshService
from challenge_tracker.services.runtime import create_runtime
from conftest import FakeProvider, make_account, make_challenge, make_trade


class BrokenProvider(FakeProvider):
    async def fetch_accounts(self):
        raise RuntimeError("MetaCopier API error 503: Service Unavailable")


@asynccontextmanager
async def fake_session():
    yield object()


@pytest.mark.asyncio
async def test_positions_only_for_connected_accounts(state, provider) -> None:
    provider.accounts = {
        "a": make_account("a"),
        "b": make_account("b", connected=False),
    }
    provider.positions = {
        "a": [make_trade("p1", closed_minutes_ago=None)],
        "b": [make_trade("p2", closed_minutes_ago=None)],
    }
    service = AccountRefreshService(state, provider)

    accounts = await service.refresh_accounts()

    assert set(accounts) == {"a", "b"}
    assert set(state.open_positions) == {"a"}
    assert state.last_refresh_at is not None


@pytest.mark.asyncio
async def test_position_failure_leaves_empty_list(state, provider) -> None:
    provider.accounts = {"a": make_account("a")}
    provider.failing_accounts.add("a")
    service = AccountRefreshService(state, provider)

    await service.refresh_accounts()

    assert state.open_positions == {"a": []}
    assert state.last_refresh_error is None


@pytest.mark.asyncio
async def test_account_failure_keeps_previous_snapshot(state) -> None:
    state.accounts = {"a": make_account("a", equity=1234)}
    service = AccountRefreshService(state, BrokenProvider())

    with pytest.raises(RuntimeError):
        await service.refresh_accounts()

    assert state.accounts["a"].equity == 1234
    assert "503" in state.last_refresh_error


@pytest.mark.asyncio
async def test_reload_challenges_from_database(state, provider, monkeypatch) -> None:
    challenge = make_challenge("a")

    async def fake_list(db):
        return [challenge]

    async def fake_balances(db):
        return {challenge.id: 2500.0}

    monkeypatch.setattr(challenge_service, "list_challenges", fake_list)
    monkeypatch.setattr(challenge_service, "get_earliest_snapshot_balances", fake_balances)
    service = AccountRefreshService(state, provider, session_factory=fake_session)

    await service.refresh()

    assert state.challenges == [challenge]
    assert state.starting_balances == {challenge.id: 2500.0}


@pytest.mark.asyncio
async def test_runtime_polls_and_shuts_down(provider) -> None:
    provider.accounts = {"a": make_account("a")}
    runtime = create_runtime(provider, push=PushNotifier(webhook_url=""))
    challenge = make_challenge("a")
    runtime.state.challenges = [challenge]
    provider.trades["a"] = [make_trade("t1", pnl=3)]

    await runtime.refresh_service.refresh()
    await runtime.notification_service.poll_for_new_trades()
    assert "a" in runtime.state.accounts
    assert len(runtime.state.notifications) == 1

    await runtime.shutdown()

    assert provider.closed is True
    assert runtime.state.notifications == []
    assert runtime.account_timer.running is False
