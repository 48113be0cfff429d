"""Tests for trade notification deduplication and master alerts."""

from datetime import timedelta

import pytest

from challenge_tracker.services.notification_service import NotificationService, trade_key
from conftest import NOW, make_account, make_challenge, make_trade


@pytest.fixture
def follower(state):
    challenge = make_challenge("a")
    state.challenges.append(challenge)
    state.accounts["a"] = make_account("a")
    return challenge


@pytest.fixture
def master(state):
    challenge = make_challenge("m", is_master=True, phase="Master")
    state.challenges.append(challenge)
    state.accounts["m"] = make_account("m", is_master=True)
    return challenge


class TestDeduplication:
    @pytest.mark.asyncio
    async def test_same_trade_notified_once_across_polls(self, state, provider, follower) -> None:
        provider.trades["a"] = [make_trade("t1", pnl=5)]
        service = NotificationService(state, provider)

        assert await service.poll_for_new_trades() == 1
        assert await service.poll_for_new_trades() == 0
        assert [n.id for n in state.notifications] == ["a-t1"]

    @pytest.mark.asyncio
    async def test_new_notifications_are_prepended(self, state, provider, follower) -> None:
        service = NotificationService(state, provider)
        provider.trades["a"] = [make_trade("t1", pnl=5)]
        await service.poll_for_new_trades()

        provider.trades["a"] = [make_trade("t1", pnl=5), make_trade("t2", pnl=-1)]
        await service.poll_for_new_trades()

        assert [n.id for n in state.notifications] == ["a-t2", "a-t1"]

    @pytest.mark.asyncio
    async def test_duplicate_ids_within_one_payload(self, state, provider, follower) -> None:
        provider.trades["a"] = [make_trade("t1", pnl=5), make_trade("t1", pnl=5)]
        service = NotificationService(state, provider)

        assert await service.poll_for_new_trades() == 1

    @pytest.mark.asyncio
    async def test_truncated_notifications_are_not_renotified(self, state, provider, follower) -> None:
        provider.trades["a"] = [make_trade(f"t{i}", pnl=1) for i in range(5)]
        service = NotificationService(state, provider, limit=3)

        assert await service.poll_for_new_trades() == 5
        assert len(state.notifications) == 3
        assert [n.id for n in state.notifications] == ["a-t4", "a-t3", "a-t2"]
        assert trade_key("a", "t0") in state.seen_trade_keys

        assert await service.poll_for_new_trades() == 0
        assert len(state.notifications) == 3

    @pytest.mark.asyncio
    async def test_failing_account_does_not_block_others(self, state, provider, follower) -> None:
        broken = make_challenge("b")
        state.challenges.append(broken)
        provider.failing_accounts.add("b")
        provider.trades["a"] = [make_trade("t1", pnl=2)]
        service = NotificationService(state, provider)

        assert await service.poll_for_new_trades() == 1
        assert "b" not in state.trades
        assert len(state.trades["a"]) == 1

    @pytest.mark.asyncio
    async def test_notification_fields(self, state, provider, follower) -> None:
        provider.positions["a"] = [make_trade("p1", pnl=3, closed_minutes_ago=None, side="sell")]
        service = NotificationService(state, provider)
        await service.poll_for_new_trades()

        notification = state.notifications[0]
        assert notification.id == "a-p1-open"
        assert notification.is_open is True
        assert notification.side == "sell"
        assert notification.account_alias == "alias-a"
        assert notification.challenge_id == follower.id
        assert notification.timestamp == notification.open_time


class TestMasterToggle:
    @pytest.mark.asyncio
    async def test_disable_removes_only_master_notifications(self, state, provider, follower, master) -> None:
        provider.trades["a"] = [make_trade("t1", pnl=5)]
        provider.trades["m"] = [make_trade("t2", pnl=5)]
        service = NotificationService(state, provider)
        await service.poll_for_new_trades()
        assert len(state.notifications) == 2

        removed = await service.set_include_master(False)

        assert removed == 1
        assert [n.id for n in state.notifications] == ["a-t1"]
        assert trade_key("m", "t2") not in state.seen_trade_keys
        assert trade_key("a", "t1") in state.seen_trade_keys

    @pytest.mark.asyncio
    async def test_master_skipped_while_disabled(self, state, provider, follower, master) -> None:
        provider.trades["m"] = [make_trade("t2", pnl=5)]
        service = NotificationService(state, provider)
        await service.set_include_master(False)
        provider.trade_calls.clear()

        await service.poll_for_new_trades()

        assert provider.trade_calls == ["a"]
        assert state.notifications == []

    @pytest.mark.asyncio
    async def test_reenable_polls_without_duplicates(self, state, provider, follower, master) -> None:
        provider.trades["a"] = [make_trade("t1", pnl=5)]
        provider.trades["m"] = [make_trade("t2", pnl=5)]
        service = NotificationService(state, provider)
        await service.poll_for_new_trades()
        await service.set_include_master(False)

        added = await service.set_include_master(True)

        ids = [n.id for n in state.notifications]
        assert added == 1
        assert sorted(ids) == ["a-t1", "m-t2"]
        assert len(ids) == len(set(ids))


class TestPushAlerts:
    @pytest.mark.asyncio
    async def test_opened_trade_counts_followers(self, state, provider, push, follower, master) -> None:
        idle = make_challenge("c")
        offline = make_challenge("d")
        state.challenges.extend([idle, offline])
        state.accounts["c"] = make_account("c")
        state.accounts["d"] = make_account("d", connected=False)
        position = make_trade("p", closed_minutes_ago=None, symbol="XAUUSD", side="buy")
        state.open_positions = {
            "a": [position],
            "c": [make_trade("p2", closed_minutes_ago=None, symbol="XAUUSD", side="sell")],
            "d": [position],
        }
        provider.positions["m"] = [make_trade("t1", closed_minutes_ago=None, symbol="XAUUSD", side="buy", volume=1)]
        service = NotificationService(state, provider, push)

        await service.poll_for_new_trades()

        assert len(push.sent) == 1
        title, body, tag = push.sent[0]
        assert title == "Trade Opened"
        assert "BUY 1 XAUUSD" in body
        assert "copied on 1 account" in body
        assert tag == "m-t1-open"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "pnl, title",
        [(40.0, "Take Profit hit"), (-25.0, "Stop Loss hit"), (0.0, "Trade Closed")],
    )
    async def test_closed_trade_title_by_profit(self, state, provider, push, master, pnl, title) -> None:
        provider.trades["m"] = [make_trade("t1", pnl=pnl)]
        service = NotificationService(state, provider, push)

        await service.poll_for_new_trades()

        assert push.sent[0][0] == title
        assert f"{pnl:+.2f}" in push.sent[0][1]

    @pytest.mark.asyncio
    async def test_follower_trades_do_not_push(self, state, provider, push, follower) -> None:
        provider.trades["a"] = [make_trade("t1", pnl=10)]
        service = NotificationService(state, provider, push)

        await service.poll_for_new_trades()

        assert len(state.notifications) == 1
        assert push.sent == []

    @pytest.mark.asyncio
    async def test_seen_master_trade_pushes_once(self, state, provider, push, master) -> None:
        provider.trades["m"] = [make_trade("t1", pnl=10)]
        service = NotificationService(state, provider, push)

        await service.poll_for_new_trades()
        await service.poll_for_new_trades()

        assert len(push.sent) == 1


class TestUnreadCount:
    @pytest.mark.asyncio
    async def test_counts_last_hour_only(self, state, provider, follower) -> None:
        provider.trades["a"] = [
            make_trade("recent", pnl=1, closed_minutes_ago=10),
            make_trade("old", pnl=1, closed_minutes_ago=120),
        ]
        service = NotificationService(state, provider)
        await service.poll_for_new_trades()

        assert service.unread_count(now=NOW) == 1
        assert service.unread_count(now=NOW + timedelta(hours=3)) == 0


class TestOpenPositions:
    @pytest.mark.asyncio
    async def test_master_open_position_alerts_then_close_alerts(self, state, provider, push, master) -> None:
        position = make_trade("p1", pnl=12, closed_minutes_ago=None, symbol="GBPUSD")
        provider.positions["m"] = [position]
        service = NotificationService(state, provider, push)

        assert await service.poll_for_new_trades() == 1
        assert push.sent[0][0] == "Trade Opened"
        assert state.trades["m"] == []

        provider.positions["m"] = []
        provider.trades["m"] = [make_trade("p1", pnl=12, symbol="GBPUSD")]
        assert await service.poll_for_new_trades() == 1

        assert [n.id for n in state.notifications] == ["m-p1", "m-p1-open"]
        assert [title for title, _, _ in push.sent] == ["Trade Opened", "Take Profit hit"]

    @pytest.mark.asyncio
    async def test_open_position_notified_once(self, state, provider, follower) -> None:
        provider.positions["a"] = [make_trade("p1", closed_minutes_ago=None)]
        service = NotificationService(state, provider)

        await service.poll_for_new_trades()
        await service.poll_for_new_trades()

        assert [n.id for n in state.notifications] == ["a-p1-open"]

    @pytest.mark.asyncio
    async def test_positions_failure_still_reports_history(self, state, provider, follower) -> None:
        provider.failing_positions.add("a")
        provider.trades["a"] = [make_trade("t1", pnl=4)]
        service = NotificationService(state, provider)

        assert await service.poll_for_new_trades() == 1
        assert [n.id for n in state.notifications] == ["a-t1"]


class TestTradeCache:
    @pytest.mark.asyncio
    async def test_failed_fetch_keeps_previous_trades(self, state, provider, follower) -> None:
        provider.trades["a"] = [make_trade("t1", pnl=4), make_trade("t2", pnl=6)]
        service = NotificationService(state, provider)
        await service.poll_for_new_trades()

        provider.failing_accounts.add("a")
        assert await service.poll_for_new_trades() == 0

        assert [t.external_trade_id for t in state.trades["a"]] == ["t1", "t2"]
