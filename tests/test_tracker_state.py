from datetime import datetime, timezone

from challenge_tracker.services.tracker_state import SeenTradeSet, TrackerState
from conftest import make_account, make_challenge, make_trade


class TestSeenTradeSet:
    def test_oldest_key_evicted_at_capacity(self) -> None:
        seen = SeenTradeSet(3)
        for key in ("a", "b", "c", "d"):
            seen.add(key)

        assert "a" not in seen
        assert list(seen) == ["b", "c", "d"]

    def test_readding_refreshes_position(self) -> None:
        seen = SeenTradeSet(3)
        for key in ("a", "b", "c"):
            seen.add(key)
        seen.add("a")
        seen.add("d")

        assert "a" in seen
        assert "b" not in seen

    def test_discard_and_clear(self) -> None:
        seen = SeenTradeSet(5)
        seen.add("a")
        seen.discard("a")
        seen.discard("missing")
        assert len(seen) == 0

        seen.add("b")
        seen.clear()
        assert "b" not in seen


class TestTrackerState:
    def test_replace_challenge_in_place(self, state: TrackerState) -> None:
        first = make_challenge("a")
        second = make_challenge("b")
        state.replace_challenges([first, second], {first.id: 1000})

        updated = make_challenge("a", id=first.id, alias="renamed")
        state.replace_challenge(updated)

        assert [c.alias for c in state.challenges] == ["renamed", "alias-b"]

    def test_unknown_challenge_is_added_first(self, state: TrackerState) -> None:
        state.challenges = [make_challenge("a")]
        added = make_challenge("b")
        state.replace_challenge(added)
        assert state.challenges[0] is added

    def test_remove_drops_starting_balance(self, state: TrackerState) -> None:
        challenge = make_challenge("a")
        state.replace_challenges([challenge], {challenge.id: 500})

        state.remove_challenge(challenge.id)

        assert state.challenges == []
        assert state.starting_balances == {}
        assert state.get_challenge(challenge.id) is None

    def test_master_detection(self, state: TrackerState) -> None:
        flagged = make_challenge("a", is_master=True)
        by_phase = make_challenge("b", phase="Master")
        by_account = make_challenge("c")
        follower = make_challenge("d")
        state.accounts = {"c": make_account("c", is_master=True), "d": make_account("d")}

        assert state.is_master(flagged)
        assert state.is_master(by_phase)
        assert state.is_master(by_account)
        assert not state.is_master(follower)

    def test_replace_accounts_clears_error(self, state: TrackerState) -> None:
        state.last_refresh_error = "timeout"
        refreshed_at = datetime(2026, 10, 19, tzinfo=timezone.utc)

        state.replace_accounts({"a": make_account("a")}, {"a": [make_trade("p", closed_minutes_ago=None)]}, refreshed_at)

        assert state.last_refresh_error is None
        assert state.last_refresh_at == refreshed_at
        assert len(state.open_positions["a"]) == 1

    def test_reset(self, state: TrackerState) -> None:
        state.challenges = [make_challenge("a")]
        state.seen_trade_keys.add("a-1")
        state.reset()
        assert state.challenges == []
        assert len(state.seen_trade_keys) == 0
