"""Tests for the yield farm engine and its boost policy."""

import os
import sys

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from vestfarm.engine.clock import ManualClock
from vestfarm.engine.farm import (
    DEFAULT_BOOST_TIERS,
    BoostPolicy,
    BoostTier,
    StakeRecord,
    YieldFarmEngine,
)
from vestfarm.engine.ledger import TokenLedger
from vestfarm.errors import (
    EnginePaused,
    InsufficientStake,
    TransferFailed,
    Unauthorized,
    ZeroAmount,
)
from vestfarm.units import MAX_UINT256

DAY = 86_400
T0 = 1_700_000_000
RATE = 100
TEST_AMOUNT = 100_000
SMALL_AMOUNT = 1_000


@pytest.fixture
def clock():
    return ManualClock(T0)


@pytest.fixture
def lp_token():
    ledger = TokenLedger("LPT")
    for user in ("user1", "user2"):
        ledger.mint(user, TEST_AMOUNT * 10)
        ledger.approve(user, "farm", MAX_UINT256)
    return ledger


@pytest.fixture
def reward_token():
    ledger = TokenLedger("RWD")
    ledger.mint("farm", 10**30)
    return ledger


@pytest.fixture
def farm(lp_token, reward_token, clock):
    return YieldFarmEngine("owner", lp_token, reward_token, RATE, clock)


@pytest.fixture
def staked(farm):
    farm.stake("user1", TEST_AMOUNT)
    return farm


class TestDeployment:
    """Farm wiring."""

    def test_admin(self, farm):
        assert farm.admin == "owner"
        assert farm.config.admin == "owner"

    def test_tokens(self, farm, lp_token, reward_token):
        assert farm.staking_token is lp_token
        assert farm.reward_token is reward_token

    def test_rate(self, farm):
        assert farm.rate == 100

    def test_default_boost(self, farm):
        assert farm.boost.tiers == DEFAULT_BOOST_TIERS

    def test_negative_rate_rejected(self, lp_token, reward_token, clock):
        with pytest.raises(ValueError):
            YieldFarmEngine("owner", lp_token, reward_token, -1, clock)

    def test_shared_ledger_rejected(self, lp_token, clock):
        """Rewards cannot be paid from the same ledger that holds stakes."""
        with pytest.raises(ValueError):
            YieldFarmEngine("owner", lp_token, lp_token, RATE, clock)


class TestStaking:
    """Deposits."""

    def test_updates_balances(self, staked, lp_token):
        record = staked.get_stake("user1")
        assert record.amount == TEST_AMOUNT
        assert record.last_update_time == T0
        assert staked.total_staked == TEST_AMOUNT
        assert lp_token.balance_of("farm") == TEST_AMOUNT
        assert lp_token.balance_of("user1") == TEST_AMOUNT * 9

    def test_emits_staked(self, farm):
        farm.stake("user2", SMALL_AMOUNT)
        events = farm.events.filter("Staked")
        assert len(events) == 1
        assert events[0].args == {"user": "user2", "amount": SMALL_AMOUNT}

    def test_zero_amount(self, farm):
        with pytest.raises(ZeroAmount):
            farm.stake("user1", 0)

    def test_failed_pull_changes_nothing(self, farm, lp_token):
        """Staking without allowance leaves no record."""
        lp_token.mint("user3", SMALL_AMOUNT)
        with pytest.raises(TransferFailed):
            farm.stake("user3", SMALL_AMOUNT)
        assert farm.get_stake("user3") == StakeRecord()
        assert farm.total_staked == 0
        assert not farm.events.filter("Staked")

    def test_restake_checkpoints_reward(self, staked, clock):
        """Adding to a position banks the reward accrued so far."""
        clock.advance(3600)
        staked.stake("user1", SMALL_AMOUNT)
        record = staked.get_stake("user1")
        assert record.accrued_reward == TEST_AMOUNT * RATE * 3600
        assert record.amount == TEST_AMOUNT + SMALL_AMOUNT
        assert record.last_update_time == T0 + 3600

    def test_paused(self, farm):
        farm.pause("owner")
        with pytest.raises(EnginePaused):
            farm.stake("user1", TEST_AMOUNT)

    def test_listener_error_does_not_reach_staker(self, farm):
        """The stake commits and the call returns even if a subscriber raises."""
        def broken(event):
            raise RuntimeError("indexer offline")

        farm.events.subscribe(broken)
        farm.stake("user1", SMALL_AMOUNT)
        assert farm.get_stake("user1").amount == SMALL_AMOUNT
        assert len(farm.events.filter("Staked")) == 1


class TestRewards:
    """Accrual and boost."""

    def test_pending_after_an_hour(self, staked, clock):
        """One hour at 1x."""
        clock.advance(3600)
        rewards = staked.pending("user1")
        assert rewards > 0
        assert rewards == TEST_AMOUNT * RATE * 3600

    def test_time_based_boost(self, staked, clock):
        """30 days of holding beats the linear projection."""
        clock.advance(30 * DAY)
        rewards = staked.pending("user1")
        linear = TEST_AMOUNT * RATE * 30 * DAY
        assert rewards > 3600 * RATE
        assert rewards > linear
        assert rewards == linear * 3 // 2

    def test_boost_multiplier_steps(self, staked, clock):
        expected = [(0, 10_000), (7 * DAY, 12_500), (30 * DAY, 15_000), (90 * DAY, 20_000), (400 * DAY, 20_000)]
        for elapsed, bps in expected:
            clock.increase_to(T0 + elapsed)
            assert staked.calculate_boost_multiplier("user1") == bps

    def test_boost_restarts_on_checkpoint(self, staked, clock):
        clock.advance(30 * DAY)
        staked.stake("user1", SMALL_AMOUNT)
        assert staked.calculate_boost_multiplier("user1") == 10_000

    def test_unknown_staker(self, farm):
        assert farm.pending("nobody") == 0
        assert farm.calculate_boost_multiplier("nobody") == 10_000
        assert farm.get_stake("nobody") == StakeRecord()

    def test_rate_cut_keeps_accrued_reward(self, staked, clock):
        """Reward earned before a rate change is banked at the old rate."""
        clock.advance(3600)
        before = staked.pending("user1")
        staked.update_rate("owner", 0)
        assert staked.pending("user1") == before == TEST_AMOUNT * RATE * 3600
        clock.advance(3600)
        assert staked.pending("user1") == before

    def test_rate_increase_applies_from_now(self, staked, clock):
        clock.advance(3600)
        staked.update_rate("owner", 200)
        clock.advance(3600)
        assert staked.pending("user1") == TEST_AMOUNT * RATE * 3600 + TEST_AMOUNT * 200 * 3600

    def test_pending_never_drops_across_rate_changes(self, staked, clock):
        previous = 0
        for rate in (50, 0, 300, 1, 100):
            clock.advance(DAY)
            staked.update_rate("owner", rate)
            current = staked.pending("user1")
            assert current >= previous
            previous = current

    def test_rate_change_keeps_boost_clock(self, staked, clock):
        """Holding time keeps counting through a rate change."""
        clock.advance(29 * DAY)
        staked.update_rate("owner", RATE)
        clock.advance(DAY)
        assert staked.calculate_boost_multiplier("user1") == 15_000
        banked = TEST_AMOUNT * RATE * 29 * DAY * 12_500 // 10_000
        expected = banked + TEST_AMOUNT * RATE * DAY * 15_000 // 10_000
        assert staked.pending("user1") == expected


class TestWithdrawals:
    """Withdrawals."""

    @pytest.fixture
    def earning(self, staked, clock):
        clock.advance(3600)
        return staked

    def test_returns_staked_funds(self, earning, lp_token):
        initial_balance = lp_token.balance_of("user1")
        earning.withdraw("user1", SMALL_AMOUNT)
        assert lp_token.balance_of("user1") - initial_balance == SMALL_AMOUNT
        assert earning.get_stake("user1").amount == TEST_AMOUNT - SMALL_AMOUNT

    def test_emits_withdrawn(self, earning):
        earning.withdraw("user1", SMALL_AMOUNT)
        events = earning.events.filter("Withdrawn")
        assert events[-1].args == {"user": "user1", "amount": SMALL_AMOUNT}

    def test_over_withdrawal(self, earning):
        with pytest.raises(InsufficientStake):
            earning.withdraw("user1", TEST_AMOUNT * 2)
        with pytest.raises(InsufficientStake):
            earning.withdraw("user1", TEST_AMOUNT + 1)

    def test_zero_withdrawal(self, earning):
        with pytest.raises(ZeroAmount):
            earning.withdraw("user1", 0)

    def test_never_staked(self, farm):
        with pytest.raises(InsufficientStake):
            farm.withdraw("user2", 1)

    def test_keeps_accrued_reward(self, earning, clock):
        """Full withdrawal banks the reward; nothing accrues afterwards."""
        earning.withdraw("user1", TEST_AMOUNT)
        banked = TEST_AMOUNT * RATE * 3600
        assert earning.pending("user1") == banked
        clock.advance(30 * DAY)
        assert earning.pending("user1") == banked

    def test_stake_withdraw_round_trip(self, farm, lp_token):
        """Same-instant stake and withdraw returns exactly what went in."""
        before = lp_token.balance_of("user2")
        farm.stake("user2", SMALL_AMOUNT)
        farm.withdraw("user2", SMALL_AMOUNT)
        assert farm.get_stake("user2").amount == 0
        assert lp_token.balance_of("user2") == before
        assert farm.pending("user2") == 0
        assert farm.total_staked == 0

    def test_failed_payout_rolls_back(self, earning, lp_token, monkeypatch):
        monkeypatch.setattr(lp_token, "transfer", lambda sender, recipient, amount: False)
        with pytest.raises(TransferFailed):
            earning.withdraw("user1", SMALL_AMOUNT)
        record = earning.get_stake("user1")
        assert record.amount == TEST_AMOUNT
        assert record.last_update_time == T0
        assert record.accrued_reward == 0
        assert earning.total_staked == TEST_AMOUNT


class TestClaimReward:
    """Reward payouts."""

    def test_pays_pending(self, staked, clock, reward_token):
        clock.advance(3600)
        expected = staked.pending("user1")
        paid = staked.claim_reward("user1")
        assert paid == expected
        assert reward_token.balance_of("user1") == expected
        record = staked.get_stake("user1")
        assert record.accrued_reward == 0
        assert record.last_update_time == T0 + 3600
        assert staked.pending("user1") == 0
        assert staked.events.filter("RewardsClaimed")[0].args == {"user": "user1", "amount": paid}

    def test_nothing_pending(self, staked, reward_token):
        assert staked.claim_reward("user1") == 0
        assert staked.claim_reward("stranger") == 0
        assert reward_token.balance_of("user1") == 0
        assert not staked.events.filter("RewardsClaimed")

    def test_underfunded_pool(self, lp_token, clock):
        """An empty pool fails the claim and keeps the reward pending."""
        farm = YieldFarmEngine("owner", lp_token, TokenLedger("RWD"), RATE, clock)
        farm.stake("user1", TEST_AMOUNT)
        clock.advance(3600)
        owed = farm.pending("user1")
        with pytest.raises(TransferFailed):
            farm.claim_reward("user1")
        assert farm.pending("user1") == owed

    def test_fund_rewards(self, lp_token, clock):
        rewards = TokenLedger("RWD")
        rewards.mint("owner", 501)
        rewards.approve("owner", "farm", 501)
        farm = YieldFarmEngine("owner", lp_token, rewards, RATE, clock)
        farm.fund_rewards("owner", 500)
        assert farm.reward_pool() == 500
        with pytest.raises(ZeroAmount):
            farm.fund_rewards("owner", 0)
        farm.pause("owner")
        with pytest.raises(EnginePaused):
            farm.fund_rewards("owner", 1)

    def test_paused(self, staked, clock):
        clock.advance(3600)
        staked.pause("owner")
        with pytest.raises(EnginePaused):
            staked.claim_reward("user1")
        with pytest.raises(EnginePaused):
            staked.withdraw("user1", SMALL_AMOUNT)


class TestEmergencyWithdraw:
    """Exit that forfeits rewards."""

    def test_returns_stake_forfeits_reward(self, staked, clock, lp_token):
        clock.advance(30 * DAY)
        returned = staked.emergency_withdraw("user1")
        assert returned == TEST_AMOUNT
        assert lp_token.balance_of("user1") == TEST_AMOUNT * 10
        assert staked.pending("user1") == 0
        assert staked.total_staked == 0
        assert staked.events.filter("EmergencyWithdrawn")[0].args["forfeited"] > 0

    def test_works_while_paused(self, staked):
        staked.pause("owner")
        assert staked.emergency_withdraw("user1") == TEST_AMOUNT

    def test_nothing_staked(self, farm):
        with pytest.raises(InsufficientStake):
            farm.emergency_withdraw("user1")


class TestAdminFunctions:
    """Admin role."""

    def test_rate_adjustment(self, farm):
        farm.update_rate("owner", 200)
        assert farm.rate == 200
        assert farm.events.filter("RateUpdated")[0].args == {"old_rate": 100, "new_rate": 200}

    def test_non_admin_rate_adjustment(self, farm):
        with pytest.raises(Unauthorized):
            farm.update_rate("user1", 300)
        assert farm.rate == 100

    def test_negative_rate(self, farm):
        with pytest.raises(ValueError):
            farm.update_rate("owner", -1)

    def test_transfer_admin_rights(self, farm):
        farm.change_admin("owner", "user1")
        assert farm.admin == "user1"
        assert farm.config.admin == "user1"
        with pytest.raises(Unauthorized):
            farm.update_rate("owner", 1)
        farm.update_rate("user1", 1)

    def test_non_admin_cannot_change_admin(self, farm):
        with pytest.raises(Unauthorized):
            farm.change_admin("user1", "user1")

    def test_pause_is_admin_only(self, farm):
        with pytest.raises(Unauthorized):
            farm.pause("user1")
        farm.pause("owner")
        farm.pause("owner")
        assert len(farm.events.filter("Paused")) == 1
        farm.update_rate("owner", 5)
        farm.unpause("owner")
        farm.stake("user1", 1)


class TestBoostPolicy:
    """Boost curve validation."""

    def test_identity_at_zero(self):
        assert BoostPolicy().multiplier_bps(0) == 10_000

    def test_non_decreasing(self):
        policy = BoostPolicy()
        values = [policy.multiplier_bps(t) for t in range(0, 200 * DAY, DAY // 2)]
        assert values == sorted(values)

    def test_apply_floors(self):
        policy = BoostPolicy([BoostTier(0, 10_000), BoostTier(10, 13_333)])
        assert policy.apply(7, 10) == 7 * 13_333 // 10_000

    @pytest.mark.parametrize("tiers", [
        [],
        [BoostTier(1, 10_000)],
        [BoostTier(0, 12_000)],
        [BoostTier(0, 10_000), BoostTier(DAY, 15_000), BoostTier(DAY, 16_000)],
        [BoostTier(0, 10_000), BoostTier(DAY, 15_000), BoostTier(2 * DAY, 14_000)],
    ])
    def test_invalid_tiers(self, tiers):
        with pytest.raises(ValueError):
            BoostPolicy(tiers)

    def test_custom_policy_in_farm(self, lp_token, reward_token, clock):
        policy = BoostPolicy([BoostTier(0, 10_000), BoostTier(DAY, 30_000)])
        farm = YieldFarmEngine("owner", lp_token, reward_token, 1, clock, boost=policy)
        farm.stake("user1", 10)
        clock.advance(DAY)
        assert farm.pending("user1") == 10 * DAY * 3
