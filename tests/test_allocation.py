"""
Unit Tests for Token Allocation
===============================
Floor-division splits of the token supply.

Run: python -m pytest tests/test_allocation.py -v
"""

import random

import pytest

from agent_dao.dao.allocation import (
    calculate_allocations,
    equal_split_bp,
    format_tokens,
    participant_amount,
    pool_amount,
)
from agent_dao.dao.types import DAOConfig, Participant

from conftest import PROPOSER, make_address


@pytest.fixture
def config():
    return DAOConfig(name="PoetAI", symbol="POET", description="AI poetry")


def random_splits(rng):
    """Four non-negative basis-point weights summing to 10000."""
    cuts = sorted(rng.randint(0, 10000) for _ in range(3))
    return [cuts[0], cuts[1] - cuts[0], cuts[2] - cuts[1], 10000 - cuts[2]]


# ============================================================
# Pool Amounts
# ============================================================

class TestPoolAmounts:
    """Top-level founder/participant/treasury/verifier amounts."""

    def test_default_split(self, config):
        """Default 50/30/15/5 split of 1B tokens with 8 decimals."""
        supply = config.total_supply
        assert pool_amount(supply, 5000) == 50_000_000_000_000_000
        assert pool_amount(supply, 3000) == 30_000_000_000_000_000
        assert pool_amount(supply, 1500) == 15_000_000_000_000_000
        assert pool_amount(supply, 500) == 5_000_000_000_000_000

    def test_floor_division(self):
        """Amounts round down."""
        assert pool_amount(999, 3333) == 332  # 332.9667

    def test_exact_beyond_float_precision(self):
        """Supplies above 2^53 stay exact."""
        supply = 2 ** 70 + 7
        assert pool_amount(supply, 3333) == supply * 3333 // 10000
        assert pool_amount(supply, 10000) == supply

    def test_random_splits_never_exceed_supply(self):
        """Amounts sum to at most the supply, each equal to floor(S*bp/10000)."""
        rng = random.Random(1234)
        for _ in range(200):
            supply = rng.randint(0, 10 ** 24)
            splits = random_splits(rng)
            amounts = [pool_amount(supply, bp) for bp in splits]

            assert sum(amounts) <= supply
            for amount, bp in zip(amounts, splits):
                assert amount == supply * bp // 10000

    def test_no_remainder_means_exact_sum(self):
        """Sum equals supply when every split divides evenly."""
        amounts = [pool_amount(10_000, bp) for bp in (5000, 3000, 1500, 500)]
        assert sum(amounts) == 10_000

    def test_out_of_range_bp_rejected(self):
        with pytest.raises(ValueError):
            pool_amount(1000, 10001)
        with pytest.raises(ValueError):
            pool_amount(1000, -1)

    def test_negative_supply_rejected(self):
        with pytest.raises(ValueError):
            pool_amount(-1, 100)

    def test_participant_amount(self):
        """Second floor-division pass over the participant pool."""
        pool = 30_000_000_000_000_000
        assert participant_amount(pool, 3333) == 9_999_000_000_000_000


# ============================================================
# Equal Split
# ============================================================

class TestEqualSplit:
    """Equal split of the participant pool."""

    @pytest.mark.parametrize("count", [1, 2, 3, 7, 9, 49])
    def test_split_never_exceeds_pool(self, count):
        share = equal_split_bp(count)
        assert share == 10000 // count
        assert count * share <= 10000

    def test_remainder_is_not_redistributed(self):
        """3 participants get 3333 bp each; 1 bp stays unallocated."""
        assert equal_split_bp(3) == 3333

    def test_zero_participants_rejected(self):
        with pytest.raises(ValueError):
            equal_split_bp(0)


# ============================================================
# Full Allocation Table
# ============================================================

class TestCalculateAllocations:
    """Allocation list for a whole proposal."""

    def test_order_and_types(self, config):
        participants = [
            Participant(PROPOSER, "founder", allocation_bp=10000),
            Participant(make_address(1), "a", allocation_bp=5000),
            Participant(make_address(2), "b", allocation_bp=5000),
        ]

        allocations = calculate_allocations(config, PROPOSER, participants)

        assert [a.allocation_type for a in allocations] == [
            "founder", "participant", "participant", "treasury", "verifier",
        ]
        assert allocations[0].recipient == PROPOSER
        assert allocations[1].amount == 15_000_000_000_000_000
        assert allocations[3].recipient == "treasury"
        assert allocations[4].recipient == "verifier"

    def test_zero_allocation_skipped(self, config):
        participants = [
            Participant(PROPOSER, "founder", allocation_bp=10000),
            Participant(make_address(1), "a", allocation_bp=0),
            Participant(make_address(2), "b", allocation_bp=10000),
        ]

        allocations = calculate_allocations(config, PROPOSER, participants)
        recipients = [a.recipient for a in allocations if a.allocation_type == "participant"]

        assert recipients == [make_address(2)]

    def test_real_addresses_used_when_known(self, config):
        allocations = calculate_allocations(
            config, PROPOSER, [], treasury="SP1.treasury", verifier=make_address(9)
        )
        assert allocations[-2].recipient == "SP1.treasury"
        assert allocations[-1].recipient == make_address(9)

    def test_total_never_exceeds_supply(self, config):
        participants = [Participant(PROPOSER, "founder", allocation_bp=10000)] + [
            Participant(make_address(i), f"agent-{i}", allocation_bp=equal_split_bp(7))
            for i in range(1, 8)
        ]

        allocations = calculate_allocations(config, PROPOSER, participants)

        assert sum(a.amount for a in allocations) <= config.total_supply


def test_format_tokens():
    assert format_tokens(150_000_000_000_000) == "1,500,000.00"
    assert format_tokens(123_456_789) == "1.23"
