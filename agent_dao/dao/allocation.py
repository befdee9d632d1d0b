"""
Token Allocation
================
Integer math for splitting a DAO's token supply.

All amounts use floor division on Python ints. Remainders from
truncation are left unminted rather than redistributed.
"""

from typing import List, Optional, Sequence

from .types import BP_DENOMINATOR, DAOConfig, Participant, TokenAllocation


def _check_bp(bp: int):
    if not 0 <= bp <= BP_DENOMINATOR:
        raise ValueError(f"Basis points out of range: {bp}")


def pool_amount(total_supply: int, bp: int) -> int:
    """Amount of `total_supply` assigned to a pool of `bp` basis points."""
    if total_supply < 0:
        raise ValueError(f"Negative supply: {total_supply}")
    _check_bp(bp)
    return total_supply * bp // BP_DENOMINATOR


def participant_amount(participant_pool: int, allocation_bp: int) -> int:
    """A single participant's share of the participant pool."""
    return pool_amount(participant_pool, allocation_bp)


def equal_split_bp(participant_count: int) -> int:
    """Basis points each of `participant_count` participants receives."""
    if participant_count <= 0:
        raise ValueError("Need at least one participant to split between")
    return BP_DENOMINATOR // participant_count


def calculate_allocations(
    config: DAOConfig,
    proposer: str,
    participants: Sequence[Participant],
    treasury: Optional[str] = None,
    verifier: Optional[str] = None,
) -> List[TokenAllocation]:
    """
    Calculate token allocations for all recipients.

    Order: founder, participants (list order, proposer and zero
    allocations skipped), treasury, verifier. Treasury and verifier
    fall back to placeholder names until their addresses are known.
    """
    total_supply = config.total_supply
    allocations = [
        TokenAllocation(
            recipient=proposer,
            amount=pool_amount(total_supply, config.founder_bp),
            allocation_type="founder",
            allocation_bp=config.founder_bp,
        )
    ]

    participant_pool = pool_amount(total_supply, config.participant_bp)
    for p in participants:
        if p.stacks_address == proposer or p.allocation_bp <= 0:
            continue
        allocations.append(TokenAllocation(
            recipient=p.stacks_address,
            amount=participant_amount(participant_pool, p.allocation_bp),
            allocation_type="participant",
            allocation_bp=p.allocation_bp,
        ))

    allocations.append(TokenAllocation(
        recipient=treasury or "treasury",
        amount=pool_amount(total_supply, config.treasury_bp),
        allocation_type="treasury",
        allocation_bp=config.treasury_bp,
    ))
    allocations.append(TokenAllocation(
        recipient=verifier or "verifier",
        amount=pool_amount(total_supply, config.verifier_bp),
        allocation_type="verifier",
        allocation_bp=config.verifier_bp,
    ))

    return allocations


def format_tokens(amount: int, decimals: int = 8) -> str:
    """Human-readable token amount, e.g. 150,000,000.00."""
    whole, frac = divmod(amount, 10 ** decimals)
    return f"{whole:,}.{frac * 100 // 10 ** decimals:02d}"
