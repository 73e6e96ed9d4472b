"""Compute-budget and priority-fee helpers for ORE transactions."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Sequence

from solders.compute_budget import set_compute_unit_limit, set_compute_unit_price
from solders.instruction import Instruction

from .constants import DEFAULT_COMPUTE_UNIT_LIMIT

logger = logging.getLogger(__name__)

MICRO_LAMPORTS_PER_LAMPORT = 1_000_000
LAMPORTS_PER_SOL = 1_000_000_000
MAX_COMPUTE_UNIT_LIMIT = 1_400_000


def calculate_priority_fee_lamports(price_micro_lamports: int, compute_unit_limit: int) -> int:
    """Return the ceil'd priority fee paid for ``compute_unit_limit`` units."""

    total = price_micro_lamports * compute_unit_limit
    return (total + MICRO_LAMPORTS_PER_LAMPORT - 1) // MICRO_LAMPORTS_PER_LAMPORT


@dataclass(frozen=True)
class FeePolicy:
    """Price per compute unit applied to every transaction."""

    priority_fee: int = 0

    def __post_init__(self) -> None:
        if self.priority_fee < 0:
            raise ValueError("Priority fee must be non-negative")

    def budget_instructions(self, compute_unit_limit: int | None = None) -> List[Instruction]:
        """Return the limit and price instructions, in that order."""

        limit = DEFAULT_COMPUTE_UNIT_LIMIT if compute_unit_limit is None else compute_unit_limit
        if not 0 < limit <= MAX_COMPUTE_UNIT_LIMIT:
            raise ValueError(
                f"Compute unit limit must be in (0, {MAX_COMPUTE_UNIT_LIMIT}], got {limit}"
            )
        logger.debug(
            "Compute budget limit=%d price=%d micro-lamports/CU", limit, self.priority_fee
        )
        return [set_compute_unit_limit(limit), set_compute_unit_price(self.priority_fee)]

    def with_budget(
        self, instructions: Sequence[Instruction], compute_unit_limit: int | None = None
    ) -> List[Instruction]:
        return self.budget_instructions(compute_unit_limit) + list(instructions)

    def max_priority_fee_lamports(self, compute_unit_limit: int | None = None) -> int:
        limit = DEFAULT_COMPUTE_UNIT_LIMIT if compute_unit_limit is None else compute_unit_limit
        return calculate_priority_fee_lamports(self.priority_fee, limit)


def format_lamports(lamports: int) -> str:
    """Format a lamport amount for user-facing logs."""

    sol = lamports / LAMPORTS_PER_SOL
    return f"{lamports} lamports ({sol:.9f} SOL)"
