"""Turn logical actions into instruction plans.

Each state-mutating action is split in two: a pure ``decide_*`` function that
maps already-read chain state to an ``ActionPlan``, and a ``plan_*`` wrapper
that reads that state through an ``AccountReader``. A plan with no
instructions is a no-op and must not be submitted.
"""

from __future__ import annotations

import logging
import random
import time
from dataclasses import dataclass
from typing import Callable, Iterable, Tuple

from solders.instruction import Instruction
from solders.pubkey import Pubkey

from . import instructions as ix
from .accounts import AccountReader
from .constants import (
    BUS_COUNT,
    CU_LIMIT_ADMIN,
    CU_LIMIT_ATA,
    CU_LIMIT_CLAIM,
    CU_LIMIT_MINE,
    CU_LIMIT_REGISTER,
    CU_LIMIT_RESET,
    EPOCH_DURATION_SECONDS,
)
from .state import Bus, Proof, Treasury

logger = logging.getLogger(__name__)

ALREADY_REGISTERED = "already registered"
NOTHING_TO_CLAIM = "nothing to claim"


@dataclass(frozen=True)
class ActionPlan:
    instructions: Tuple[Instruction, ...] = ()
    compute_unit_limit: int | None = None
    skip_reason: str | None = None

    @property
    def is_noop(self) -> bool:
        return not self.instructions


@dataclass(frozen=True)
class DestinationPlan:
    address: Pubkey
    instructions: Tuple[Instruction, ...] = ()


@dataclass(frozen=True)
class ClaimPlan(ActionPlan):
    amount: int = 0
    destination: Pubkey | None = None


# Register -------------------------------------------------------------------


def decide_register(signer: Pubkey, proof_exists: bool) -> ActionPlan:
    if proof_exists:
        return ActionPlan(skip_reason=ALREADY_REGISTERED)
    return ActionPlan(instructions=(ix.register(signer),), compute_unit_limit=CU_LIMIT_REGISTER)


def plan_register(reader: AccountReader, signer: Pubkey) -> ActionPlan:
    return decide_register(signer, reader.exists(ix.proof_pda(signer)[0]))


# Destination token account ----------------------------------------------------


def decide_destination(owner: Pubkey, account_exists: bool) -> DestinationPlan:
    address = ix.associated_token_address(owner)
    if account_exists:
        return DestinationPlan(address=address)
    return DestinationPlan(
        address=address,
        instructions=(ix.create_associated_token_account(owner, owner),),
    )


def plan_destination(reader: AccountReader, owner: Pubkey) -> DestinationPlan:
    return decide_destination(owner, reader.exists(ix.associated_token_address(owner)))


# Claim ----------------------------------------------------------------------


def decide_claim(signer: Pubkey, proof: Proof, destination: DestinationPlan) -> ClaimPlan:
    """Claim exactly what the proof says is owed, or nothing at all."""

    amount = proof.claimable_rewards
    if amount <= 0:
        return ClaimPlan(skip_reason=NOTHING_TO_CLAIM, destination=destination.address)
    compute_units = CU_LIMIT_CLAIM + (CU_LIMIT_ATA if destination.instructions else 0)
    return ClaimPlan(
        instructions=destination.instructions
        + (ix.claim(signer, destination.address, amount),),
        compute_unit_limit=compute_units,
        amount=amount,
        destination=destination.address,
    )


def plan_claim(reader: AccountReader, signer: Pubkey) -> ClaimPlan:
    proof = reader.get_proof(signer)
    if proof.claimable_rewards <= 0:
        return ClaimPlan(skip_reason=NOTHING_TO_CLAIM)
    return decide_claim(signer, proof, plan_destination(reader, signer))


# Mining ---------------------------------------------------------------------


def epoch_elapsed(treasury: Treasury, now: float) -> bool:
    return treasury.last_reset_at + EPOCH_DURATION_SECONDS <= int(now)


def select_bus(
    busses: Iterable[Bus], reward_rate: int, choice: Callable = random.choice
) -> int:
    """Pick a random bus that can still pay out one reward."""

    candidates = [bus.id for bus in busses if bus.rewards >= reward_rate]
    if not candidates:
        raise LookupError("No bus has enough rewards left this epoch")
    return choice(candidates)


def decide_mine(
    signer: Pubkey,
    bus_id: int,
    solution_hash: bytes,
    nonce: int,
    needs_reset: bool = False,
) -> ActionPlan:
    mine_ix = ix.mine(signer, ix.bus_pda(bus_id)[0], solution_hash, nonce)
    if needs_reset:
        return ActionPlan(
            instructions=(ix.reset(signer), mine_ix),
            compute_unit_limit=CU_LIMIT_RESET + CU_LIMIT_MINE,
        )
    return ActionPlan(instructions=(mine_ix,), compute_unit_limit=CU_LIMIT_MINE)


def plan_mine(
    reader: AccountReader,
    signer: Pubkey,
    solution_hash: bytes,
    nonce: int,
    now: Callable[[], float] = time.time,
) -> ActionPlan:
    treasury = reader.get_treasury()
    needs_reset = epoch_elapsed(treasury, now())
    if needs_reset:
        # A reset refills every bus, so any of them will do.
        bus_id = random.randrange(BUS_COUNT)
    else:
        bus_id = select_bus(reader.scan_busses(), treasury.reward_rate)
    logger.debug("Submitting solution via bus %d (reset=%s)", bus_id, needs_reset)
    return decide_mine(signer, bus_id, solution_hash, nonce, needs_reset=needs_reset)


# Administrative -------------------------------------------------------------


def plan_initialize(signer: Pubkey) -> ActionPlan:
    return ActionPlan(instructions=(ix.initialize(signer),), compute_unit_limit=CU_LIMIT_ADMIN)


def plan_update_admin(signer: Pubkey, new_admin: Pubkey) -> ActionPlan:
    return ActionPlan(
        instructions=(ix.update_admin(signer, new_admin),), compute_unit_limit=CU_LIMIT_ADMIN
    )


def plan_update_difficulty(signer: Pubkey, difficulty: bytes) -> ActionPlan:
    return ActionPlan(
        instructions=(ix.update_difficulty(signer, difficulty),),
        compute_unit_limit=CU_LIMIT_ADMIN,
    )
