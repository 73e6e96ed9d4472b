"""Pure encoders for ORE program and associated-token instructions.

Every function here is deterministic: identical arguments always produce an
identical ``Instruction``. None of them touch the network.
"""

from __future__ import annotations

import struct
from enum import IntEnum
from functools import lru_cache
from typing import List, Tuple

from solders.instruction import AccountMeta, Instruction
from solders.pubkey import Pubkey

from .constants import (
    ASSOCIATED_TOKEN_PROGRAM,
    BUS_COUNT,
    BUS_SEED,
    MINT_ADDRESS,
    MINT_NOISE,
    MINT_SEED,
    ORE_PROGRAM_ID,
    PROOF_SEED,
    RENT_SYSVAR,
    SLOT_HASHES_SYSVAR,
    SYSTEM_PROGRAM,
    TOKEN_PROGRAM,
    TREASURY_SEED,
)


class OreInstruction(IntEnum):
    RESET = 0
    REGISTER = 1
    MINE = 2
    CLAIM = 3
    INITIALIZE = 100
    UPDATE_ADMIN = 101
    UPDATE_DIFFICULTY = 102


# Program-derived addresses --------------------------------------------------


@lru_cache(maxsize=None)
def bus_pda(bus_id: int) -> Tuple[Pubkey, int]:
    return Pubkey.find_program_address([BUS_SEED, bytes([bus_id])], ORE_PROGRAM_ID)


def proof_pda(authority: Pubkey) -> Tuple[Pubkey, int]:
    return Pubkey.find_program_address([PROOF_SEED, bytes(authority)], ORE_PROGRAM_ID)


@lru_cache(maxsize=None)
def treasury_pda() -> Tuple[Pubkey, int]:
    return Pubkey.find_program_address([TREASURY_SEED], ORE_PROGRAM_ID)


@lru_cache(maxsize=None)
def mint_pda() -> Tuple[Pubkey, int]:
    return Pubkey.find_program_address([MINT_SEED, MINT_NOISE], ORE_PROGRAM_ID)


def associated_token_address(owner: Pubkey, mint: Pubkey = MINT_ADDRESS) -> Pubkey:
    """Derive the canonical token account of ``owner`` for ``mint``."""

    seeds = [bytes(owner), bytes(TOKEN_PROGRAM), bytes(mint)]
    return Pubkey.find_program_address(seeds, ASSOCIATED_TOKEN_PROGRAM)[0]


def treasury_tokens_address() -> Pubkey:
    return associated_token_address(treasury_pda()[0], MINT_ADDRESS)


def bus_addresses() -> List[Pubkey]:
    return [bus_pda(bus_id)[0] for bus_id in range(BUS_COUNT)]


# Instruction encoders -------------------------------------------------------


def _ore_instruction(tag: OreInstruction, payload: bytes, accounts: List[AccountMeta]) -> Instruction:
    return Instruction(ORE_PROGRAM_ID, bytes([tag]) + payload, accounts)


def _signer(pubkey: Pubkey) -> AccountMeta:
    return AccountMeta(pubkey, is_signer=True, is_writable=True)


def _writable(pubkey: Pubkey) -> AccountMeta:
    return AccountMeta(pubkey, is_signer=False, is_writable=True)


def _readonly(pubkey: Pubkey) -> AccountMeta:
    return AccountMeta(pubkey, is_signer=False, is_writable=False)


def register(signer: Pubkey) -> Instruction:
    """Create the proof account for ``signer``."""

    proof, bump = proof_pda(signer)
    return _ore_instruction(
        OreInstruction.REGISTER,
        bytes([bump]),
        [_signer(signer), _writable(proof), _readonly(SYSTEM_PROGRAM)],
    )


def mine(signer: Pubkey, bus: Pubkey, solution_hash: bytes, nonce: int) -> Instruction:
    if len(solution_hash) != 32:
        raise ValueError("Solution hash must be 32 bytes")
    return _ore_instruction(
        OreInstruction.MINE,
        bytes(solution_hash) + struct.pack("<Q", nonce),
        [
            _signer(signer),
            _writable(bus),
            _writable(proof_pda(signer)[0]),
            _readonly(treasury_pda()[0]),
            _readonly(SLOT_HASHES_SYSVAR),
        ],
    )


def claim(signer: Pubkey, beneficiary: Pubkey, amount: int) -> Instruction:
    if amount <= 0:
        raise ValueError("Claim amount must be positive")
    return _ore_instruction(
        OreInstruction.CLAIM,
        struct.pack("<Q", amount),
        [
            _signer(signer),
            _writable(beneficiary),
            _writable(proof_pda(signer)[0]),
            _readonly(treasury_pda()[0]),
            _writable(treasury_tokens_address()),
            _readonly(TOKEN_PROGRAM),
        ],
    )


def reset(signer: Pubkey) -> Instruction:
    """Start a new epoch, topping every bus back up."""

    accounts = [_signer(signer)]
    accounts.extend(_writable(address) for address in bus_addresses())
    accounts.extend(
        [
            _writable(MINT_ADDRESS),
            _writable(treasury_pda()[0]),
            _writable(treasury_tokens_address()),
            _readonly(TOKEN_PROGRAM),
        ]
    )
    return _ore_instruction(OreInstruction.RESET, b"", accounts)


def initialize(signer: Pubkey) -> Instruction:
    bus_bumps = bytes(bus_pda(bus_id)[1] for bus_id in range(BUS_COUNT))
    mint, mint_bump = mint_pda()
    treasury, treasury_bump = treasury_pda()
    accounts = [_signer(signer)]
    accounts.extend(_writable(address) for address in bus_addresses())
    accounts.extend(
        [
            _writable(mint),
            _writable(treasury),
            _writable(associated_token_address(treasury, mint)),
            _readonly(SYSTEM_PROGRAM),
            _readonly(TOKEN_PROGRAM),
            _readonly(ASSOCIATED_TOKEN_PROGRAM),
            _readonly(RENT_SYSVAR),
        ]
    )
    return _ore_instruction(
        OreInstruction.INITIALIZE, bus_bumps + bytes([mint_bump, treasury_bump]), accounts
    )


def update_admin(signer: Pubkey, new_admin: Pubkey) -> Instruction:
    return _ore_instruction(
        OreInstruction.UPDATE_ADMIN,
        bytes(new_admin),
        [_signer(signer), _writable(treasury_pda()[0])],
    )


def update_difficulty(signer: Pubkey, difficulty: bytes) -> Instruction:
    if len(difficulty) != 32:
        raise ValueError("Difficulty must be 32 bytes")
    return _ore_instruction(
        OreInstruction.UPDATE_DIFFICULTY,
        bytes(difficulty),
        [_signer(signer), _writable(treasury_pda()[0])],
    )


def create_associated_token_account(
    payer: Pubkey, owner: Pubkey, mint: Pubkey = MINT_ADDRESS
) -> Instruction:
    accounts = [
        _signer(payer),
        _writable(associated_token_address(owner, mint)),
        _readonly(owner),
        _readonly(mint),
        _readonly(SYSTEM_PROGRAM),
        _readonly(TOKEN_PROGRAM),
    ]
    # Tag 0 is the non-idempotent Create; callers check existence first.
    return Instruction(ASSOCIATED_TOKEN_PROGRAM, bytes([0]), accounts)
