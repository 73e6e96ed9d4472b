import struct

import pytest
from solders.pubkey import Pubkey

from ore_cli import instructions as ix
from ore_cli.constants import (
    ASSOCIATED_TOKEN_PROGRAM,
    MINT_ADDRESS,
    ORE_PROGRAM_ID,
    SLOT_HASHES_SYSVAR,
    SYSTEM_PROGRAM,
    TOKEN_PROGRAM,
)


def _metas(instruction):
    return [(meta.pubkey, meta.is_signer, meta.is_writable) for meta in instruction.accounts]


def test_register_carries_proof_bump() -> None:
    signer = Pubkey.new_unique()
    proof, bump = ix.proof_pda(signer)

    instruction = ix.register(signer)

    assert instruction.program_id == ORE_PROGRAM_ID
    assert bytes(instruction.data) == bytes([ix.OreInstruction.REGISTER, bump])
    assert _metas(instruction) == [
        (signer, True, True),
        (proof, False, True),
        (SYSTEM_PROGRAM, False, False),
    ]


def test_mine_encodes_hash_and_nonce() -> None:
    signer = Pubkey.new_unique()
    bus = ix.bus_pda(4)[0]
    solution = bytes(range(32))

    instruction = ix.mine(signer, bus, solution, 1234)

    assert bytes(instruction.data) == bytes([2]) + solution + struct.pack("<Q", 1234)
    metas = _metas(instruction)
    assert metas[1] == (bus, False, True)
    assert metas[-1] == (SLOT_HASHES_SYSVAR, False, False)


def test_mine_rejects_short_hash() -> None:
    with pytest.raises(ValueError):
        ix.mine(Pubkey.new_unique(), ix.bus_pda(0)[0], b"\x00" * 31, 0)


def test_claim_encodes_exact_amount() -> None:
    signer, beneficiary = Pubkey.new_unique(), Pubkey.new_unique()

    instruction = ix.claim(signer, beneficiary, 1_000_000_000)

    assert bytes(instruction.data) == bytes([3]) + (1_000_000_000).to_bytes(8, "little")
    metas = _metas(instruction)
    assert metas[1] == (beneficiary, False, True)
    assert metas[4] == (ix.treasury_tokens_address(), False, True)
    assert metas[5] == (TOKEN_PROGRAM, False, False)


def test_claim_rejects_zero_amount() -> None:
    with pytest.raises(ValueError):
        ix.claim(Pubkey.new_unique(), Pubkey.new_unique(), 0)


def test_reset_touches_every_bus() -> None:
    instruction = ix.reset(Pubkey.new_unique())

    assert bytes(instruction.data) == bytes([0])
    addresses = [meta.pubkey for meta in instruction.accounts]
    assert addresses[1:9] == ix.bus_addresses()
    assert MINT_ADDRESS in addresses


def test_initialize_lists_all_bumps() -> None:
    instruction = ix.initialize(Pubkey.new_unique())

    data = bytes(instruction.data)
    assert data[0] == ix.OreInstruction.INITIALIZE
    assert len(data) == 1 + 8 + 2
    assert data[1:9] == bytes(ix.bus_pda(bus_id)[1] for bus_id in range(8))
    assert data[9] == ix.mint_pda()[1]
    assert data[10] == ix.treasury_pda()[1]


def test_update_admin_and_difficulty_payloads() -> None:
    signer, new_admin = Pubkey.new_unique(), Pubkey.new_unique()
    difficulty = bytes(3) + b"\xff" * 29

    admin_ix = ix.update_admin(signer, new_admin)
    difficulty_ix = ix.update_difficulty(signer, difficulty)

    assert bytes(admin_ix.data) == bytes([101]) + bytes(new_admin)
    assert bytes(difficulty_ix.data) == bytes([102]) + difficulty
    assert _metas(admin_ix)[1] == (ix.treasury_pda()[0], False, True)
    with pytest.raises(ValueError):
        ix.update_difficulty(signer, b"\x00")


def test_create_associated_token_account() -> None:
    owner = Pubkey.new_unique()

    instruction = ix.create_associated_token_account(owner, owner)

    assert instruction.program_id == ASSOCIATED_TOKEN_PROGRAM
    assert bytes(instruction.data) == bytes([0])
    assert _metas(instruction)[1] == (ix.associated_token_address(owner), False, True)


def test_encoders_are_deterministic() -> None:
    signer = Pubkey.new_unique()
    assert ix.register(signer) == ix.register(signer)
    assert ix.claim(signer, signer, 7) == ix.claim(signer, signer, 7)
    assert ix.bus_addresses() == ix.bus_addresses()
    assert len(set(ix.bus_addresses())) == 8
