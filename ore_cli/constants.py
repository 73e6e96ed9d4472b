"""Program addresses, seeds and limits for the ORE mining program."""

from __future__ import annotations

from typing import Final

from solders.pubkey import Pubkey

# Programs
ORE_PROGRAM_ID: Final[Pubkey] = Pubkey.from_string("mineRHF5r6S7HyD9SppBfVMXMavDkJsxwGesEvxZr2A")
SYSTEM_PROGRAM: Final[Pubkey] = Pubkey.from_string("11111111111111111111111111111111")
TOKEN_PROGRAM: Final[Pubkey] = Pubkey.from_string("TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA")
ASSOCIATED_TOKEN_PROGRAM: Final[Pubkey] = Pubkey.from_string(
    "ATokenGPvbdGVxr1b2hvZbsiqW5xWH25efTNsLJA8knL"
)

# Sysvars
RENT_SYSVAR: Final[Pubkey] = Pubkey.from_string("SysvarRent111111111111111111111111111111111")
SLOT_HASHES_SYSVAR: Final[Pubkey] = Pubkey.from_string(
    "SysvarS1otHashes111111111111111111111111111"
)

# Token
MINT_ADDRESS: Final[Pubkey] = Pubkey.from_string("oreoN2tQbHXVaZsr3pf66A48miqcBXCDJozganhEJgz")
TOKEN_DECIMALS: Final[int] = 9
TOKEN_SYMBOL: Final[str] = "ORE"

# PDA seeds
BUS_SEED: Final[bytes] = b"bus"
PROOF_SEED: Final[bytes] = b"proof"
TREASURY_SEED: Final[bytes] = b"treasury"
MINT_SEED: Final[bytes] = b"mint"
MINT_NOISE: Final[bytes] = bytes(
    [166, 199, 85, 221, 225, 119, 21, 185, 160, 82, 242, 237, 194, 84, 250, 252]
)

BUS_COUNT: Final[int] = 8
EPOCH_DURATION_SECONDS: Final[int] = 60

# Compute unit ceilings per instruction family
CU_LIMIT_REGISTER: Final[int] = 7_660
CU_LIMIT_CLAIM: Final[int] = 11_000
CU_LIMIT_ATA: Final[int] = 24_000
CU_LIMIT_MINE: Final[int] = 3_200
CU_LIMIT_RESET: Final[int] = 12_200
CU_LIMIT_ADMIN: Final[int] = 200_000
DEFAULT_COMPUTE_UNIT_LIMIT: Final[int] = 200_000

# Difficulty applied by ``update-difficulty`` when none is given: four leading zero bytes.
DEFAULT_DIFFICULTY: Final[bytes] = bytes(4) + b"\xff" * 28
