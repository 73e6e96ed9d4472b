"""Fixed-layout account records read from the ORE program.

Program accounts begin with an 8-byte discriminator (one tag byte padded with
zeros) followed by little-endian fields. Token accounts use the SPL layout and
carry no discriminator.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass
from decimal import Decimal
from typing import ClassVar

from solders.pubkey import Pubkey

from .constants import TOKEN_DECIMALS, TOKEN_SYMBOL

DISCRIMINATOR_SIZE = 8


class MalformedRecordError(ValueError):
    """Raised when account bytes do not match the expected record layout."""


def _check_layout(name: str, data: bytes, size: int, discriminator: int | None) -> bytes:
    if len(data) < size:
        raise MalformedRecordError(f"{name} account expects {size} bytes, got {len(data)}")
    if discriminator is not None and data[0] != discriminator:
        raise MalformedRecordError(
            f"{name} account has discriminator {data[0]}, expected {discriminator}"
        )
    return data[DISCRIMINATOR_SIZE:] if discriminator is not None else data


@dataclass(frozen=True)
class Bus:
    DISCRIMINATOR: ClassVar[int] = 100
    SIZE: ClassVar[int] = DISCRIMINATOR_SIZE + 16
    _LAYOUT: ClassVar[struct.Struct] = struct.Struct("<QQ")

    id: int
    rewards: int

    @classmethod
    def from_bytes(cls, data: bytes) -> "Bus":
        body = _check_layout("Bus", data, cls.SIZE, cls.DISCRIMINATOR)
        bus_id, rewards = cls._LAYOUT.unpack_from(body)
        return cls(id=bus_id, rewards=rewards)


@dataclass(frozen=True)
class Proof:
    """Per-miner record holding the current challenge and unclaimed rewards."""

    DISCRIMINATOR: ClassVar[int] = 101
    SIZE: ClassVar[int] = DISCRIMINATOR_SIZE + 88
    _LAYOUT: ClassVar[struct.Struct] = struct.Struct("<32sQ32sQQ")

    authority: Pubkey
    claimable_rewards: int
    hash: bytes
    total_hashes: int
    total_rewards: int

    @classmethod
    def from_bytes(cls, data: bytes) -> "Proof":
        body = _check_layout("Proof", data, cls.SIZE, cls.DISCRIMINATOR)
        authority, claimable, challenge, total_hashes, total_rewards = cls._LAYOUT.unpack_from(
            body
        )
        return cls(
            authority=Pubkey.from_bytes(authority),
            claimable_rewards=claimable,
            hash=challenge,
            total_hashes=total_hashes,
            total_rewards=total_rewards,
        )


@dataclass(frozen=True)
class Treasury:
    DISCRIMINATOR: ClassVar[int] = 102
    SIZE: ClassVar[int] = DISCRIMINATOR_SIZE + 96
    _LAYOUT: ClassVar[struct.Struct] = struct.Struct("<Q32s32sqQQ")

    bump: int
    admin: Pubkey
    difficulty: bytes
    last_reset_at: int
    reward_rate: int
    total_claimed_rewards: int

    @classmethod
    def from_bytes(cls, data: bytes) -> "Treasury":
        body = _check_layout("Treasury", data, cls.SIZE, cls.DISCRIMINATOR)
        bump, admin, difficulty, last_reset_at, reward_rate, claimed = cls._LAYOUT.unpack_from(
            body
        )
        return cls(
            bump=bump,
            admin=Pubkey.from_bytes(admin),
            difficulty=difficulty,
            last_reset_at=last_reset_at,
            reward_rate=reward_rate,
            total_claimed_rewards=claimed,
        )


@dataclass(frozen=True)
class TokenAccount:
    """Leading fields of an SPL token account."""

    SIZE: ClassVar[int] = 165
    _LAYOUT: ClassVar[struct.Struct] = struct.Struct("<32s32sQ")

    mint: Pubkey
    owner: Pubkey
    amount: int

    @classmethod
    def from_bytes(cls, data: bytes) -> "TokenAccount":
        body = _check_layout("Token", data, cls.SIZE, None)
        mint, owner, amount = cls._LAYOUT.unpack_from(body)
        return cls(mint=Pubkey.from_bytes(mint), owner=Pubkey.from_bytes(owner), amount=amount)


def amount_to_decimal(raw_amount: int, decimals: int = TOKEN_DECIMALS) -> Decimal:
    """Scale a raw token amount to whole units without float rounding."""

    return Decimal(int(raw_amount)).scaleb(-decimals)


def format_amount(raw_amount: int, decimals: int = TOKEN_DECIMALS) -> str:
    """Render ``raw_amount`` as ``"<value> ORE"`` with trailing zeros trimmed."""

    value = amount_to_decimal(raw_amount, decimals)
    text = format(value, "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return f"{text} {TOKEN_SYMBOL}"
