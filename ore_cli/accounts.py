"""Read and decode on-chain accounts."""

from __future__ import annotations

import base64
import binascii
import logging
from typing import Iterator, Protocol, Type, TypeVar

from solders.pubkey import Pubkey

from .constants import BUS_COUNT, MINT_ADDRESS
from .instructions import associated_token_address, bus_pda, proof_pda, treasury_pda
from .rpc_client import RPCError, RPCTransportError, SolanaRPCClient
from .state import Bus, MalformedRecordError, Proof, TokenAccount, Treasury

logger = logging.getLogger(__name__)


class AccountNotFoundError(LookupError):
    """Raised when an account does not exist on the ledger."""

    def __init__(self, address: Pubkey | str) -> None:
        super().__init__(f"Account {address} not found")
        self.address = str(address)


class _Record(Protocol):
    @classmethod
    def from_bytes(cls, data: bytes): ...  # pragma: no cover - protocol


RecordT = TypeVar("RecordT", bound=_Record)


class AccountReader:
    """Fetch raw account bytes and decode them into typed records."""

    def __init__(self, rpc: SolanaRPCClient) -> None:
        self.rpc = rpc

    def fetch(self, address: Pubkey | str) -> bytes:
        value = self.rpc.get_account_info(str(address))
        if value is None:
            raise AccountNotFoundError(address)
        data = value.get("data")
        if isinstance(data, list) and data:
            encoded = data[0]
        elif isinstance(data, str):
            encoded = data
        else:
            raise RPCTransportError(f"Unexpected account data format for {address}")
        try:
            return base64.b64decode(encoded)
        except (binascii.Error, ValueError) as exc:
            raise RPCTransportError(f"Account data for {address} is not valid base64") from exc

    def exists(self, address: Pubkey | str) -> bool:
        try:
            self.fetch(address)
        except AccountNotFoundError:
            return False
        return True

    @staticmethod
    def decode(record_type: Type[RecordT], data: bytes) -> RecordT:
        return record_type.from_bytes(data)

    def fetch_record(self, record_type: Type[RecordT], address: Pubkey | str) -> RecordT:
        return self.decode(record_type, self.fetch(address))

    # Typed lookups ----------------------------------------------------------

    def get_proof(self, authority: Pubkey) -> Proof:
        return self.fetch_record(Proof, proof_pda(authority)[0])

    def get_treasury(self) -> Treasury:
        return self.fetch_record(Treasury, treasury_pda()[0])

    def get_token_balance(self, owner: Pubkey, mint: Pubkey = MINT_ADDRESS) -> int:
        """Return the raw token balance held in ``owner``'s associated account."""

        address = associated_token_address(owner, mint)
        try:
            account = self.fetch_record(TokenAccount, address)
        except AccountNotFoundError:
            return 0
        return account.amount

    def scan_busses(self) -> Iterator[Bus]:
        """Yield every readable bus; unreadable entries are skipped."""

        for bus_id in range(BUS_COUNT):
            address = bus_pda(bus_id)[0]
            try:
                yield self.fetch_record(Bus, address)
            except (AccountNotFoundError, MalformedRecordError, RPCError) as exc:
                logger.debug("Skipping bus %d at %s: %s", bus_id, address, exc)
