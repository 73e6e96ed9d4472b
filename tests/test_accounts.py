from __future__ import annotations

import base64
import struct

import pytest
from solders.pubkey import Pubkey

from ore_cli.accounts import AccountNotFoundError, AccountReader
from ore_cli.instructions import associated_token_address, bus_pda, proof_pda
from ore_cli.rpc_client import RPCError, RPCTransportError


def _bus_bytes(bus_id: int, rewards: int, tag: int = 100) -> bytes:
    return bytes([tag]) + bytes(7) + struct.pack("<QQ", bus_id, rewards)


class StubRPC:
    def __init__(self, accounts: dict[str, bytes] | None = None, errors: dict | None = None) -> None:
        self.accounts = accounts or {}
        self.errors = errors or {}
        self.requested: list[str] = []

    def get_account_info(self, address: str, commitment=None):
        self.requested.append(address)
        if address in self.errors:
            raise self.errors[address]
        data = self.accounts.get(address)
        if data is None:
            return None
        return {"data": [base64.b64encode(data).decode(), "base64"], "owner": "x", "lamports": 1}


def _all_busses() -> dict[str, bytes]:
    return {str(bus_pda(bus_id)[0]): _bus_bytes(bus_id, 1_000 * bus_id) for bus_id in range(8)}


def test_fetch_missing_account_raises_not_found() -> None:
    reader = AccountReader(StubRPC())  # type: ignore[arg-type]
    address = Pubkey.new_unique()

    with pytest.raises(AccountNotFoundError) as excinfo:
        reader.fetch(address)

    assert excinfo.value.address == str(address)
    assert reader.exists(address) is False


def test_fetch_rejects_unexpected_data_shape() -> None:
    class OddRPC(StubRPC):
        def get_account_info(self, address, commitment=None):
            return {"data": {"parsed": {}}}

    with pytest.raises(RPCTransportError):
        AccountReader(OddRPC()).fetch(Pubkey.new_unique())  # type: ignore[arg-type]


def test_get_proof_reads_derived_address() -> None:
    authority = Pubkey.new_unique()
    proof_data = bytes([101]) + bytes(7) + struct.pack("<32sQ32sQQ", bytes(authority), 5, bytes(32), 0, 0)
    rpc = StubRPC({str(proof_pda(authority)[0]): proof_data})

    proof = AccountReader(rpc).get_proof(authority)  # type: ignore[arg-type]

    assert proof.claimable_rewards == 5
    assert rpc.requested == [str(proof_pda(authority)[0])]


def test_token_balance_is_zero_without_token_account() -> None:
    reader = AccountReader(StubRPC())  # type: ignore[arg-type]
    assert reader.get_token_balance(Pubkey.new_unique()) == 0


def test_token_balance_reads_amount() -> None:
    owner = Pubkey.new_unique()
    data = bytes(32) + bytes(owner) + struct.pack("<Q", 3_000_000_000) + bytes(93)
    rpc = StubRPC({str(associated_token_address(owner)): data})

    assert AccountReader(rpc).get_token_balance(owner) == 3_000_000_000  # type: ignore[arg-type]


def test_scan_busses_skips_malformed_missing_and_failing_entries() -> None:
    accounts = _all_busses()
    accounts[str(bus_pda(5)[0])] = _bus_bytes(5, 0, tag=102)
    del accounts[str(bus_pda(6)[0])]
    errors = {str(bus_pda(7)[0]): RPCError(-32600, "invalid request")}
    reader = AccountReader(StubRPC(accounts, errors))  # type: ignore[arg-type]

    busses = list(reader.scan_busses())

    assert [bus.id for bus in busses] == [0, 1, 2, 3, 4]
    assert busses[3].rewards == 3_000


def test_scan_busses_propagates_transport_errors() -> None:
    errors = {str(bus_pda(0)[0]): RPCTransportError("down")}
    reader = AccountReader(StubRPC(_all_busses(), errors))  # type: ignore[arg-type]

    with pytest.raises(RPCTransportError):
        list(reader.scan_busses())
