"""JSON-RPC client for Solana compatible nodes.

The client is the only component that talks to the network. It forwards
well-typed requests and surfaces failures as two exception families:
``RPCTransportError`` when the node cannot be reached or answers garbage, and
``RPCError`` when the node answers with a JSON-RPC error object.
"""

from __future__ import annotations

import json
import logging
import uuid
from typing import Any, Dict, Optional, Sequence

import requests
from requests import RequestException, Response

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30

# Solana surfaces preflight simulation failures under this JSON-RPC code.
SEND_TRANSACTION_PREFLIGHT_FAILURE = -32002
BLOCKHASH_NOT_FOUND = "blockhash not found"


class RPCError(RuntimeError):
    """Raised when the node responds with a JSON-RPC error."""

    def __init__(self, code: int, message: str, data: Any = None) -> None:
        super().__init__(f"RPC error {code}: {message}")
        self.code = code
        self.message = message
        self.data = data

    @property
    def is_blockhash_not_found(self) -> bool:
        if BLOCKHASH_NOT_FOUND in self.message.lower():
            return True
        if isinstance(self.data, dict):
            err = self.data.get("err")
            return err == "BlockhashNotFound"
        return False


class RPCTransportError(RuntimeError):
    """Raised when the RPC endpoint is unreachable or returns malformed data."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


def format_rpc_hint(error_obj: dict[str, Any] | RPCError | None) -> str | None:
    """Return a human-friendly hint for common Solana JSON-RPC failures."""

    if error_obj is None:
        return None

    code = None
    message = ""
    if isinstance(error_obj, RPCError):
        code = error_obj.code
        message = error_obj.message
    elif isinstance(error_obj, dict):
        code = error_obj.get("code")
        message = str(error_obj.get("message", ""))
    lowered = message.lower()

    if BLOCKHASH_NOT_FOUND in lowered:
        return "The blockhash expired before the node saw the transaction; retry the command."
    if "insufficient funds" in lowered or "insufficient lamports" in lowered:
        return "The fee payer cannot cover fees or rent. Fund the keypair with SOL and retry."
    if code == SEND_TRANSACTION_PREFLIGHT_FAILURE:
        return (
            "The node simulated the transaction and it failed. Inspect the program logs above; "
            "the instruction arguments or account state are likely wrong."
        )
    if code == 429 or "too many requests" in lowered:
        return "The RPC provider is rate limiting requests. Use a dedicated endpoint via --rpc."
    return None


class SolanaRPCClient:
    """Typed JSON-RPC client for a Solana node.

    Each helper maps to one RPC method and returns the ``result`` member of
    the response, lightly unwrapped where the node nests values under
    ``{"context": ..., "value": ...}``.
    """

    def __init__(
        self,
        url: str,
        commitment: str = "confirmed",
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        self.url = url
        self.commitment = commitment
        self.timeout = timeout
        self._session = requests.Session()

    def call(self, method: str, params: Optional[list[Any]] = None) -> Any:
        """Perform a JSON-RPC request."""

        payload = {
            "jsonrpc": "2.0",
            "id": str(uuid.uuid4()),
            "method": method,
            "params": params or [],
        }
        logger.debug("RPC call %s params=%s", method, params)
        try:
            response = self._session.post(
                self.url,
                data=json.dumps(payload),
                headers={"content-type": "application/json"},
                timeout=self.timeout,
            )
        except RequestException as exc:
            logger.error(
                "RPC connection failed: %s",
                exc,
                exc_info=logger.isEnabledFor(logging.DEBUG),
            )
            raise RPCTransportError(
                f"RPC connection to {self.url} failed. Ensure the node is reachable or pass --rpc."
            ) from exc
        self._raise_for_status(response)
        try:
            result = response.json()
        except ValueError as exc:
            logger.debug("RPC JSON parse error: %s", response.text, exc_info=True)
            raise RPCTransportError("RPC server returned malformed JSON") from exc
        if not isinstance(result, dict):
            raise RPCTransportError("RPC server returned an unexpected payload")
        if result.get("error"):
            error = result["error"]
            raise RPCError(
                error.get("code", -1), error.get("message", "unknown"), error.get("data")
            )
        return result.get("result")

    def _raise_for_status(self, response: Response) -> None:
        if response.ok:
            return
        # JSON-RPC errors are sometimes carried in non-2xx bodies; prefer them.
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict) and isinstance(body.get("error"), dict):
            error = body["error"]
            raise RPCError(
                error.get("code", response.status_code),
                error.get("message", response.reason or "unknown"),
                error.get("data"),
            )
        logger.error("RPC HTTP error %s from %s", response.status_code, response.url)
        if response.status_code == 429:
            raise RPCError(429, "Too many requests")
        raise RPCTransportError(
            f"RPC server returned HTTP {response.status_code}; check the --rpc URL.",
            status_code=response.status_code,
        )

    def _commitment(self, commitment: str | None) -> Dict[str, Any]:
        return {"commitment": commitment or self.commitment}

    # Convenience wrappers -------------------------------------------------

    def get_account_info(
        self, address: str, commitment: str | None = None
    ) -> Dict[str, Any] | None:
        """Return the account value (``None`` when the account does not exist)."""

        options = {"encoding": "base64", **self._commitment(commitment)}
        result = self.call("getAccountInfo", [address, options])
        return (result or {}).get("value")

    def get_latest_blockhash(self, commitment: str | None = None) -> Dict[str, Any]:
        result = self.call("getLatestBlockhash", [self._commitment(commitment)])
        value = (result or {}).get("value")
        if not isinstance(value, dict) or "blockhash" not in value:
            raise RPCTransportError("getLatestBlockhash returned no blockhash")
        return value

    def get_block_height(self, commitment: str | None = None) -> int:
        return int(self.call("getBlockHeight", [self._commitment(commitment)]))

    def send_transaction(
        self,
        encoded_tx: str,
        skip_preflight: bool = False,
        preflight_commitment: str | None = None,
    ) -> str:
        """Submit a base64 encoded signed transaction, returning its signature."""

        options = {
            "encoding": "base64",
            "skipPreflight": skip_preflight,
            "preflightCommitment": preflight_commitment or self.commitment,
        }
        return self.call("sendTransaction", [encoded_tx, options])

    def get_signature_statuses(
        self, signatures: Sequence[str], search_history: bool = False
    ) -> list[Dict[str, Any] | None]:
        result = self.call(
            "getSignatureStatuses",
            [list(signatures), {"searchTransactionHistory": search_history}],
        )
        return list((result or {}).get("value") or [])

    def get_signature_status(self, signature: str) -> Dict[str, Any] | None:
        statuses = self.get_signature_statuses([signature])
        return statuses[0] if statuses else None

