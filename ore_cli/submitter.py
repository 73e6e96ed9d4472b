"""Sign, send and confirm transactions.

``TransactionSubmitter.submit`` drives one ``PendingTransaction`` through a
bounded state machine::

    BUILT -> SIGNED -> SENT -> CONFIRMED | REJECTED | EXPIRED | TIMED_OUT
                        ^                              |
                        +---- SIGNED <-----------------+   (retry budget left)

Rejections are never retried: the node refused the instructions themselves.
Expiry (the blockhash outlived its validity window before confirmation) is
retried with a newer blockhash up to ``max_expiry_retries`` times.
"""

from __future__ import annotations

import base64
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import ClassVar, Sequence, Tuple, Union

from solders.instruction import Instruction
from solders.keypair import Keypair
from solders.transaction import Transaction

from .blockhash import BlockhashCache, FreshnessToken
from .config import SubmitterSettings
from .fees import FeePolicy, format_lamports
from .rpc_client import RPCError, RPCTransportError, SolanaRPCClient, format_rpc_hint

logger = logging.getLogger(__name__)


class SubmissionStateError(RuntimeError):
    """Raised on an illegal submission state transition."""


class SubmissionState(Enum):
    BUILT = "built"
    SIGNED = "signed"
    SENT = "sent"
    CONFIRMED = "confirmed"
    REJECTED = "rejected"
    EXPIRED = "expired"
    TIMED_OUT = "timed_out"


_TRANSITIONS = {
    SubmissionState.BUILT: {SubmissionState.SIGNED},
    SubmissionState.SIGNED: {SubmissionState.SENT},
    SubmissionState.SENT: {
        SubmissionState.CONFIRMED,
        SubmissionState.REJECTED,
        SubmissionState.EXPIRED,
        SubmissionState.TIMED_OUT,
    },
    SubmissionState.EXPIRED: {SubmissionState.SIGNED},
}


@dataclass
class PendingTransaction:
    instructions: Tuple[Instruction, ...]
    token: FreshnessToken
    state: SubmissionState = SubmissionState.BUILT
    transaction: Transaction | None = None
    signature: str | None = None
    attempt: int = 1
    observed_height: int | None = None

    def transition(self, new_state: SubmissionState) -> None:
        allowed = _TRANSITIONS.get(self.state, set())
        if new_state not in allowed:
            raise SubmissionStateError(
                f"Cannot move submission from {self.state.value} to {new_state.value}"
            )
        self.state = new_state


@dataclass(frozen=True)
class SubmitOptions:
    """Per-call submission switches.

    ``skip_preflight`` bypasses the node's simulation (used for time
    sensitive mining submissions). ``wait_for_finalization`` waits for the
    ``finalized`` commitment instead of ``confirmed``.
    """

    skip_preflight: bool = False
    wait_for_finalization: bool = False
    compute_unit_limit: int | None = None

    @property
    def commitment(self) -> str:
        return "finalized" if self.wait_for_finalization else "confirmed"


@dataclass(frozen=True)
class Confirmed:
    ok: ClassVar[bool] = True

    signature: str
    attempts: int = 1

    def describe(self) -> str:
        return f"Transaction confirmed: {self.signature}"


@dataclass(frozen=True)
class Rejected:
    ok: ClassVar[bool] = False

    reason: str
    signature: str | None = None
    hint: str | None = None
    logs: Tuple[str, ...] = ()

    def describe(self) -> str:
        text = f"Transaction rejected: {self.reason}"
        if self.hint:
            text += f"\nHint: {self.hint}"
        return text


@dataclass(frozen=True)
class Expired:
    ok: ClassVar[bool] = False

    attempts: int

    def describe(self) -> str:
        return f"Transaction expired after {self.attempts} attempt(s)"


@dataclass(frozen=True)
class TimedOut:
    ok: ClassVar[bool] = False

    signature: str

    def describe(self) -> str:
        return f"Timed out waiting for confirmation of {self.signature}; it may still land"


SubmissionOutcome = Union[Confirmed, Rejected, Expired, TimedOut]

_COMMITMENT_RANK = {"processed": 0, "confirmed": 1, "finalized": 2}


def commitment_satisfied(status: str | None, commitment: str) -> bool:
    if status is None:
        return False
    return _COMMITMENT_RANK.get(status, -1) >= _COMMITMENT_RANK[commitment]


class TransactionSubmitter:
    """Submit instruction sequences on behalf of one keypair.

    Safe to share between threads: every ``submit`` call builds its own
    ``PendingTransaction`` and only reads the cache and the keypair.
    """

    def __init__(
        self,
        rpc: SolanaRPCClient,
        keypair: Keypair,
        cache: BlockhashCache,
        fee_policy: FeePolicy | None = None,
        settings: SubmitterSettings | None = None,
    ) -> None:
        self.rpc = rpc
        self.keypair = keypair
        self.cache = cache
        self.fee_policy = fee_policy or FeePolicy()
        self.settings = settings or SubmitterSettings()

    def submit(
        self, instructions: Sequence[Instruction], options: SubmitOptions | None = None
    ) -> SubmissionOutcome:
        options = options or SubmitOptions()
        if not instructions:
            raise ValueError("Cannot submit an empty instruction list")
        logger.debug(
            "Max priority fee %s",
            format_lamports(self.fee_policy.max_priority_fee_lamports(options.compute_unit_limit)),
        )

        pending = PendingTransaction(
            instructions=tuple(
                self.fee_policy.with_budget(instructions, options.compute_unit_limit)
            ),
            token=self.cache.read(),
        )
        while True:
            transaction, signature = self._sign(pending)
            outcome = self._send_and_confirm(pending, transaction, signature, options)
            if outcome is not None:
                return outcome
            if pending.attempt > self.settings.max_expiry_retries:
                logger.warning(
                    "Transaction expired %d time(s); giving up", pending.attempt
                )
                return Expired(attempts=pending.attempt)
            logger.info(
                "Blockhash %s expired before confirmation; retrying (%d/%d)",
                pending.token.blockhash,
                pending.attempt,
                self.settings.max_expiry_retries,
            )
            pending.token = self._next_token(pending.token, pending.observed_height)
            pending.attempt += 1

    def _sign(self, pending: PendingTransaction) -> Tuple[Transaction, str]:
        tx = Transaction.new_signed_with_payer(
            list(pending.instructions),
            self.keypair.pubkey(),
            [self.keypair],
            pending.token.blockhash,
        )
        signature = str(tx.signatures[0])
        pending.transaction = tx
        pending.signature = signature
        pending.observed_height = None
        pending.transition(SubmissionState.SIGNED)
        return tx, signature

    def _send_and_confirm(
        self,
        pending: PendingTransaction,
        transaction: Transaction,
        signature: str,
        options: SubmitOptions,
    ) -> SubmissionOutcome | None:
        """Send once and poll; ``None`` means the blockhash expired."""

        encoded = base64.b64encode(bytes(transaction)).decode("ascii")
        pending.transition(SubmissionState.SENT)
        try:
            returned = self.rpc.send_transaction(
                encoded,
                skip_preflight=options.skip_preflight,
                preflight_commitment=self.cache.commitment,
            )
        except RPCError as exc:
            if exc.is_blockhash_not_found:
                pending.transition(SubmissionState.EXPIRED)
                return None
            pending.transition(SubmissionState.REJECTED)
            logs = ()
            if isinstance(exc.data, dict) and isinstance(exc.data.get("logs"), list):
                logs = tuple(str(line) for line in exc.data["logs"])
            return Rejected(
                reason=exc.message,
                signature=signature,
                hint=format_rpc_hint(exc),
                logs=logs,
            )
        if returned and returned != signature:
            logger.warning("Node returned signature %s, expected %s", returned, signature)
        logger.debug("Sent %s (attempt %d)", signature, pending.attempt)
        return self._poll(pending, signature, options.commitment)

    def _poll(
        self, pending: PendingTransaction, signature: str, commitment: str
    ) -> SubmissionOutcome | None:
        for _ in range(self.settings.confirm_attempts):
            time.sleep(self.settings.confirm_interval)
            try:
                status = self.rpc.get_signature_status(signature)
                if status is not None:
                    err = status.get("err")
                    if err is not None:
                        pending.transition(SubmissionState.REJECTED)
                        return Rejected(reason=f"Transaction failed: {err}", signature=signature)
                    if commitment_satisfied(status.get("confirmationStatus"), commitment):
                        pending.transition(SubmissionState.CONFIRMED)
                        return Confirmed(signature=signature, attempts=pending.attempt)
                    # Landed but not yet at the requested commitment; it cannot expire now.
                    continue
                block_height = self.rpc.get_block_height(self.cache.commitment)
            except (RPCError, RPCTransportError) as exc:
                logger.warning("Confirmation poll for %s failed: %s", signature, exc)
                continue
            if pending.token.expired_at(block_height):
                pending.observed_height = block_height
                pending.transition(SubmissionState.EXPIRED)
                return None
        pending.transition(SubmissionState.TIMED_OUT)
        return TimedOut(signature=signature)

    def _next_token(
        self, stale: FreshnessToken, observed_height: int | None = None
    ) -> FreshnessToken:
        """Return a token valid past the expiry, fetching one if the cache lags.

        ``observed_height`` is the block height at which ``stale`` was seen to
        expire; it is ``None`` when the node rejected the blockhash at send.
        """

        token = self.cache.read()
        if observed_height is not None:
            usable = token.last_valid_block_height > observed_height
        else:
            usable = (
                token.blockhash != stale.blockhash
                and token.last_valid_block_height > stale.last_valid_block_height
            )
        if not usable:
            token = self.cache.fetch()
        return token
