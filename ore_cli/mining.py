"""Proof-of-work search feeding solutions into the submitter."""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Callable

from Crypto.Hash import keccak

from . import actions
from .context import MinerContext
from .state import format_amount

logger = logging.getLogger(__name__)

STOP_CHECK_INTERVAL = 4096


@dataclass(frozen=True)
class Solution:
    hash: bytes
    nonce: int


def solution_hash(challenge: bytes, signer: bytes, nonce: int) -> bytes:
    digest = keccak.new(digest_bits=256)
    digest.update(challenge)
    digest.update(signer)
    digest.update(nonce.to_bytes(8, "little"))
    return digest.digest()


def find_solution(
    challenge: bytes,
    signer: bytes,
    difficulty: bytes,
    start_nonce: int = 0,
    step: int = 1,
    stop_event: threading.Event | _AnyEvent | None = None,
) -> Solution | None:
    """Scan nonces ``start_nonce, start_nonce + step, ...`` for a hash <= difficulty.

    Returns ``None`` only when ``stop_event`` is set before a solution is found.
    """

    nonce = start_nonce
    checked = 0
    while True:
        candidate = solution_hash(challenge, signer, nonce)
        if candidate <= difficulty:
            return Solution(hash=candidate, nonce=nonce)
        nonce += step
        checked += 1
        if stop_event is not None and checked % STOP_CHECK_INTERVAL == 0 and stop_event.is_set():
            return None


class MiningSession:
    """Search for solutions on ``threads`` workers and submit each one found."""

    def __init__(
        self,
        ctx: MinerContext,
        threads: int = 1,
        progress: Callable[[str], None] | None = None,
    ) -> None:
        if threads < 1:
            raise ValueError("Mining requires at least one thread")
        self.ctx = ctx
        self.threads = threads
        self.progress = progress or logger.info
        self.stop_event = threading.Event()

    def search(self, challenge: bytes, difficulty: bytes) -> Solution | None:
        found = threading.Event()
        signer = bytes(self.ctx.signer)
        with ThreadPoolExecutor(max_workers=self.threads, thread_name_prefix="ore-miner") as pool:
            futures = [
                pool.submit(
                    find_solution,
                    challenge,
                    signer,
                    difficulty,
                    offset,
                    self.threads,
                    _AnyEvent(found, self.stop_event),
                )
                for offset in range(self.threads)
            ]
            try:
                for future in as_completed(futures):
                    result = future.result()
                    if result is not None:
                        return result
            finally:
                # Workers must see this before the executor joins them.
                found.set()
        return None

    def run(self, rounds: int | None = None) -> int:
        """Mine until stopped or ``rounds`` solutions were submitted; return confirmations."""

        actions.register(self.ctx)
        confirmed = 0
        submitted = 0
        while not self.stop_event.is_set() and (rounds is None or submitted < rounds):
            proof = self.ctx.reader.get_proof(self.ctx.signer)
            treasury = self.ctx.reader.get_treasury()
            self.progress(
                f"Searching for a valid hash ({self.threads} thread(s)); "
                f"claimable {format_amount(proof.claimable_rewards)}"
            )
            started = time.monotonic()
            solution = self.search(proof.hash, treasury.difficulty)
            if solution is None:
                break
            self.progress(
                f"Found nonce {solution.nonce} in {time.monotonic() - started:.1f}s; submitting"
            )
            outcome = actions.submit_solution(self.ctx, solution.hash, solution.nonce)
            submitted += 1
            if outcome is None:
                continue
            self.progress(outcome.describe())
            if outcome.ok:
                confirmed += 1
        return confirmed

    def stop(self) -> None:
        self.stop_event.set()


class _AnyEvent:
    """Read-only view that is set when any of the wrapped events is set."""

    def __init__(self, *events: threading.Event) -> None:
        self._events = events

    def is_set(self) -> bool:
        return any(event.is_set() for event in self._events)
