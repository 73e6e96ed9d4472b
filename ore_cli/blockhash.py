"""Background-refreshed cache of the latest blockhash.

A transaction is only accepted while its blockhash is recent, so every
submission needs a fresh one. ``BlockhashCache`` keeps the latest known
``FreshnessToken`` in memory; a single background thread replaces it on a
fixed interval and submitters read it without touching the network.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass

from solders.hash import Hash

from .rpc_client import RPCError, RPCTransportError, SolanaRPCClient

logger = logging.getLogger(__name__)

DEFAULT_REFRESH_INTERVAL_SECONDS = 10.0


@dataclass(frozen=True)
class FreshnessToken:
    blockhash: Hash
    last_valid_block_height: int
    observed_at: float

    def expired_at(self, block_height: int) -> bool:
        return block_height > self.last_valid_block_height


class BlockhashCache:
    """Hold exactly one current ``FreshnessToken``.

    Only :meth:`refresh_once` (driven by :meth:`run`) publishes new tokens.
    The lock guards a single reference swap; network fetches always happen
    before the lock is taken, so :meth:`read` never waits on I/O.
    """

    def __init__(
        self,
        rpc: SolanaRPCClient,
        commitment: str = "confirmed",
        refresh_interval: float = DEFAULT_REFRESH_INTERVAL_SECONDS,
    ) -> None:
        self.rpc = rpc
        self.commitment = commitment
        self.refresh_interval = refresh_interval
        self._lock = threading.Lock()
        self._token: FreshnessToken | None = None
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    def fetch(self) -> FreshnessToken:
        """Fetch a token from the node without publishing it."""

        value = self.rpc.get_latest_blockhash(self.commitment)
        return FreshnessToken(
            blockhash=Hash.from_string(value["blockhash"]),
            last_valid_block_height=int(value["lastValidBlockHeight"]),
            observed_at=time.time(),
        )

    def initialize(self) -> FreshnessToken:
        """Perform the first, blocking fetch. Failures propagate to the caller."""

        token = self.fetch()
        self._publish(token)
        logger.debug(
            "Initial blockhash %s valid until height %d",
            token.blockhash,
            token.last_valid_block_height,
        )
        return token

    def read(self) -> FreshnessToken:
        with self._lock:
            token = self._token
        if token is None:
            raise RuntimeError("BlockhashCache.read() called before initialize()")
        return token

    def _publish(self, token: FreshnessToken) -> None:
        with self._lock:
            self._token = token

    def refresh_once(self) -> bool:
        """Fetch and publish a new token; keep the previous one on failure."""

        try:
            token = self.fetch()
        except (RPCError, RPCTransportError, KeyError, ValueError) as exc:
            logger.warning("Failed to fetch latest blockhash: %s", exc)
            return False
        self._publish(token)
        return True

    def run(self, stop_event: threading.Event) -> None:
        """Refresh every ``refresh_interval`` seconds until ``stop_event`` is set."""

        logger.debug("Blockhash refresh loop started (interval=%ss)", self.refresh_interval)
        while not stop_event.wait(self.refresh_interval):
            self.refresh_once()
        logger.debug("Blockhash refresh loop stopped")

    def start(self) -> threading.Thread:
        if self._thread is not None and self._thread.is_alive():
            return self._thread
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self.run,
            args=(self._stop_event,),
            name="blockhash-refresh",
            daemon=True,
        )
        self._thread.start()
        return self._thread

    def stop(self, timeout: float | None = None) -> None:
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
