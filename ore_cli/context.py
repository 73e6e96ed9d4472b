"""Per-process identity and endpoint context."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from solders.keypair import Keypair
from solders.pubkey import Pubkey

from .accounts import AccountReader
from .blockhash import BlockhashCache
from .config import ClientConfig, SubmitterSettings, load_keypair
from .fees import FeePolicy
from .rpc_client import SolanaRPCClient
from .submitter import TransactionSubmitter

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MinerContext:
    """Everything a command needs, built once at startup and shared read-only."""

    config: ClientConfig
    keypair: Keypair
    rpc: SolanaRPCClient
    cache: BlockhashCache
    reader: AccountReader
    submitter: TransactionSubmitter

    @property
    def signer(self) -> Pubkey:
        return self.keypair.pubkey()

    @classmethod
    def create(
        cls,
        config: ClientConfig,
        settings: SubmitterSettings | None = None,
        *,
        start_refresh: bool = True,
    ) -> "MinerContext":
        """Load the keypair, fetch the first blockhash and start refreshing.

        A missing keypair or an unreachable node is fatal here: the exception
        propagates and the process exits without retrying.
        """

        settings = settings or SubmitterSettings.from_env()
        keypair = load_keypair(config.keypair_path)
        rpc = SolanaRPCClient(config.rpc_url, commitment=config.commitment)
        cache = BlockhashCache(
            rpc,
            commitment=config.commitment,
            refresh_interval=settings.blockhash_refresh_interval,
        )
        cache.initialize()
        if start_refresh:
            cache.start()
        logger.debug("Using %s as %s", config.rpc_url, keypair.pubkey())
        return cls(
            config=config,
            keypair=keypair,
            rpc=rpc,
            cache=cache,
            reader=AccountReader(rpc),
            submitter=TransactionSubmitter(
                rpc,
                keypair,
                cache,
                fee_policy=FeePolicy(config.priority_fee),
                settings=settings,
            ),
        )
