"""ORE mining client: blockhash cache, transaction submitter and account reader."""

from .accounts import AccountNotFoundError, AccountReader
from .blockhash import BlockhashCache, FreshnessToken
from .builder import ActionPlan, ClaimPlan, DestinationPlan
from .config import (
    ClientConfig,
    ConfigurationError,
    KeypairError,
    SubmitterSettings,
    load_client_config,
    load_keypair,
)
from .context import MinerContext
from .fees import FeePolicy
from .rpc_client import RPCError, RPCTransportError, SolanaRPCClient
from .state import Bus, MalformedRecordError, Proof, TokenAccount, Treasury, format_amount
from .submitter import (
    Confirmed,
    Expired,
    Rejected,
    SubmissionOutcome,
    SubmissionState,
    SubmitOptions,
    TimedOut,
    TransactionSubmitter,
)

__all__ = [
    "AccountNotFoundError",
    "AccountReader",
    "ActionPlan",
    "BlockhashCache",
    "Bus",
    "ClaimPlan",
    "ClientConfig",
    "ConfigurationError",
    "Confirmed",
    "DestinationPlan",
    "Expired",
    "FeePolicy",
    "FreshnessToken",
    "KeypairError",
    "MalformedRecordError",
    "MinerContext",
    "Proof",
    "RPCError",
    "RPCTransportError",
    "Rejected",
    "SolanaRPCClient",
    "SubmissionOutcome",
    "SubmissionState",
    "SubmitOptions",
    "SubmitterSettings",
    "TimedOut",
    "TokenAccount",
    "TransactionSubmitter",
    "Treasury",
    "format_amount",
    "load_client_config",
    "load_keypair",
]
