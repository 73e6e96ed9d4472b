"""Command-line interface for the ORE client.

Every command resolves configuration, builds one ``MinerContext`` (which loads
the keypair and fetches the first blockhash) and then performs exactly one
core interaction: read accounts, or plan and submit instructions.
"""

from __future__ import annotations

import argparse
import logging
import sys
from datetime import datetime, timezone
from typing import Mapping, Sequence

from solders.pubkey import Pubkey

from . import actions
from .accounts import AccountNotFoundError
from .config import (
    ConfigurationError,
    KeypairError,
    admin_commands_enabled,
    load_client_config,
)
from .constants import DEFAULT_DIFFICULTY
from .context import MinerContext
from .instructions import treasury_pda, treasury_tokens_address
from .mining import MiningSession
from .rpc_client import RPCError, RPCTransportError, format_rpc_hint
from .state import MalformedRecordError, TokenAccount, format_amount
from .submitter import Confirmed, Rejected, SubmissionOutcome, SubmissionStateError

logger = logging.getLogger(__name__)

ADMIN_COMMANDS = {"initialize", "update-admin", "update-difficulty"}


class CLIError(RuntimeError):
    """Raised when CLI arguments are invalid."""


def _non_negative_int(raw: str) -> int:
    try:
        value = int(raw)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid integer: {raw}") from exc
    if value < 0:
        raise argparse.ArgumentTypeError("value must be non-negative")
    return value


def _positive_int(raw: str) -> int:
    value = _non_negative_int(raw)
    if value == 0:
        raise argparse.ArgumentTypeError("value must be positive")
    return value


def build_parser(env: Mapping[str, str] | None = None) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="ore", description="ORE mining client")
    parser.add_argument(
        "--rpc", metavar="NETWORK_URL", help="Network address of your RPC provider"
    )
    parser.add_argument(
        "-C", "--config", dest="config_file", metavar="PATH", help="Filepath to config file."
    )
    parser.add_argument(
        "--keypair", metavar="KEYPAIR_FILEPATH", help="Filepath to keypair to use"
    )
    parser.add_argument(
        "--priority-fee",
        type=_non_negative_int,
        default=None,
        metavar="MICROLAMPORTS",
        help="Number of microlamports to pay as priority fee per compute unit (default: 0)",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    balance_parser = subparsers.add_parser("balance", help="Fetch the ORE balance of an account")
    balance_parser.add_argument(
        "address", nargs="?", help="The address of the account to fetch the balance of"
    )

    subparsers.add_parser("busses", help="Fetch the distributable rewards of the busses")

    mine_parser = subparsers.add_parser("mine", help="Mine ORE using local compute")
    mine_parser.add_argument(
        "-t",
        "--threads",
        type=_positive_int,
        default=1,
        help="The number of threads to dedicate to mining (default: 1)",
    )

    subparsers.add_parser("claim", help="Claim available mining rewards")
    subparsers.add_parser("register", help="Create the proof account for your keypair")

    rewards_parser = subparsers.add_parser(
        "rewards", help="Fetch your balance of unclaimed mining rewards"
    )
    rewards_parser.add_argument(
        "address", nargs="?", help="The address of the account to fetch the rewards balance of"
    )

    subparsers.add_parser("treasury", help="Fetch the treasury account and balance")

    if admin_commands_enabled(env):
        subparsers.add_parser("initialize", help="Initialize the program")
        update_admin_parser = subparsers.add_parser(
            "update-admin", help="Update the program admin authority"
        )
        update_admin_parser.add_argument("new_admin", help="Address of the new admin")
        update_difficulty_parser = subparsers.add_parser(
            "update-difficulty", help="Update the mining difficulty"
        )
        update_difficulty_parser.add_argument(
            "--difficulty",
            default=None,
            help="New difficulty as 64 hex characters (default: four leading zero bytes)",
        )

    return parser


def _parse_pubkey(raw: str, label: str) -> Pubkey:
    try:
        return Pubkey.from_string(raw)
    except ValueError as exc:
        raise CLIError(f"{label} is not a valid address: {raw}") from exc


def _parse_difficulty(raw: str | None) -> bytes:
    if raw is None:
        return DEFAULT_DIFFICULTY
    try:
        difficulty = bytes.fromhex(raw.strip().lower().removeprefix("0x"))
    except ValueError as exc:
        raise CLIError(f"--difficulty must be hex: {raw}") from exc
    if len(difficulty) != 32:
        raise CLIError("--difficulty must encode exactly 32 bytes")
    return difficulty


def _print_outcome(outcome: SubmissionOutcome) -> None:
    print(outcome.describe())
    if isinstance(outcome, Rejected):
        for line in outcome.logs:
            print(f"  {line}")


def cmd_balance(ctx: MinerContext, args: argparse.Namespace) -> None:
    owner = _parse_pubkey(args.address, "address") if args.address else ctx.signer
    print(f"Balance: {format_amount(ctx.reader.get_token_balance(owner))}")


def cmd_busses(ctx: MinerContext) -> None:
    for bus in ctx.reader.scan_busses():
        print(f"Bus {bus.id}: {format_amount(bus.rewards)}")


def cmd_rewards(ctx: MinerContext, args: argparse.Namespace) -> None:
    owner = _parse_pubkey(args.address, "address") if args.address else ctx.signer
    proof = ctx.reader.get_proof(owner)
    print(f"Rewards: {format_amount(proof.claimable_rewards)}")


def cmd_treasury(ctx: MinerContext) -> None:
    treasury = ctx.reader.get_treasury()
    tokens_address = treasury_tokens_address()
    try:
        balance = ctx.reader.fetch_record(TokenAccount, tokens_address).amount
    except AccountNotFoundError:
        balance = 0
    last_reset = datetime.fromtimestamp(treasury.last_reset_at, tz=timezone.utc)
    print(f"Treasury: {treasury_pda()[0]}")
    print(f"Token account: {tokens_address}")
    print(f"Balance: {format_amount(balance)}")
    print(f"Admin: {treasury.admin}")
    print(f"Difficulty: {treasury.difficulty.hex()}")
    print(f"Last reset at: {last_reset.isoformat()}")
    print(f"Reward rate: {format_amount(treasury.reward_rate)}")
    print(f"Total claimed rewards: {format_amount(treasury.total_claimed_rewards)}")


def cmd_register(ctx: MinerContext) -> None:
    outcome = actions.register(ctx)
    if outcome is None:
        print(f"Proof account for {ctx.signer} already exists.")
        return
    _print_outcome(outcome)


def cmd_claim(ctx: MinerContext) -> None:
    plan, outcome = actions.claim(ctx)
    if outcome is None:
        print("nothing to claim, exit now.")
        return
    amount = format_amount(plan.amount)
    print(f"claimable rewards: {amount}")
    _print_outcome(outcome)
    if isinstance(outcome, Confirmed):
        print(f"Claimed {amount} to account {plan.destination}")


def cmd_mine(ctx: MinerContext, args: argparse.Namespace) -> None:
    session = MiningSession(ctx, threads=args.threads, progress=_stdout_progress)
    try:
        confirmed = session.run()
    except KeyboardInterrupt:
        session.stop()
        raise
    print(f"Mining stopped after {confirmed} confirmed solution(s)")


def cmd_initialize(ctx: MinerContext) -> None:
    _print_optional(actions.initialize(ctx))


def cmd_update_admin(ctx: MinerContext, args: argparse.Namespace) -> None:
    new_admin = _parse_pubkey(args.new_admin, "new_admin")
    _print_optional(actions.update_admin(ctx, new_admin))


def cmd_update_difficulty(ctx: MinerContext, args: argparse.Namespace) -> None:
    _print_optional(actions.update_difficulty(ctx, _parse_difficulty(args.difficulty)))


def _print_optional(outcome: SubmissionOutcome | None) -> None:
    if outcome is not None:
        _print_outcome(outcome)


def _stdout_progress(message: str) -> None:
    print(message)


def _format_error(exc: Exception) -> str:
    text = f"error: {exc}"
    if isinstance(exc, RPCError):
        hint = format_rpc_hint(exc)
        if hint:
            text += f"\nHint: {hint}"
    return text + "\n"


def _context_from_args(args: argparse.Namespace) -> MinerContext:
    config = load_client_config(
        config_path=args.config_file,
        overrides={
            "rpc_url": args.rpc,
            "keypair_path": args.keypair,
            "priority_fee": args.priority_fee,
        },
    )
    return MinerContext.create(config)


def main(argv: Sequence[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO)
    try:
        ctx = _context_from_args(args)
        if args.command == "balance":
            cmd_balance(ctx, args)
        elif args.command == "busses":
            cmd_busses(ctx)
        elif args.command == "rewards":
            cmd_rewards(ctx, args)
        elif args.command == "treasury":
            cmd_treasury(ctx)
        elif args.command == "register":
            cmd_register(ctx)
        elif args.command == "claim":
            cmd_claim(ctx)
        elif args.command == "mine":
            cmd_mine(ctx, args)
        elif args.command == "initialize":
            cmd_initialize(ctx)
        elif args.command == "update-admin":
            cmd_update_admin(ctx, args)
        elif args.command == "update-difficulty":
            cmd_update_difficulty(ctx, args)
        else:  # pragma: no cover - argparse enforces choices
            raise CLIError(f"Unknown command: {args.command}")
    except KeyboardInterrupt:  # pragma: no cover - interactive use
        logger.info("Interrupted by user")
    except (
        CLIError,
        ConfigurationError,
        KeypairError,
        RPCError,
        RPCTransportError,
        AccountNotFoundError,
        MalformedRecordError,
        SubmissionStateError,
        LookupError,
    ) as exc:
        parser.exit(1, _format_error(exc))


if __name__ == "__main__":
    main(sys.argv[1:])
