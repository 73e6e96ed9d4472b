"""High-level actions wiring the builder to the submitter.

These helpers are what command handlers and the mining loop call. They keep
the idempotency decision and the send path apart: a no-op plan returns
``None`` without ever touching the submitter.
"""

from __future__ import annotations

import logging
from dataclasses import replace

from solders.pubkey import Pubkey

from . import builder
from .builder import ActionPlan, ClaimPlan
from .context import MinerContext
from .submitter import SubmissionOutcome, SubmitOptions, TransactionSubmitter

logger = logging.getLogger(__name__)


def execute_plan(
    submitter: TransactionSubmitter,
    plan: ActionPlan,
    options: SubmitOptions | None = None,
) -> SubmissionOutcome | None:
    """Submit ``plan`` unless it is a no-op."""

    if plan.is_noop:
        logger.info("Nothing to submit: %s", plan.skip_reason or "empty plan")
        return None
    options = replace(options or SubmitOptions(), compute_unit_limit=plan.compute_unit_limit)
    return submitter.submit(plan.instructions, options)


def register(ctx: MinerContext) -> SubmissionOutcome | None:
    plan = builder.plan_register(ctx.reader, ctx.signer)
    if not plan.is_noop:
        logger.info("Registering proof account for %s", ctx.signer)
    return execute_plan(ctx.submitter, plan)


def claim(ctx: MinerContext) -> tuple[ClaimPlan, SubmissionOutcome | None]:
    plan = builder.plan_claim(ctx.reader, ctx.signer)
    if plan.is_noop:
        return plan, None
    if len(plan.instructions) > 1:
        logger.info("Creating token account %s", plan.destination)
    return plan, execute_plan(ctx.submitter, plan)


def submit_solution(
    ctx: MinerContext, solution_hash: bytes, nonce: int
) -> SubmissionOutcome | None:
    plan = builder.plan_mine(ctx.reader, ctx.signer, solution_hash, nonce)
    return execute_plan(ctx.submitter, plan, SubmitOptions(skip_preflight=True))


def initialize(ctx: MinerContext) -> SubmissionOutcome | None:
    return execute_plan(ctx.submitter, builder.plan_initialize(ctx.signer))


def update_admin(ctx: MinerContext, new_admin: Pubkey) -> SubmissionOutcome | None:
    return execute_plan(ctx.submitter, builder.plan_update_admin(ctx.signer, new_admin))


def update_difficulty(ctx: MinerContext, difficulty: bytes) -> SubmissionOutcome | None:
    return execute_plan(ctx.submitter, builder.plan_update_difficulty(ctx.signer, difficulty))
