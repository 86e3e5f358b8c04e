"""
The private contribution pool run, end to end.

    accounts -> funding -> private contributions -> settlement
             -> pool consumption -> settlement -> verification

Each phase reports to the injected ProgressReporter. Any failure stops the
remaining phases, is reported on the error channel and the current step, and
is raised to the caller.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Awaitable, Callable, Optional

from .config import WorkflowParams
from .consumer import PoolConsumer
from .contributions import ContributionIssuer, SerialSource
from .directory import AccountDirectory
from .errors import (
    LedgerError,
    LedgerUnavailable,
    NoPendingContributions,
    PoolError,
    VerificationInconsistent,
)
from .events import ProgressReporter
from .funding import FundingOrchestrator
from .ledger import ensure_supported
from .models import ConsumptionResult, Role, StepStatus, VerificationSummary, format_amount
from .settlement import SettlementWaiter
from .verification import verify_contributions

logger = logging.getLogger(__name__)


class PrivatePoolWorkflow:

    def __init__(self, ledger, params: Optional[WorkflowParams] = None,
                 reporter: Optional[ProgressReporter] = None, *,
                 serials: Optional[SerialSource] = None,
                 sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
                 clock: Callable[[], float] = time.monotonic):
        self.ledger = ledger
        self.params = params if params is not None else WorkflowParams.default()
        self.reporter = reporter if reporter is not None else ProgressReporter()
        self.waiter = SettlementWaiter(ledger, self.params.settlement, sleep=sleep, clock=clock)
        self.directory = AccountDirectory(ledger, self.reporter, self.params.asset)
        self.funding = FundingOrchestrator(ledger, self.waiter)
        self.issuer = ContributionIssuer(ledger, self.reporter, serials=serials)
        self.consumer = PoolConsumer(ledger, self.waiter)
        self._step: Optional[tuple[str, str]] = None

    # -- reporting ----------------------------------------------------------

    def _start(self, step_id: str, title: str) -> None:
        self._step = (step_id, title)
        self.reporter.on_step(step_id, title, StepStatus.LOADING)

    def _finish(self, title: str, details: Optional[str] = None) -> None:
        step_id, _ = self._step
        self.reporter.on_step(step_id, title, StepStatus.COMPLETED, details)
        self._step = None

    def _fail(self, exc: BaseException) -> None:
        message = str(exc) or type(exc).__name__
        self.reporter.on_error(message)
        if self._step is not None:
            step_id, title = self._step
            self.reporter.on_step(step_id, title, StepStatus.ERROR, message)
        self.reporter.on_step("error", "Process Failed", StepStatus.ERROR, message)

    def _amount(self, amount) -> str:
        return format_amount(amount, self.params.asset.decimals)

    # -- run ----------------------------------------------------------------

    async def run(self) -> VerificationSummary:
        try:
            ensure_supported(self.ledger)
            return await self._run()
        except PoolError as exc:
            logger.error("Private pool run aborted: %s", exc)
            self._fail(exc)
            raise
        except Exception as exc:
            logger.exception("Private pool run aborted by an unexpected error")
            failure = LedgerUnavailable(f"Unexpected ledger failure: {exc!r}")
            self._fail(failure)
            raise failure from exc

    async def _run(self) -> VerificationSummary:
        params = self.params

        self._start("client", "Connecting to ledger")
        try:
            height = await self.ledger.sync()
        except LedgerError as exc:
            raise LedgerUnavailable(f"Ledger is unreachable: {exc}") from exc
        logger.info("Connected to ledger at height %s", height)
        self._finish("Connected to ledger", f"Height {height}")

        self._start("shared-fund", f"Creating {params.pool_name} account")
        pool = await self.directory.provision(Role.POOL, display_name=params.pool_name)
        self._finish(f"{params.pool_name} created", f"Fund ID: {pool.ledger_id[:20]}...")

        self._start("friends", "Creating contributor accounts")
        contributors = []
        for index, plan in enumerate(params.contributors):
            account = await self.directory.provision(Role.CONTRIBUTOR, index, plan.name)
            contributors.append((account, plan))
        names = [plan.name for plan in params.contributors]
        self._finish("Contributor accounts created", f"{', '.join(names)} ready")

        self._start("faucet", "Deploying token faucet")
        issuer = await self.directory.provision(Role.ISSUER, display_name=params.issuer_name)
        denomination = issuer.ledger_id
        self._finish("Token faucet deployed", f"{params.asset.code} tokens ready")

        self._start("funding", "Funding contributor accounts")
        await self.funding.fund(issuer, [(account, plan.funding_amount) for account, plan in contributors])
        self._finish(
            "Contributor accounts funded",
            ", ".join(f"{plan.name}: {self._amount(plan.funding_amount)}" for _, plan in contributors),
        )

        self._start("contributions", "Making private contributions")
        pool_before = await self._pool_balance(pool, denomination)
        records = await self.issuer.contribute(
            pool,
            denomination,
            [(account, plan.contribution_amount) for account, plan in contributors if plan.contributes],
        )
        self._finish("Private contributions sent", f"{len(records)} contributor(s) contributed privately")

        self._start("consuming", "Processing private contributions")
        result = await self._consume(pool, denomination, len(records))
        self._finish("Private contributions processed", f"{result.consumed_count} contributions received")

        self._start("verification", "Verifying contributions")
        total = await self._pool_balance(pool, denomination)
        if total != pool_before + result.newly_visible_total:
            raise VerificationInconsistent(
                f"Pool balance moved by {self._amount(total - pool_before)} but the consumed batch "
                f"accounts for {self._amount(result.newly_visible_total)}"
            )
        if result.consumed_count != len(records):
            raise VerificationInconsistent(
                f"Consumed {result.consumed_count} note(s) for {len(records)} contribution record(s)"
            )
        summary = verify_contributions(
            total,
            records,
            params.expected_contributors,
            params.minimum_threshold,
        )
        logger.info(
            "Verified %d/%d contributors, total %s, fair=%s",
            summary.contributor_count, summary.expected_contributor_count,
            self._amount(summary.total_visible_amount), summary.fair_contributions,
        )
        self._finish("Verification complete", f"Total: {self._amount(summary.total_visible_amount)}, all verified")
        self.reporter.on_fund_state(summary)

        self.reporter.on_step("complete", f"Private {params.pool_name} complete!", StepStatus.COMPLETED)
        return summary

    async def _pool_balance(self, pool, denomination) -> int:
        try:
            return await self.ledger.balance(pool.ledger, denomination)
        except LedgerError as exc:
            raise LedgerUnavailable(f"Could not read {pool.display_name} balance: {exc}") from exc

    async def _consume(self, pool, denomination, expected_notes: int) -> ConsumptionResult:
        if expected_notes == 0:
            return ConsumptionResult(consumed_count=0, newly_visible_total=0)

        async def all_notes_visible() -> bool:
            handles = await self.ledger.consumable_notes(pool.ledger)
            return len([h for h in handles if h.denomination == denomination]) >= expected_notes

        attempts = self.params.consume_attempts
        attempt = 0
        while True:
            attempt += 1
            try:
                return await self.consumer.consume_pending_contributions(
                    pool, denomination, expected_notes=expected_notes
                )
            except NoPendingContributions as exc:
                if attempt >= attempts:
                    raise
                logger.info("%s; waiting for settlement (attempt %d/%d)", exc, attempt, attempts)
                self.reporter.on_step("consuming", "No contributions found yet",
                                      StepStatus.PENDING, "Notes may still be settling")
            await self.waiter.wait_for(all_notes_visible, f"{expected_notes} private contribution(s) to settle")


async def run_private_pool(ledger, params: Optional[WorkflowParams] = None,
                           reporter: Optional[ProgressReporter] = None, **kwargs) -> None:
    """Run one private pool round; the summary is delivered via `on_fund_state`."""
    await PrivatePoolWorkflow(ledger, params, reporter, **kwargs).run()
