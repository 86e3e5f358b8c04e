"""
Progress reporting.

A reporter is injected once when a run starts and receives step, account,
contribution-proof, fund-state and error events in the order they happen.
Every method is a no-op by default; override only what you display.
"""

from __future__ import annotations

import logging
from typing import Optional

from .models import StepStatus, VerificationSummary, format_amount


class ProgressReporter:

    def on_step(self, step_id: str, title: str, status: StepStatus,
                details: Optional[str] = None) -> None:
        pass

    def on_account(self, name: str, account_id: str) -> None:
        pass

    def on_contribution_proof(self, contributor: str, account_id: str,
                              transaction_ref: str, timestamp: str,
                              verified: bool) -> None:
        pass

    def on_fund_state(self, summary: VerificationSummary) -> None:
        pass

    def on_error(self, message: str) -> None:
        pass


class LoggingReporter(ProgressReporter):
    """Writes every event to a logger; used by the command line runner."""

    def __init__(self, logger: Optional[logging.Logger] = None, decimals: int = 2):
        self.logger = logger or logging.getLogger("private_pool.progress")
        self.decimals = decimals

    def on_step(self, step_id, title, status, details=None):
        level = logging.ERROR if status is StepStatus.ERROR else logging.INFO
        if details:
            self.logger.log(level, "[%s] %s (%s): %s", step_id, title, status.value, details)
        else:
            self.logger.log(level, "[%s] %s (%s)", step_id, title, status.value)

    def on_account(self, name, account_id):
        self.logger.info("%s account: %s", name, account_id)

    def on_contribution_proof(self, contributor, account_id, transaction_ref, timestamp, verified):
        self.logger.info(
            "%s contributed privately: proof %s at %s (%s)",
            contributor, transaction_ref[:12], timestamp,
            "verified" if verified else "unverified",
        )

    def on_fund_state(self, summary):
        self.logger.info("Total fund: %s (visible to everyone)",
                         format_amount(summary.total_visible_amount, self.decimals))
        self.logger.info("Contributors: %d/%d",
                         summary.contributor_count, summary.expected_contributor_count)
        self.logger.info("All participated: %s", "yes" if summary.all_participated else "no")
        self.logger.info("Fair contributions: %s", "yes" if summary.fair_contributions else "no")
        self.logger.info("Privacy preserved: %s", "yes" if summary.privacy_preserved else "no")

    def on_error(self, message):
        self.logger.error("Run failed: %s", message)
