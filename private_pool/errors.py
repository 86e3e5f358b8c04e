"""
Error kinds raised by the contribution pool workflow.

Every fatal kind aborts the remaining phases of a run. NoPendingContributions
is informational: the pool simply had nothing ready to consume yet.
"""

from __future__ import annotations

from typing import Optional, Sequence


class PoolError(Exception):
    """Base class for workflow failures."""

    fatal = True


class EnvironmentUnsupported(PoolError):
    """Preconditions for driving the ledger client are not met."""


class LedgerUnavailable(PoolError):
    """The ledger could not be reached or refused to provision something."""


class SettlementTimeout(PoolError):
    """A bounded settlement wait ran out before the expected effect appeared."""

    def __init__(self, awaiting: str, attempts: int, waited: float):
        self.awaiting = awaiting
        self.attempts = attempts
        self.waited = waited
        super().__init__(
            f"Timed out after {waited:.1f}s ({attempts} polls) waiting for {awaiting}"
        )


class ContributionFailed(PoolError):
    """A contributor's confidential note could not be submitted."""

    def __init__(self, contributor: str, reason: str, submitted: Sequence[str] = ()):
        self.contributor = contributor
        self.reason = reason
        # Contributors whose notes were already on their way to the pool
        self.submitted = tuple(submitted)
        message = f"Contribution from {contributor} failed: {reason}"
        if self.submitted:
            message += f" (already submitted: {', '.join(self.submitted)}; left pending)"
        super().__init__(message)


class NoPendingContributions(PoolError):
    """Nothing addressed to the pool is ready to be consumed."""

    fatal = False

    def __init__(self, account_id: str, found: int = 0, expected: Optional[int] = None):
        self.account_id = account_id
        self.found = found
        self.expected = expected
        if expected is None:
            message = f"No consumable contributions for {account_id}"
        else:
            message = f"{found} of {expected} contributions consumable for {account_id}"
        super().__init__(message)


class VerificationInconsistent(PoolError):
    """The pool balance and the contribution records disagree."""


class LedgerError(Exception):
    """Raised by ledger adapters for any failed ledger interaction."""


class LedgerRejected(LedgerError):
    """The ledger evaluated a request and refused it."""
