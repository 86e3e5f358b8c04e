# Private contribution pool
"""
Orchestration for a confidential multi-party contribution pool.

Contributors fund a shared pool with private notes; only the pool's
aggregate balance and the fact that each contributor took part are public.
"""

import logging

from .config import AssetSpec, ContributorPlan, SettlementPolicy, WorkflowParams
from .errors import (
    ContributionFailed,
    EnvironmentUnsupported,
    LedgerError,
    LedgerRejected,
    LedgerUnavailable,
    NoPendingContributions,
    PoolError,
    SettlementTimeout,
    VerificationInconsistent,
)
from .events import LoggingReporter, ProgressReporter
from .ledger import LedgerClient
from .models import StepStatus, VerificationSummary, format_amount
from .verification import verify_contributions
from .workflow import PrivatePoolWorkflow, run_private_pool

logging.getLogger(__name__).addHandler(logging.NullHandler())

__version__ = "0.1.0"

__all__ = [
    "AssetSpec",
    "ContributionFailed",
    "ContributorPlan",
    "EnvironmentUnsupported",
    "LedgerClient",
    "LedgerError",
    "LedgerRejected",
    "LedgerUnavailable",
    "LoggingReporter",
    "NoPendingContributions",
    "PoolError",
    "PrivatePoolWorkflow",
    "ProgressReporter",
    "SettlementPolicy",
    "SettlementTimeout",
    "StepStatus",
    "VerificationInconsistent",
    "VerificationSummary",
    "WorkflowParams",
    "format_amount",
    "run_private_pool",
    "verify_contributions",
]
