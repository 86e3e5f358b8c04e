"""
Data model shared by the ledger adapters and the workflow phases.

Amounts are unsigned integers in the asset's minor units. Fields that would
reveal a private amount are kept out of reprs so they never leak into logs.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Optional


class Role(Enum):
    POOL = "pool"
    CONTRIBUTOR = "contributor"
    ISSUER = "issuer"


class StorageMode(Enum):
    PUBLIC = "public"
    PRIVATE = "private"


class NoteVisibility(Enum):
    PUBLIC = "public"
    PRIVATE = "private"


class StepStatus(str, Enum):
    PENDING = "pending"
    LOADING = "loading"
    COMPLETED = "completed"
    ERROR = "error"


@dataclass(frozen=True)
class LedgerAccount:
    """Identity handed back by the ledger adapter."""
    account_id: str
    storage_mode: StorageMode
    is_faucet: bool = False


@dataclass(frozen=True)
class Account:
    """A ledger account bound to its logical role for one run."""
    role: Role
    ledger: LedgerAccount
    display_name: str
    index: int = 0

    @property
    def ledger_id(self) -> str:
        return self.ledger.account_id


@dataclass(frozen=True)
class Asset:
    denomination: str
    amount: int = field(repr=False)

    def __post_init__(self) -> None:
        if not isinstance(self.amount, int) or isinstance(self.amount, bool):
            raise TypeError("amount must be an integer number of minor units")
        if self.amount < 0:
            raise ValueError("amount must be unsigned")


@dataclass(frozen=True)
class RecipientProgram:
    """Opaque consumption predicate supplied by the ledger ecosystem."""
    digest: str
    inputs: tuple[str, ...] = ()


@dataclass(frozen=True)
class ConfidentialNote:
    note_id: str
    recipient: str
    assets: tuple[Asset, ...] = field(repr=False)
    visibility: NoteVisibility
    serial: str = field(repr=False)
    recipient_program: RecipientProgram
    commitment: Optional[int] = field(default=None, repr=False)


@dataclass(frozen=True)
class NoteHandle:
    note_id: str
    denomination: str
    visibility: NoteVisibility


@dataclass(frozen=True)
class TransactionRef:
    transaction_id: str
    block_num: int = 0

    def short(self, length: int = 12) -> str:
        return self.transaction_id[:length]


@dataclass(frozen=True)
class TransactionRequest:
    account: LedgerAccount
    output_notes: tuple[ConfidentialNote, ...] = ()


@dataclass(frozen=True)
class ContributionRecord:
    """Evidence that one contributor's private note was submitted."""
    contributor: str
    account_id: str
    transaction_ref: str
    timestamp: str
    verified: bool
    visibility: NoteVisibility = NoteVisibility.PRIVATE


@dataclass(frozen=True)
class ConsumptionResult:
    consumed_count: int
    newly_visible_total: int
    transaction_ref: Optional[TransactionRef] = None


@dataclass(frozen=True)
class VerificationSummary:
    total_visible_amount: int
    contributor_count: int
    all_participated: bool
    fair_contributions: bool
    privacy_preserved: bool
    expected_contributor_count: int
    verification_timestamp: str


def format_amount(amount, decimals: int) -> str:
    """Render minor units with the asset's decimals, e.g. 750 -> '7.50'."""
    value = Decimal(amount).scaleb(-decimals)
    return f"{value:.{decimals}f}"
