"""
Capabilities the workflow needs from a privacy-preserving ledger.

Any object providing these coroutines can drive a run; the workflow never
imports a concrete ledger binding. Adapters raise LedgerError (or a subclass)
for failed interactions and leave error classification to the workflow.
"""

from __future__ import annotations

import inspect
from typing import Protocol, Sequence, runtime_checkable

from .errors import EnvironmentUnsupported
from .models import (
    Asset,
    ConfidentialNote,
    LedgerAccount,
    NoteHandle,
    RecipientProgram,
    StorageMode,
    TransactionRef,
    TransactionRequest,
)


@runtime_checkable
class LedgerClient(Protocol):
    async def create_account(self, storage_mode: StorageMode) -> LedgerAccount: ...

    async def create_asset_issuer(self, code: str, decimals: int, max_supply: int) -> LedgerAccount: ...

    async def mint(self, issuer: LedgerAccount, recipient: LedgerAccount,
                   denomination: str, amount: int) -> TransactionRef: ...

    async def recipient_program(self, recipient: LedgerAccount) -> RecipientProgram: ...

    async def build_confidential_note(self, sender: LedgerAccount, assets: Sequence[Asset],
                                      recipient: LedgerAccount, serial: str,
                                      recipient_program: RecipientProgram) -> ConfidentialNote: ...

    async def submit(self, request: TransactionRequest) -> TransactionRef: ...

    async def sync(self) -> int: ...

    async def consumable_notes(self, account: LedgerAccount) -> list[NoteHandle]: ...

    async def consume(self, account: LedgerAccount, notes: Sequence[NoteHandle]) -> TransactionRef: ...

    async def balance(self, account: LedgerAccount, denomination: str) -> int: ...


REQUIRED_CAPABILITIES = (
    "create_account",
    "create_asset_issuer",
    "mint",
    "recipient_program",
    "build_confidential_note",
    "submit",
    "sync",
    "consumable_notes",
    "consume",
    "balance",
)


def ensure_supported(ledger) -> None:
    """Fail before any ledger interaction if `ledger` cannot drive a run."""
    if ledger is None:
        raise EnvironmentUnsupported("No ledger client was provided")
    if not isinstance(ledger, LedgerClient):
        missing = [name for name in REQUIRED_CAPABILITIES if not hasattr(ledger, name)]
        raise EnvironmentUnsupported(
            f"{type(ledger).__name__} is missing ledger capabilities: {', '.join(missing)}"
        )
    blocking = [
        name for name in REQUIRED_CAPABILITIES
        if not inspect.iscoroutinefunction(getattr(ledger, name))
    ]
    if blocking:
        raise EnvironmentUnsupported(
            f"{type(ledger).__name__} must expose coroutines for: {', '.join(blocking)}"
        )
