"""Starting balances for contributors."""

from __future__ import annotations

import logging
from typing import Sequence

from .errors import LedgerError, LedgerUnavailable
from .models import Account
from .settlement import SettlementWaiter

logger = logging.getLogger(__name__)


class FundingOrchestrator:
    """
    Mint each contributor's funding, wait for the mints to settle, then have
    every contributor consume its incoming notes.

    Funding is a prerequisite, not best effort: when a mint or a settlement
    wait fails, the error propagates and the run stops.
    """

    def __init__(self, ledger, waiter: SettlementWaiter):
        self._ledger = ledger
        self._waiter = waiter

    async def fund(self, issuer: Account, plan: Sequence[tuple[Account, int]]) -> None:
        denomination = issuer.ledger_id
        starting = {}

        for account, amount in plan:
            try:
                starting[account.ledger_id] = await self._ledger.balance(account.ledger, denomination)
                ref = await self._ledger.mint(issuer.ledger, account.ledger, denomination, amount)
            except LedgerError as exc:
                raise LedgerUnavailable(f"Minting to {account.display_name} failed: {exc}") from exc
            logger.info("Minted %d to %s (tx %s)", amount, account.display_name, ref.short())

        async def minted_notes_visible() -> bool:
            for account, _ in plan:
                if not await self._consumable(account, denomination):
                    return False
            return True

        await self._waiter.wait_for(minted_notes_visible, "minted notes to settle")

        for account, _ in plan:
            handles = await self._consumable(account, denomination)
            try:
                ref = await self._ledger.consume(account.ledger, handles)
            except LedgerError as exc:
                raise LedgerUnavailable(
                    f"{account.display_name} could not consume minted notes: {exc}"
                ) from exc
            logger.info("%s consumed %d minted note(s) (tx %s)",
                        account.display_name, len(handles), ref.short())

        async def balances_funded() -> bool:
            for account, amount in plan:
                current = await self._ledger.balance(account.ledger, denomination)
                if current < starting[account.ledger_id] + amount:
                    return False
            return True

        await self._waiter.wait_for(balances_funded, "funded balances to settle")

    async def _consumable(self, account: Account, denomination: str):
        try:
            handles = await self._ledger.consumable_notes(account.ledger)
        except LedgerError as exc:
            raise LedgerUnavailable(
                f"Could not list notes for {account.display_name}: {exc}"
            ) from exc
        return [h for h in handles if h.denomination == denomination]
