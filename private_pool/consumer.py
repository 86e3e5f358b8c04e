"""Pool-side consumption of private contributions."""

from __future__ import annotations

import logging

from .errors import LedgerError, LedgerUnavailable, NoPendingContributions
from .models import Account, ConsumptionResult
from .settlement import SettlementWaiter

logger = logging.getLogger(__name__)


class PoolConsumer:
    """
    Consume every note currently waiting for the pool in one transaction.

    The batch either commits as a whole or fails, leaving all of its notes
    pending. An empty pool is not an error: NoPendingContributions lets the
    caller decide whether to wait and retry.
    """

    def __init__(self, ledger, waiter: SettlementWaiter):
        self._ledger = ledger
        self._waiter = waiter

    async def consume_pending_contributions(self, pool: Account, denomination: str,
                                            expected_notes: int = 1) -> ConsumptionResult:
        try:
            handles = [
                h for h in await self._ledger.consumable_notes(pool.ledger)
                if h.denomination == denomination
            ]
        except LedgerError as exc:
            raise LedgerUnavailable(f"Could not list notes for {pool.display_name}: {exc}") from exc

        if not handles:
            raise NoPendingContributions(pool.ledger_id)
        if len(handles) < expected_notes:
            # Some contributions are still settling; a partial batch would
            # leave stragglers for another round.
            raise NoPendingContributions(pool.ledger_id, found=len(handles), expected=expected_notes)

        try:
            before = await self._ledger.balance(pool.ledger, denomination)
            ref = await self._ledger.consume(pool.ledger, handles)
        except LedgerError as exc:
            raise LedgerUnavailable(
                f"{pool.display_name} could not consume {len(handles)} note(s): {exc}"
            ) from exc

        consumed_ids = {h.note_id for h in handles}

        async def batch_settled() -> bool:
            remaining = await self._ledger.consumable_notes(pool.ledger)
            return not any(h.note_id in consumed_ids for h in remaining)

        await self._waiter.wait_for(batch_settled, f"{len(handles)} consumed note(s) to settle")

        try:
            after = await self._ledger.balance(pool.ledger, denomination)
        except LedgerError as exc:
            raise LedgerUnavailable(f"Could not read {pool.display_name} balance: {exc}") from exc

        logger.info("%s consumed %d private note(s) (tx %s)",
                    pool.display_name, len(handles), ref.short())
        return ConsumptionResult(
            consumed_count=len(handles),
            newly_visible_total=after - before,
            transaction_ref=ref,
        )
