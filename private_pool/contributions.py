"""Private contributions from each contributor to the pool."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable, Optional, Sequence

import client_helper

from .errors import ContributionFailed, LedgerError
from .events import ProgressReporter
from .models import (
    Account,
    Asset,
    ContributionRecord,
    NoteVisibility,
    TransactionRequest,
)

logger = logging.getLogger(__name__)


def _utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class SerialSource:
    """Hands out note serials, never the same one twice in this process."""

    def __init__(self, draw: Callable[[], str] = client_helper.random_serial):
        self._draw = draw
        self._issued: set[str] = set()

    def draw(self) -> str:
        while True:
            serial = self._draw()
            if serial not in self._issued:
                self._issued.add(serial)
                return serial
            logger.warning("Discarding a repeated note serial")

    def __len__(self) -> int:
        return len(self._issued)


# Shared by every run in the process
PROCESS_SERIALS = SerialSource()


class ContributionIssuer:
    """
    Sends one private pay-to-id note per contributor to the pool.

    Records are appended only after the ledger accepted the submission, and
    no record, log line or event carries the amount that was sent.
    """

    def __init__(self, ledger, reporter: ProgressReporter,
                 serials: Optional[SerialSource] = None,
                 clock: Callable[[], str] = _utc_timestamp):
        self._ledger = ledger
        self._reporter = reporter
        self._serials = serials if serials is not None else PROCESS_SERIALS
        self._clock = clock

    async def contribute(self, pool: Account, denomination: str,
                         plan: Sequence[tuple[Account, int]]) -> list[ContributionRecord]:
        records: list[ContributionRecord] = []
        try:
            program = await self._ledger.recipient_program(pool.ledger)
        except LedgerError as exc:
            first = plan[0][0].display_name if plan else pool.display_name
            raise ContributionFailed(first, f"no recipient program: {exc}") from exc

        for account, amount in plan:
            serial = self._serials.draw()
            try:
                note = await self._ledger.build_confidential_note(
                    account.ledger,
                    (Asset(denomination, amount),),
                    pool.ledger,
                    serial,
                    program,
                )
                if note.visibility is not NoteVisibility.PRIVATE:
                    raise ContributionFailed(
                        account.display_name, "ledger built a public note",
                        [r.contributor for r in records],
                    )
                ref = await self._ledger.submit(
                    TransactionRequest(account=account.ledger, output_notes=(note,))
                )
            except LedgerError as exc:
                raise ContributionFailed(
                    account.display_name, str(exc), [r.contributor for r in records]
                ) from exc

            record = ContributionRecord(
                contributor=account.display_name,
                account_id=account.ledger_id,
                transaction_ref=ref.transaction_id,
                timestamp=self._clock(),
                verified=True,
                visibility=note.visibility,
            )
            records.append(record)
            logger.info("%s sent a private contribution (proof %s)",
                        record.contributor, ref.short())
            self._reporter.on_contribution_proof(
                record.contributor,
                record.account_id,
                record.transaction_ref,
                record.timestamp,
                record.verified,
            )

        return records
