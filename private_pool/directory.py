"""Role-to-account bookkeeping for one run."""

from __future__ import annotations

import logging
from typing import Optional

from .config import AssetSpec
from .errors import LedgerError, LedgerUnavailable
from .events import ProgressReporter
from .models import Account, Role, StorageMode

logger = logging.getLogger(__name__)

# Contributors hold commitment balances so what they send stays hidden;
# the pool is public so its aggregate can be audited.
STORAGE_BY_ROLE = {
    Role.POOL: StorageMode.PUBLIC,
    Role.CONTRIBUTOR: StorageMode.PRIVATE,
}


class AccountDirectory:
    """
    Owns the accounts of a run.

    `provision` is idempotent per (role, index): asking twice hands back the
    account created the first time. Accounts never change once returned.
    """

    def __init__(self, ledger, reporter: ProgressReporter, asset: AssetSpec):
        self._ledger = ledger
        self._reporter = reporter
        self._asset = asset
        self._accounts: dict[tuple[Role, int], Account] = {}

    async def provision(self, role: Role, index: int = 0,
                        display_name: Optional[str] = None) -> Account:
        key = (role, index)
        if key in self._accounts:
            return self._accounts[key]

        name = display_name or f"{role.value}-{index}"
        try:
            if role is Role.ISSUER:
                ledger_account = await self._ledger.create_asset_issuer(
                    self._asset.code, self._asset.decimals, self._asset.max_supply
                )
            else:
                ledger_account = await self._ledger.create_account(STORAGE_BY_ROLE[role])
        except LedgerError as exc:
            raise LedgerUnavailable(f"Could not create {name} account: {exc}") from exc

        account = Account(role=role, ledger=ledger_account, display_name=name, index=index)
        self._accounts[key] = account
        logger.info("Provisioned %s account %s", name, account.ledger_id)
        self._reporter.on_account(name, account.ledger_id)
        return account

    def get(self, role: Role, index: int = 0) -> Account:
        return self._accounts[(role, index)]

    @property
    def pool(self) -> Account:
        return self.get(Role.POOL)

    @property
    def issuer(self) -> Account:
        return self.get(Role.ISSUER)

    @property
    def contributors(self) -> list[Account]:
        found = [a for (role, _), a in self._accounts.items() if role is Role.CONTRIBUTOR]
        return sorted(found, key=lambda a: a.index)
