import itertools

import pytest
from contracting.client import ContractingClient

import client_helper
from private_pool.config import SettlementPolicy, WorkflowParams
from private_pool.errors import LedgerRejected
from private_pool.events import ProgressReporter
from private_pool.models import (
    ConfidentialNote,
    LedgerAccount,
    NoteHandle,
    NoteVisibility,
    RecipientProgram,
    StorageMode,
    TransactionRef,
)
from private_pool.xian_ledger import OPERATOR, deploy_contract, prepare_sandbox


@pytest.fixture(scope="session", autouse=True)
def enable_sha3_and_whitelist():
    prepare_sandbox()


@pytest.fixture(scope="session")
def helper_module():
    return client_helper


@pytest.fixture
def client():
    return ContractingClient(signer=OPERATOR, metering=False)


@pytest.fixture
def contract(client):
    return deploy_contract(client)


# ---- In-memory ledger --------------------------------------------------------

class FakeLedger:
    """
    Ledger double with the same settlement shape as the Xian adapter:
    effects land in the pending block and show up after the next sync().
    """

    def __init__(self, settle_after=1, fail_submit_on=None, fail_account_creation=False):
        self.height = 0
        self.settle_after = settle_after
        self.fail_submit_on = fail_submit_on
        self.fail_account_creation = fail_account_creation
        self.accounts = {}
        self.balances = {}
        self.notes = {}
        self.serials = []
        self.submits = 0
        self.consume_calls = []
        self._ids = itertools.count(1)

    def _new_id(self, prefix):
        return "%s-%04d" % (prefix, next(self._ids))

    def _credit(self, account_id, denomination, amount):
        key = (account_id, denomination)
        self.balances[key] = self.balances.get(key, 0) + amount

    def _add_note(self, recipient, denomination, amount, visibility):
        note_id = self._new_id("note")
        self.notes[note_id] = {
            "recipient": recipient,
            "denomination": denomination,
            "amount": amount,
            "visibility": visibility,
            "created_at": self.height + 1,
            "consumed": False,
        }
        return note_id

    def _ref(self):
        return TransactionRef(self._new_id("tx"), self.height + 1)

    async def create_account(self, storage_mode):
        if self.fail_account_creation:
            raise LedgerRejected("node refused the account")
        account = LedgerAccount(self._new_id("acct"), storage_mode)
        self.accounts[account.account_id] = account
        return account

    async def create_asset_issuer(self, code, decimals, max_supply):
        if self.fail_account_creation:
            raise LedgerRejected("node refused the faucet")
        account = LedgerAccount(self._new_id("faucet"), StorageMode.PUBLIC, is_faucet=True)
        self.accounts[account.account_id] = account
        return account

    async def mint(self, issuer, recipient, denomination, amount):
        self._add_note(recipient.account_id, denomination, amount, NoteVisibility.PUBLIC)
        return self._ref()

    async def recipient_program(self, recipient):
        return RecipientProgram("p2id", (recipient.account_id,))

    async def build_confidential_note(self, sender, assets, recipient, serial, recipient_program):
        self.serials.append(serial)
        return ConfidentialNote(
            note_id=self._new_id("draft"),
            recipient=recipient.account_id,
            assets=tuple(assets),
            visibility=NoteVisibility.PRIVATE,
            serial=serial,
            recipient_program=recipient_program,
        )

    async def submit(self, request):
        self.submits += 1
        if self.fail_submit_on == self.submits:
            raise LedgerRejected("proof generation failed")
        sender = request.account.account_id
        for note in request.output_notes:
            asset = note.assets[0]
            if self.balances.get((sender, asset.denomination), 0) < asset.amount:
                raise LedgerRejected("insufficient balance")
            self._credit(sender, asset.denomination, -asset.amount)
            self._add_note(note.recipient, asset.denomination, asset.amount, note.visibility)
        return self._ref()

    async def sync(self):
        self.height += 1
        return self.height

    async def consumable_notes(self, account):
        return [
            NoteHandle(note_id, n["denomination"], n["visibility"])
            for note_id, n in self.notes.items()
            if n["recipient"] == account.account_id
            and not n["consumed"]
            and n["created_at"] + self.settle_after - 1 <= self.height
        ]

    async def consume(self, account, notes):
        notes = list(notes)
        for handle in notes:
            note = self.notes[handle.note_id]
            if note["consumed"] or note["recipient"] != account.account_id:
                raise LedgerRejected("note cannot be consumed")
        for handle in notes:
            note = self.notes[handle.note_id]
            note["consumed"] = True
            self._credit(account.account_id, note["denomination"], note["amount"])
        self.consume_calls.append([h.note_id for h in notes])
        return self._ref()

    async def balance(self, account, denomination):
        return self.balances.get((account.account_id, denomination), 0)


class RecordingReporter(ProgressReporter):

    def __init__(self):
        self.events = []

    def on_step(self, step_id, title, status, details=None):
        self.events.append(("step", step_id, title, status, details))

    def on_account(self, name, account_id):
        self.events.append(("account", name, account_id))

    def on_contribution_proof(self, contributor, account_id, transaction_ref, timestamp, verified):
        self.events.append(("proof", contributor, account_id, transaction_ref, timestamp, verified))

    def on_fund_state(self, summary):
        self.events.append(("fund", summary))

    def on_error(self, message):
        self.events.append(("error", message))

    def of_kind(self, kind):
        return [e for e in self.events if e[0] == kind]

    def steps(self, step_id=None):
        return [e for e in self.of_kind("step") if step_id is None or e[1] == step_id]


@pytest.fixture
def make_ledger():
    return FakeLedger


@pytest.fixture
def fake_ledger():
    return FakeLedger()


@pytest.fixture
def reporter():
    return RecordingReporter()


@pytest.fixture
def fast_policy():
    return SettlementPolicy(timeout=2.0, interval=0.001, min_interval=0.001, backoff=1.0, max_interval=0.001)


@pytest.fixture
def params(fast_policy):
    return WorkflowParams.default(settlement=fast_policy)
