"""
Ledger adapter backed by the con_contribution_pool Xian contract.

The contract runs in a local `contracting` sandbox. Transactions execute in
the pending block (synced height + 1) and their notes only become consumable
once `sync()` has moved past that block.

Openings of private notes and commitment balances never leave this client:
the contract sees commitments, and the pool's consumption discloses only the
total of each batch.
"""

from __future__ import annotations

import hashlib
import logging
import secrets
from pathlib import Path
from typing import Optional, Sequence

import contracting
from contracting.client import ContractingClient
from contracting.compilation import whitelists

import client_helper

from .errors import LedgerError, LedgerRejected
from .models import (
    Asset,
    ConfidentialNote,
    LedgerAccount,
    NoteHandle,
    NoteVisibility,
    RecipientProgram,
    StorageMode,
    TransactionRef,
    TransactionRequest,
)

logger = logging.getLogger(__name__)

OPERATOR = "operator"
CONTRACT_NAME = "con_contribution_pool"
CONTRACT_PATH = Path(__file__).resolve().parents[1] / "con_contribution_pool.py"
SUBMISSION_PATH = (
    Path(contracting.__file__).resolve().parent / "contracts" / "submission.s.py"
)


def prepare_sandbox() -> None:
    """
    Expose hashlib.sha3 to contracts, as the Xian runtime does.

    This patches the `hashlib` module and the contracting builtin whitelist
    for the whole process. It runs when a contract is deployed here; callers
    that bring an already deployed contract have set the sandbox up already.
    """
    whitelists.ALLOWED_BUILTINS.update({"hashlib", "decimal"})

    if not hasattr(hashlib, "sha3"):
        def _sha3(data):
            if isinstance(data, bytes):
                data = data.decode("utf-8")
            return client_helper.sha3_hex(data)

        setattr(hashlib, "sha3", _sha3)


def deploy_contract(client: ContractingClient, code: Optional[str] = None, flush: bool = True):
    prepare_sandbox()
    if flush:
        client.flush()
    client.set_submission_contract(str(SUBMISSION_PATH))
    client.submit(code if code is not None else CONTRACT_PATH.read_text(), name=CONTRACT_NAME, owner=None)
    return client.get_contract(CONTRACT_NAME)


class XianLedgerClient:

    def __init__(self, client: Optional[ContractingClient] = None, contract=None):
        if contract is None:
            client = client if client is not None else ContractingClient(signer=OPERATOR, metering=False)
            contract = deploy_contract(client)
        self._contract = contract
        self._height = 0
        self._modes: dict[str, StorageMode] = {}
        self._wallets: dict[tuple[str, str], client_helper.NoteWallet] = {}
        self._openings: dict[str, tuple[int, int]] = {}

    @property
    def height(self) -> int:
        return self._height

    # -- plumbing -----------------------------------------------------------

    def _call(self, fn: str, signer: str, **kwargs):
        method = getattr(self._contract, fn)
        try:
            return method(signer=signer, environment={"block_num": self._height + 1}, **kwargs)
        except AssertionError as exc:
            raise LedgerRejected(f"{fn} rejected: {exc}") from exc

    def _next_nonce(self, address: str) -> int:
        return self._call("get_nonce", address, address=address) + 1

    def _ref(self, address: str, nonce: int, tx_id: int) -> TransactionRef:
        return TransactionRef(
            client_helper.derive_transaction_id(address, nonce, tx_id),
            self._height + 1,
        )

    def _mode(self, account: LedgerAccount) -> StorageMode:
        return self._modes.get(account.account_id, account.storage_mode)

    def _wallet(self, address: str, faucet: str) -> client_helper.NoteWallet:
        return self._wallets.setdefault((address, faucet), client_helper.NoteWallet())

    def _opening(self, handle: NoteHandle) -> tuple[int, int]:
        if handle.note_id in self._openings:
            return self._openings[handle.note_id]
        if handle.visibility is NoteVisibility.PUBLIC:
            note = self._call("get_note", OPERATOR, note_id=handle.note_id)
            return note["amount"], note["blinding"]
        raise LedgerRejected(f"No opening known for private note {handle.note_id[:12]}")

    @staticmethod
    def _new_id() -> str:
        return "0x" + secrets.token_hex(15)

    # -- accounts -----------------------------------------------------------

    async def create_account(self, storage_mode: StorageMode) -> LedgerAccount:
        account_id = self._new_id()
        self._call("register_account", account_id, storage_mode=storage_mode.value)
        self._modes[account_id] = storage_mode
        logger.debug("Registered %s account %s", storage_mode.value, account_id)
        return LedgerAccount(account_id, storage_mode)

    async def create_asset_issuer(self, code: str, decimals: int, max_supply: int) -> LedgerAccount:
        account_id = self._new_id()
        self._call("create_faucet", account_id, symbol=code, decimals=decimals, max_supply=max_supply)
        self._modes[account_id] = StorageMode.PUBLIC
        logger.debug("Deployed faucet %s for %s", account_id, code)
        return LedgerAccount(account_id, StorageMode.PUBLIC, is_faucet=True)

    # -- notes --------------------------------------------------------------

    async def mint(self, issuer: LedgerAccount, recipient: LedgerAccount,
                   denomination: str, amount: int) -> TransactionRef:
        if denomination != issuer.account_id:
            raise LedgerRejected("A faucet only mints its own asset")
        nonce = self._next_nonce(issuer.account_id)
        try:
            plan = client_helper.build_mint(amount=amount, next_nonce=nonce)
        except ValueError as exc:
            raise LedgerRejected(str(exc)) from exc
        note_id = client_helper.derive_note_id(
            plan["serial"], recipient.account_id, client_helper.PAY_TO_ID_DIGEST, denomination
        )
        tx_id = self._call(
            "mint",
            issuer.account_id,
            to=recipient.account_id,
            amount=plan["amount"],
            blinding=plan["blinding"],
            note_id=note_id,
            serial=plan["serial"],
            nonce=plan["nonce"],
        )
        self._openings[note_id] = (plan["amount"], plan["blinding"])
        return self._ref(issuer.account_id, nonce, tx_id)

    async def recipient_program(self, recipient: LedgerAccount) -> RecipientProgram:
        return RecipientProgram(client_helper.PAY_TO_ID_DIGEST, (recipient.account_id,))

    async def build_confidential_note(self, sender: LedgerAccount, assets: Sequence[Asset],
                                      recipient: LedgerAccount, serial: str,
                                      recipient_program: RecipientProgram) -> ConfidentialNote:
        assets = tuple(assets)
        if len(assets) != 1:
            raise LedgerRejected("Notes carry exactly one asset")
        if assets[0].amount <= 0:
            raise LedgerRejected("Note amount must be positive")
        if recipient_program.inputs != (recipient.account_id,):
            raise LedgerRejected("Recipient program is bound to another account")

        blinding = client_helper.random_blinding()
        note_id = client_helper.derive_note_id(
            serial, recipient.account_id, recipient_program.digest, assets[0].denomination
        )
        self._openings[note_id] = (assets[0].amount, blinding)
        return ConfidentialNote(
            note_id=note_id,
            recipient=recipient.account_id,
            assets=assets,
            visibility=NoteVisibility.PRIVATE,
            serial=serial,
            recipient_program=recipient_program,
            commitment=client_helper.create_commitment(assets[0].amount, blinding),
        )

    async def submit(self, request: TransactionRequest) -> TransactionRef:
        if not request.output_notes:
            raise LedgerRejected("Transaction has no output notes")
        sender = request.account.account_id
        ref = None
        for note in request.output_notes:
            if note.note_id not in self._openings:
                raise LedgerRejected("Note was not built by this client")
            amount, blinding = self._openings[note.note_id]
            faucet = note.assets[0].denomination
            wallet = self._wallet(sender, faucet)
            if wallet.value < amount:
                raise LedgerRejected("Insufficient balance")

            nonce = self._next_nonce(sender)
            plan = client_helper.build_private_note(
                sender_commitment=wallet.commitment,
                amount=amount,
                amount_blinding=blinding,
                next_nonce=nonce,
            )
            tx_id = self._call(
                "create_private_note",
                sender,
                recipient=note.recipient,
                faucet=faucet,
                note_id=note.note_id,
                serial=note.serial,
                note_commitment=plan["note_commitment"],
                new_sender_commitment=plan["new_sender_commitment"],
                program=note.recipient_program.digest,
                target=note.recipient_program.inputs[0],
                nonce=plan["nonce"],
            )
            wallet.apply_outgoing(amount, blinding)
            ref = self._ref(sender, nonce, tx_id)
        return ref

    async def sync(self) -> int:
        self._height += 1
        return self._height

    async def consumable_notes(self, account: LedgerAccount) -> list[NoteHandle]:
        pending = self._call("get_consumable_notes", account.account_id, address=account.account_id)
        return [
            NoteHandle(n["note_id"], n["faucet"], NoteVisibility(n["note_type"]))
            for n in pending
            if n["created_at"] <= self._height
        ]

    async def consume(self, account: LedgerAccount, notes: Sequence[NoteHandle]) -> TransactionRef:
        notes = list(notes)
        if not notes:
            raise LedgerRejected("Nothing to consume")
        address = account.account_id
        openings = [self._opening(handle) for handle in notes]
        note_ids = [handle.note_id for handle in notes]
        nonce = self._next_nonce(address)

        if self._mode(account) is StorageMode.PUBLIC:
            plan = client_helper.build_revealed_consumption(openings, next_nonce=nonce)
            tx_id = self._call(
                "consume_notes_revealed",
                address,
                note_ids=note_ids,
                total=plan["total"],
                blinding=plan["blinding"],
                nonce=plan["nonce"],
            )
        else:
            tx_id = self._call("consume_notes", address, note_ids=note_ids, nonce=nonce)
            wallet = self._wallet(address, notes[0].denomination)
            for amount, blinding in openings:
                wallet.apply_incoming(amount, blinding)

        for note_id in note_ids:
            self._openings.pop(note_id, None)
        return self._ref(address, nonce, tx_id)

    async def balance(self, account: LedgerAccount, denomination: str) -> int:
        address = account.account_id
        if self._mode(account) is StorageMode.PUBLIC:
            return self._call("get_public_balance", address, address=address, faucet=denomination)

        onchain = self._call("get_balance_commitment", address, address=address, faucet=denomination)
        wallet = self._wallets.get((address, denomination))
        if wallet is None:
            if onchain["exists"]:
                raise LedgerError(f"{address} holds a commitment this client cannot open")
            return 0
        if not wallet.opens(onchain["commitment"]):
            raise LedgerError(f"Local opening for {address} is out of sync with the ledger")
        return wallet.value
