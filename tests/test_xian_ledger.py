import asyncio

import pytest

import private_pool.xian_ledger
from private_pool.errors import LedgerError, LedgerRejected, NoPendingContributions
from private_pool.models import (
    Asset,
    NoteVisibility,
    StorageMode,
    TransactionRequest,
)
from private_pool.workflow import PrivatePoolWorkflow
from private_pool.xian_ledger import XianLedgerClient


@pytest.fixture
def ledger(contract):
    return XianLedgerClient(contract=contract)


async def funded(ledger, amount=600):
    faucet = await ledger.create_asset_issuer("TRV", 2, 1_000_000)
    alice = await ledger.create_account(StorageMode.PRIVATE)
    pool = await ledger.create_account(StorageMode.PUBLIC)
    await ledger.mint(faucet, alice, faucet.account_id, amount)
    await ledger.sync()
    await ledger.consume(alice, await ledger.consumable_notes(alice))
    await ledger.sync()
    return faucet, alice, pool


async def contribute(ledger, sender, pool, denomination, amount, helper):
    program = await ledger.recipient_program(pool)
    note = await ledger.build_confidential_note(
        sender, (Asset(denomination, amount),), pool, helper.random_serial(), program
    )
    await ledger.submit(TransactionRequest(account=sender, output_notes=(note,)))
    return note


def test_workflow_round_on_contract(contract, params, reporter):
    workflow = PrivatePoolWorkflow(XianLedgerClient(contract=contract), params, reporter)
    summary = asyncio.run(workflow.run())

    assert summary.total_visible_amount == 750
    assert summary.all_participated
    assert summary.fair_contributions
    assert summary.privacy_preserved
    assert reporter.of_kind("error") == []

    faucet = workflow.directory.issuer.ledger_id
    pool = workflow.directory.pool.ledger_id
    assert contract.get_public_balance(address=pool, faucet=faucet) == 750
    assert contract.get_faucet(faucet=faucet)["issued"] == 1500
    assert contract.verify_supply_invariant(faucet=faucet)["ok"]

    with pytest.raises(NoPendingContributions):
        asyncio.run(workflow.consumer.consume_pending_contributions(workflow.directory.pool, faucet))


def test_contributor_balances_after_round(contract, params):
    workflow = PrivatePoolWorkflow(XianLedgerClient(contract=contract), params)
    asyncio.run(workflow.run())

    faucet = workflow.directory.issuer.ledger_id

    async def balances():
        return [await workflow.ledger.balance(c.ledger, faucet) for c in workflow.directory.contributors]

    assert asyncio.run(balances()) == [300, 200, 250]


def test_private_note_keeps_amount_off_chain(ledger, contract, helper_module):
    async def scenario():
        faucet, alice, pool = await funded(ledger)
        note = await contribute(ledger, alice, pool, faucet.account_id, 300, helper_module)
        return faucet, alice, pool, note

    faucet, alice, pool, note = asyncio.run(scenario())

    onchain = contract.get_note(note_id=note.note_id)
    assert onchain["note_type"] == "private"
    assert "amount" not in onchain
    assert "blinding" not in onchain
    assert onchain["commitment"] == note.commitment

    assert asyncio.run(ledger.balance(alice, faucet.account_id)) == 300


def test_notes_settle_after_sync(ledger, helper_module):
    async def scenario():
        faucet, alice, pool = await funded(ledger)
        await contribute(ledger, alice, pool, faucet.account_id, 250, helper_module)
        before = await ledger.consumable_notes(pool)
        await ledger.sync()
        after = await ledger.consumable_notes(pool)
        return faucet, before, after

    faucet, before, after = asyncio.run(scenario())

    assert before == []
    assert len(after) == 1
    assert after[0].visibility is NoteVisibility.PRIVATE
    assert after[0].denomination == faucet.account_id


def test_pool_reveals_batch_total(ledger, contract, helper_module):
    async def scenario():
        faucet, alice, pool = await funded(ledger)
        await contribute(ledger, alice, pool, faucet.account_id, 300, helper_module)
        await contribute(ledger, alice, pool, faucet.account_id, 200, helper_module)
        await ledger.sync()
        await ledger.consume(pool, await ledger.consumable_notes(pool))
        return faucet, alice, pool, await ledger.balance(pool, faucet.account_id)

    faucet, alice, pool, total = asyncio.run(scenario())

    assert total == 500
    assert contract.get_consumable_notes(address=pool.account_id) == []
    assert contract.verify_supply_invariant(faucet=faucet.account_id)["ok"]


def test_note_cannot_be_consumed_twice(ledger, helper_module):
    async def scenario():
        faucet, alice, pool = await funded(ledger)
        await contribute(ledger, alice, pool, faucet.account_id, 300, helper_module)
        await ledger.sync()
        handles = await ledger.consumable_notes(pool)
        await ledger.consume(pool, handles)
        await ledger.consume(pool, handles)

    with pytest.raises(LedgerRejected):
        asyncio.run(scenario())


def test_insufficient_balance_is_rejected(ledger, helper_module):
    async def scenario():
        faucet, alice, pool = await funded(ledger, amount=100)
        await contribute(ledger, alice, pool, faucet.account_id, 101, helper_module)

    with pytest.raises(LedgerRejected) as excinfo:
        asyncio.run(scenario())
    assert "Insufficient balance" in str(excinfo.value)


def test_faucet_only_mints_its_own_asset(ledger):
    async def scenario():
        faucet = await ledger.create_asset_issuer("TRV", 2, 1_000_000)
        alice = await ledger.create_account(StorageMode.PRIVATE)
        await ledger.mint(faucet, alice, "someone-else", 10)

    with pytest.raises(LedgerRejected):
        asyncio.run(scenario())


def test_max_supply_is_enforced(ledger):
    async def scenario():
        faucet = await ledger.create_asset_issuer("TRV", 2, 500)
        alice = await ledger.create_account(StorageMode.PRIVATE)
        await ledger.mint(faucet, alice, faucet.account_id, 501)

    with pytest.raises(LedgerRejected) as excinfo:
        asyncio.run(scenario())
    assert "Max supply exceeded" in str(excinfo.value)


def test_program_bound_to_another_account_is_rejected(ledger):
    async def scenario():
        faucet, alice, pool = await funded(ledger)
        program = await ledger.recipient_program(alice)
        await ledger.build_confidential_note(
            alice, (Asset(faucet.account_id, 10),), pool, "ab" * 32, program
        )

    with pytest.raises(LedgerRejected):
        asyncio.run(scenario())


def test_sandbox_is_prepared_only_on_deploy(monkeypatch, client, contract):
    calls = []
    monkeypatch.setattr(private_pool.xian_ledger, "prepare_sandbox", lambda: calls.append(1))

    XianLedgerClient(contract=contract)
    assert calls == []

    XianLedgerClient(client=client)
    assert calls == [1]


def test_unknown_commitment_cannot_be_opened(contract, ledger):
    async def scenario():
        faucet, alice, _ = await funded(ledger)
        return faucet, alice

    faucet, alice = asyncio.run(scenario())

    stranger = XianLedgerClient(contract=contract)
    with pytest.raises(LedgerError):
        asyncio.run(stranger.balance(alice, faucet.account_id))
