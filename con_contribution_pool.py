"""
CONFIDENTIAL CONTRIBUTION POOL LEDGER

Value moves in notes. A note is created by one account, bound to one target
account through the pay-to-id program, and consumed exactly once by it.

  - Public notes (faucet mints) disclose amount and blinding.
  - Private notes store only C = g^amount * h^blinding mod p.

Commitment accounts enforce ONLY algebraic conservation:
  - C_sender_old == C_sender_new * C_note
  - C_receiver_new == C_receiver_old * prod(C_note)

Public accounts consume a batch by opening prod(C_note) as (total, blinding),
so only the batch total becomes visible.
"""

# -----------------------------------------------------------------------------
# Parameters & Helpers
# -----------------------------------------------------------------------------

p = 2**255 - 19  # modulus for modular arithmetic (big prime)
ORDER = p - 1    # exponents live mod p - 1

def map_to_base(tag: str):
    # Derive a base in [2, p-2] from sha3(tag)
    return int(hashlib.sha3("POOL:gen:" + tag)[:32], 16) % (p - 3) + 2

def mod_exp(base: int, exponent: int, modulus: int):
    if exponent == 0:
        return 1
    result = 1
    base = base % modulus
    while exponent > 0:
        if exponent % 2 == 1:
            result = (result * base) % modulus
        exponent = exponent >> 1
        base = (base * base) % modulus
    return result

def create_commitment(value: int, blinding: int):
    # Additively homomorphic: C(a, r) * C(b, s) == C(a + b, r + s)
    return (mod_exp(g, value % ORDER, p) * mod_exp(h, blinding % ORDER, p)) % p

def verify_commitment_subtraction(old_commitment: int, new_commitment: int, amount_commitment: int):
    expected_old = (new_commitment * amount_commitment) % p
    return old_commitment == expected_old

g = map_to_base("g")
h = map_to_base("h")
assert g != h and g not in (1, p-1) and h not in (1, p-1), "Bad generators"

ZERO_COMMITMENT = 1  # multiplicative identity

STORAGE_MODES = ['public', 'private']

# -----------------------------------------------------------------------------
# State
# -----------------------------------------------------------------------------

# address -> {'storage_mode': str, 'kind': str, 'created_at': int}
accounts = Hash()

# faucet address -> {'symbol', 'decimals', 'max_supply', 'issued', 'supply_commitment'}
faucets = Hash()

# (address, faucet) -> {'faucet': str, 'commitment': int, 'last_updated': int, 'updates': int}
balance_commitments = Hash()

# (address, faucet) -> {'faucet': str, 'amount': int, 'commitment': int, 'last_updated': int}
public_balances = Hash()

# note_id -> note record (see store_note)
notes = Hash()

# address -> [note_id, ...] still waiting to be consumed
inbox = Hash()

# serial -> note_id; a serial is never accepted twice
serials = Hash()

metadata = Hash()
# address -> int (monotonic)
nonces = Hash()

# counter for events
next_tx_id = Variable()

# Events
AccountRegisteredEvent = LogEvent('AccountRegistered', {
    'account': {'type': str, 'idx': True},
    'storage_mode': {'type': str},
    'tx_id': {'type': int, 'idx': True}
})

MintNoteEvent = LogEvent('MintNote', {
    'faucet': {'type': str, 'idx': True},
    'to': {'type': str, 'idx': True},
    'amount': {'type': int},
    'note_id': {'type': str},
    'tx_id': {'type': int, 'idx': True}
})

PrivateNoteEvent = LogEvent('PrivateNote', {
    'from': {'type': str, 'idx': True},
    'to': {'type': str, 'idx': True},
    'note_id': {'type': str},
    'note_commitment': {'type': str},
    'tx_id': {'type': int, 'idx': True}
})

NotesConsumedEvent = LogEvent('NotesConsumed', {
    'account': {'type': str, 'idx': True},
    'faucet': {'type': str, 'idx': True},
    'count': {'type': int},
    'tx_id': {'type': int, 'idx': True}
})

# -----------------------------------------------------------------------------
# Construction
# -----------------------------------------------------------------------------

@construct
def seed():
    metadata['name'] = "Confidential Contribution Pool"
    metadata['operator'] = ctx.caller

    # Only notes locked with this program can be consumed
    metadata['p2id_program'] = hashlib.sha3("PROGRAM|p2id|v1")

    next_tx_id.set(1)

# -----------------------------------------------------------------------------
# Views
# -----------------------------------------------------------------------------

@export
def get_metadata():
    return {
        'name': metadata['name'],
        'operator': metadata['operator'],
        'p2id_program': metadata['p2id_program']
    }

@export
def get_account(address: str):
    data = accounts[address]
    if data is None:
        return {'exists': False, 'storage_mode': '', 'kind': '', 'created_at': 0}
    return {
        'exists': True,
        'storage_mode': data['storage_mode'],
        'kind': data['kind'],
        'created_at': data['created_at']
    }

@export
def get_faucet(faucet: str):
    data = faucets[faucet]
    assert data is not None, 'Unknown faucet'
    return data

@export
def get_note(note_id: str):
    note = notes[note_id]
    assert note is not None, 'Unknown note'
    return note

@export
def get_consumable_notes(address: str):
    pending = inbox[address] or []
    result = []
    for note_id in pending:
        note = notes[note_id]
        result.append({
            'note_id': note_id,
            'faucet': note['faucet'],
            'note_type': note['note_type'],
            'created_at': note['created_at']
        })
    return result

@export
def get_balance_commitment(address: str, faucet: str):
    data = balance_commitments[address, faucet]
    if data is None:
        return {
            'exists': False,
            'commitment': ZERO_COMMITMENT,
            'last_updated': 0,
            'updates': 0
        }
    return {
        'exists': True,
        'commitment': data['commitment'],
        'last_updated': data['last_updated'],
        'updates': data['updates']
    }

@export
def get_public_balance(address: str, faucet: str):
    data = public_balances[address, faucet]
    if data is None:
        return 0
    return data['amount']

@export
def get_nonce(address: str):
    n = nonces[address]
    return n if n is not None else 0

# -----------------------------------------------------------------------------
# Internal
# -----------------------------------------------------------------------------

def check_nonce(addr: str, provided: int):
    current = nonces[addr]
    if current is None:
        current = 0
    assert provided == current + 1, 'Bad nonce'

def next_tx():
    tid = next_tx_id.get()
    next_tx_id.set(tid + 1)
    return tid

def store_note(note: dict):
    notes[note['note_id']] = note
    serials[note['serial']] = note['note_id']
    pending = inbox[note['target']] or []
    pending.append(note['note_id'])
    inbox[note['target']] = pending

def check_new_note(note_id: str, serial: str):
    assert len(serial) >= 32, 'Serial must carry at least 128 bits'
    assert serials[serial] is None, 'Serial already used'
    assert notes[note_id] is None, 'Note already exists'

def load_batch(account: str, note_ids: list):
    # Validate the whole batch before anything is written
    assert len(note_ids) > 0, 'Nothing to consume'
    seen = []
    batch = []
    faucet = None
    for note_id in note_ids:
        assert note_id not in seen, 'Duplicate note in batch'
        seen.append(note_id)
        note = notes[note_id]
        assert note is not None, 'Unknown note'
        assert not note['consumed'], 'Note already consumed'
        assert note['program'] == metadata['p2id_program'], 'Unsupported note program'
        assert note['target'] == account, 'Note target mismatch'
        if faucet is None:
            faucet = note['faucet']
        assert note['faucet'] == faucet, 'Mixed assets in batch'
        batch.append(note)
    return batch

def batch_commitment(batch: list):
    prod = ZERO_COMMITMENT
    for note in batch:
        prod = (prod * note['commitment']) % p
    return prod

def mark_consumed(account: str, batch: list):
    consumed = []
    for note in batch:
        note['consumed'] = True
        note['consumed_at'] = block_num
        notes[note['note_id']] = note
        consumed.append(note['note_id'])
    pending = inbox[account] or []
    inbox[account] = [n for n in pending if n not in consumed]

# -----------------------------------------------------------------------------
# Accounts & faucets
# -----------------------------------------------------------------------------

@export
def register_account(storage_mode: str):
    assert storage_mode in STORAGE_MODES, 'Unknown storage mode'
    assert accounts[ctx.caller] is None, 'Account already registered'

    accounts[ctx.caller] = {
        'storage_mode': storage_mode,
        'kind': 'wallet',
        'created_at': block_num
    }

    tx_id = next_tx()
    AccountRegisteredEvent({
        'account': ctx.caller,
        'storage_mode': storage_mode,
        'tx_id': tx_id
    })
    return tx_id

@export
def create_faucet(symbol: str, decimals: int, max_supply: int):
    assert accounts[ctx.caller] is None, 'Account already registered'
    assert len(symbol) > 0 and len(symbol) <= 8, 'Bad symbol'
    assert decimals >= 0 and decimals <= 12, 'Bad decimals'
    assert max_supply > 0, 'Max supply must be positive'

    accounts[ctx.caller] = {
        'storage_mode': 'public',
        'kind': 'faucet',
        'created_at': block_num
    }
    faucets[ctx.caller] = {
        'symbol': symbol,
        'decimals': decimals,
        'max_supply': max_supply,
        'issued': 0,
        'supply_commitment': ZERO_COMMITMENT
    }

    tx_id = next_tx()
    AccountRegisteredEvent({
        'account': ctx.caller,
        'storage_mode': 'public',
        'tx_id': tx_id
    })
    return tx_id

# -----------------------------------------------------------------------------
# Notes
# -----------------------------------------------------------------------------

@export
def mint(to: str,
         amount: int,
         blinding: int,
         note_id: str,
         serial: str,
         nonce: int):
    faucet = faucets[ctx.caller]
    assert faucet is not None, 'Only a faucet can mint'
    assert accounts[to] is not None, 'Unknown recipient'
    assert amount > 0, 'Amount must be positive'
    assert faucet['issued'] + amount <= faucet['max_supply'], 'Max supply exceeded'
    check_nonce(ctx.caller, nonce)
    check_new_note(note_id, serial)

    commitment = create_commitment(amount, blinding)

    store_note({
        'note_id': note_id,
        'serial': serial,
        'sender': ctx.caller,
        'target': to,
        'faucet': ctx.caller,
        'note_type': 'public',
        'amount': amount,
        'blinding': blinding % ORDER,
        'commitment': commitment,
        'program': metadata['p2id_program'],
        'created_at': block_num,
        'consumed': False
    })

    # Public supply and supply commitment
    faucet['issued'] = faucet['issued'] + amount
    faucet['supply_commitment'] = (faucet['supply_commitment'] * commitment) % p
    faucets[ctx.caller] = faucet
    nonces[ctx.caller] = nonce

    tx_id = next_tx()
    MintNoteEvent({
        'faucet': ctx.caller,
        'to': to,
        'amount': amount,
        'note_id': note_id,
        'tx_id': tx_id
    })
    return tx_id

@export
def create_private_note(recipient: str,
                        faucet: str,
                        note_id: str,
                        serial: str,
                        note_commitment: int,
                        new_sender_commitment: int,
                        program: str,
                        target: str,
                        nonce: int):
    assert recipient != ctx.caller, 'Cannot send a note to self'
    assert accounts[recipient] is not None, 'Unknown recipient'
    assert faucets[faucet] is not None, 'Unknown faucet'
    assert program == metadata['p2id_program'], 'Unsupported note program'
    assert target == recipient, 'Program target must be the recipient'
    check_nonce(ctx.caller, nonce)
    check_new_note(note_id, serial)

    sender_data = balance_commitments[ctx.caller, faucet]
    assert sender_data is not None, 'Sender holds no commitment'

    # Algebraic check: C_sender_old == C_sender_new * C_note
    assert verify_commitment_subtraction(sender_data['commitment'], new_sender_commitment, note_commitment), 'Sender commitment mismatch'

    balance_commitments[ctx.caller, faucet] = {
        'faucet': faucet,
        'commitment': new_sender_commitment,
        'last_updated': block_num,
        'updates': sender_data['updates'] + 1
    }

    store_note({
        'note_id': note_id,
        'serial': serial,
        'sender': ctx.caller,
        'target': target,
        'faucet': faucet,
        'note_type': 'private',
        'commitment': note_commitment,
        'program': program,
        'created_at': block_num,
        'consumed': False
    })
    nonces[ctx.caller] = nonce

    tx_id = next_tx()
    PrivateNoteEvent({
        'from': ctx.caller,
        'to': recipient,
        'note_id': note_id,
        'note_commitment': hex(note_commitment),
        'tx_id': tx_id
    })
    return tx_id

@export
def consume_notes(note_ids: list, nonce: int):
    account = accounts[ctx.caller]
    assert account is not None, 'Unknown account'
    assert account['storage_mode'] == 'private', 'Public accounts must reveal the consumed total'
    check_nonce(ctx.caller, nonce)

    batch = load_batch(ctx.caller, note_ids)
    faucet = batch[0]['faucet']
    amount_commitment = batch_commitment(batch)

    receiver_data = balance_commitments[ctx.caller, faucet]
    current = receiver_data['commitment'] if receiver_data else ZERO_COMMITMENT

    balance_commitments[ctx.caller, faucet] = {
        'faucet': faucet,
        'commitment': (current * amount_commitment) % p,
        'last_updated': block_num,
        'updates': (0 if receiver_data is None else receiver_data['updates']) + 1
    }
    mark_consumed(ctx.caller, batch)
    nonces[ctx.caller] = nonce

    tx_id = next_tx()
    NotesConsumedEvent({
        'account': ctx.caller,
        'faucet': faucet,
        'count': len(batch),
        'tx_id': tx_id
    })
    return tx_id

@export
def consume_notes_revealed(note_ids: list, total: int, blinding: int, nonce: int):
    account = accounts[ctx.caller]
    assert account is not None, 'Unknown account'
    assert account['storage_mode'] == 'public', 'Private accounts keep commitment balances'
    assert total > 0, 'Total must be positive'
    check_nonce(ctx.caller, nonce)

    batch = load_batch(ctx.caller, note_ids)
    faucet = batch[0]['faucet']
    amount_commitment = batch_commitment(batch)

    # The opening must match the batch as a whole; single notes stay closed
    assert amount_commitment == create_commitment(total, blinding), 'Batch opening mismatch'

    data = public_balances[ctx.caller, faucet]
    current_amount = data['amount'] if data else 0
    current_commitment = data['commitment'] if data else ZERO_COMMITMENT

    public_balances[ctx.caller, faucet] = {
        'faucet': faucet,
        'amount': current_amount + total,
        'commitment': (current_commitment * amount_commitment) % p,
        'last_updated': block_num
    }
    mark_consumed(ctx.caller, batch)
    nonces[ctx.caller] = nonce

    tx_id = next_tx()
    NotesConsumedEvent({
        'account': ctx.caller,
        'faucet': faucet,
        'count': len(batch),
        'tx_id': tx_id
    })
    return tx_id

# -----------------------------------------------------------------------------
# Invariants / Utilities
# -----------------------------------------------------------------------------

@export
def verify_supply_invariant(faucet: str):
    # Every minted commitment lives in exactly one place: a commitment balance,
    # a public balance, or a note that is still pending.
    data = faucets[faucet]
    assert data is not None, 'Unknown faucet'

    prod = 1
    holders = 0
    for v in balance_commitments.all():
        if v and isinstance(v, dict) and v.get('faucet') == faucet:
            prod = (prod * int(v.get('commitment', 1))) % p
            holders += 1
    for v in public_balances.all():
        if v and isinstance(v, dict) and v.get('faucet') == faucet:
            prod = (prod * int(v.get('commitment', 1))) % p
            holders += 1
    pending = 0
    for v in notes.all():
        if v and isinstance(v, dict) and v.get('faucet') == faucet and not v.get('consumed'):
            prod = (prod * int(v.get('commitment', 1))) % p
            pending += 1

    expected = data['supply_commitment']
    return {
        'ok': prod == expected,
        'product': prod,
        'expected': expected,
        'holders': holders,
        'pending_notes': pending
    }
