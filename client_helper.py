import hashlib
import secrets

# ---- Chain-constant parameters & helpers (mirror contract) ----

p = 2**255 - 19
ORDER = p - 1

SERIAL_BITS = 256

PAY_TO_ID_TAG = "PROGRAM|p2id|v1"

def sha3_hex(s: str) -> str:
    # Same digest the sandbox exposes to contracts as hashlib.sha3
    return hashlib.sha3_256(s.encode("utf-8")).hexdigest()

def map_to_base(tag: str) -> int:
    return int(sha3_hex("POOL:gen:" + tag)[:32], 16) % (p - 3) + 2

g = map_to_base("g")
h = map_to_base("h")

ZERO_COMMITMENT = 1

PAY_TO_ID_DIGEST = sha3_hex(PAY_TO_ID_TAG)

def mod_exp(base: int, exponent: int, modulus: int) -> int:
    if exponent == 0:
        return 1
    result = 1
    base = base % modulus
    e = exponent
    while e > 0:
        if e & 1:
            result = (result * base) % modulus
        e >>= 1
        base = (base * base) % modulus
    return result

def mod_inverse(x: int, modulus: int = p) -> int:
    return mod_exp(x % modulus, modulus - 2, modulus)

def create_commitment(value: int, blinding: int) -> int:
    # C = g^v * h^r, so C(a, r1) * C(b, r2) == C(a + b, r1 + r2)
    return (mod_exp(g, value % ORDER, p) * mod_exp(h, blinding % ORDER, p)) % p

def combine_commitments(commitments) -> int:
    result = ZERO_COMMITMENT
    for c in commitments:
        result = (result * c) % p
    return result

def random_blinding() -> int:
    return secrets.randbelow(ORDER)

def random_serial() -> str:
    return secrets.token_hex(SERIAL_BITS // 8)

def derive_note_id(serial: str, recipient: str, program_digest: str, faucet: str) -> str:
    return sha3_hex("NOTE|" + "|".join((serial, recipient, program_digest, faucet)))

def derive_transaction_id(account: str, nonce: int, tx_id: int) -> str:
    return "0x" + sha3_hex("TX|%s|%d|%d" % (account, nonce, tx_id))

# ---- High-level builders -----------------------------------------------------

def build_mint(amount: int,
               amount_blinding: int = None,
               serial: str = None,
               next_nonce: int = 1):
    """
    Returns args for contract.mint():
        (to, amount, blinding, note_id, serial, nonce)
    Mint notes are public: amount and blinding are both disclosed on-chain.
    You still derive `note_id` once the recipient is known.
    """
    if amount <= 0:
        raise ValueError("Mint amount must be positive")
    if amount_blinding is None:
        amount_blinding = random_blinding()
    if serial is None:
        serial = random_serial()

    return {
        'amount': int(amount),
        'blinding': amount_blinding,
        'serial': serial,
        'amount_commitment': create_commitment(amount, amount_blinding),
        'nonce': next_nonce
    }

def build_private_note(sender_commitment: int,
                       amount: int,
                       amount_blinding: int = None,
                       next_nonce: int = 1):
    """
    Returns args for contract.create_private_note():
        (note_commitment, new_sender_commitment, nonce)
    Only the commitment leaves the client; amount and blinding stay local.
    """
    if amount <= 0:
        raise ValueError("Note amount must be positive")
    if sender_commitment is None or sender_commitment == 0:
        raise ValueError("Sender must have an existing commitment")
    if amount_blinding is None:
        amount_blinding = random_blinding()

    note_commitment = create_commitment(amount, amount_blinding)
    new_sender_commitment = (sender_commitment * mod_inverse(note_commitment)) % p

    return {
        'note_commitment': note_commitment,
        'new_sender_commitment': new_sender_commitment,
        'blinding': amount_blinding,
        'nonce': next_nonce
    }

def build_revealed_consumption(openings, next_nonce: int = 1):
    """
    Returns args for contract.consume_notes_revealed():
        (note_ids, total, blinding, nonce)
    `openings` is a sequence of (amount, blinding) pairs, one per note. Only
    their sums are returned, so the batch discloses its aggregate and nothing
    finer.
    """
    openings = list(openings)
    if not openings:
        raise ValueError("At least one note opening is required")

    total = 0
    blinding = 0
    for amount, note_blinding in openings:
        total += amount
        blinding = (blinding + note_blinding) % ORDER

    return {
        'total': total,
        'blinding': blinding,
        'nonce': next_nonce
    }

# ---- Convenience: wallet-side opening tracker --------------------------------

class NoteWallet:
    """
    Local helper that tracks the opening (value, blinding) of a commitment
    balance. The chain only ever sees `commitment`.
    """
    def __init__(self, value: int = 0, blinding: int = 0):
        self.value = value
        self.blinding = blinding % ORDER
        self.commitment = create_commitment(value, blinding)

    def apply_incoming(self, amount: int, blinding: int):
        self.value += amount
        self.blinding = (self.blinding + blinding) % ORDER
        self.commitment = (self.commitment * create_commitment(amount, blinding)) % p
        return self.commitment

    def apply_outgoing(self, amount: int, blinding: int):
        if amount > self.value:
            raise ValueError("Insufficient balance")
        self.value -= amount
        self.blinding = (self.blinding - blinding) % ORDER
        self.commitment = (self.commitment * mod_inverse(create_commitment(amount, blinding))) % p
        return self.commitment

    def opens(self, commitment: int) -> bool:
        return (commitment or ZERO_COMMITMENT) == self.commitment
