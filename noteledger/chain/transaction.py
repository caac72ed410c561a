# noteledger/chain/transaction.py
from dataclasses import dataclass, field
from typing import Dict, List, Set, Tuple
from uuid import uuid4

from noteledger.core.canon import canonical_json
from noteledger.core.encoding import pubkey_to_str, short_key
from noteledger.core.errors import MissingRequiredSignature, SignatureVerificationFailed
from noteledger.core.types import Instruction
from noteledger.crypto.hashing import payload_hash
from noteledger.crypto.keys import IdentityKeyPair


@dataclass
class Transaction:
    """
    Ordered instructions executed as one all-or-nothing unit.
    Every account marked `is_signer` must contribute an Ed25519 signature over
    the canonical JSON message. The random nonce is part of that message, so
    resubmitting the same signed transaction carries an already-committed id.
    """
    instructions: List[Instruction]
    signatures: Dict[bytes, bytes] = field(default_factory=dict)
    nonce: str = field(default_factory=lambda: uuid4().hex)

    def __post_init__(self):
        if not self.instructions:
            raise ValueError("Transaction needs at least one instruction")

    def required_signers(self) -> List[bytes]:
        """Signer keys in first-seen order."""
        seen: List[bytes] = []
        for ix in self.instructions:
            for meta in ix.accounts:
                if meta.is_signer and meta.pubkey not in seen:
                    seen.append(meta.pubkey)
        return seen

    def message(self) -> dict:
        return {
            "instructions": [ix.to_dict() for ix in self.instructions],
            "signers": [pubkey_to_str(k) for k in self.required_signers()],
            "nonce": self.nonce,
        }

    def message_bytes(self) -> bytes:
        return canonical_json(self.message())

    @property
    def id(self) -> str:
        return payload_hash(self.message())

    def sign(self, *signers: IdentityKeyPair) -> "Transaction":
        """Add signatures; a key the message does not ask for is rejected."""
        required = self.required_signers()
        payload = self.message_bytes()
        for kp in signers:
            if kp.public_key not in required:
                raise ValueError(f"Key {short_key(kp.public_key)} is not a signer of this transaction")
            self.signatures[kp.public_key] = kp.sign_bytes(payload)
        return self

    def verify_signatures(self) -> None:
        payload = self.message_bytes()
        for key in self.required_signers():
            sig = self.signatures.get(key)
            if sig is None:
                raise MissingRequiredSignature(short_key(key))
            if not IdentityKeyPair(public_key=key).verify_bytes(sig, payload):
                raise SignatureVerificationFailed(short_key(key))

    def account_locks(self) -> Tuple[Set[bytes], Set[bytes]]:
        """(writable, read-only) address sets this transaction touches."""
        writable: Set[bytes] = set()
        readonly: Set[bytes] = set()
        for ix in self.instructions:
            readonly.add(ix.program_id)
            for meta in ix.accounts:
                (writable if meta.is_writable else readonly).add(meta.pubkey)
        return writable, readonly - writable

    def conflicts_with(self, other: "Transaction") -> bool:
        """True when the two cannot run in parallel (a write overlaps any access)."""
        w1, r1 = self.account_locks()
        w2, r2 = other.account_locks()
        return bool(w1 & (w2 | r2)) or bool(w2 & r1)
