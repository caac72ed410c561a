# noteledger/crypto/keys.py
from dataclasses import dataclass, field
from typing import Optional

import nacl.exceptions
import nacl.signing

from noteledger.core.encoding import b64url_decode, b64url_encode, pubkey_from_str


@dataclass(frozen=True)
class IdentityKeyPair:
    """
    Ed25519 identity of a ledger participant.
    The 32-byte public key is the participant's address; a verify-only
    instance (no signing key) is enough for checking signatures.
    """
    public_key: bytes
    _signing_key: Optional[nacl.signing.SigningKey] = field(default=None, compare=False, repr=False)

    @classmethod
    def generate(cls) -> "IdentityKeyPair":
        sk = nacl.signing.SigningKey.generate()
        return cls(public_key=bytes(sk.verify_key), _signing_key=sk)

    @classmethod
    def from_seed(cls, seed: bytes) -> "IdentityKeyPair":
        """Deterministic key pair from a 32-byte seed (fixtures, demos)."""
        sk = nacl.signing.SigningKey(seed)
        return cls(public_key=bytes(sk.verify_key), _signing_key=sk)

    @classmethod
    def from_secret_b64url(cls, secret: str) -> "IdentityKeyPair":
        return cls.from_seed(b64url_decode(secret))

    @classmethod
    def from_public_b64url(cls, public: str) -> "IdentityKeyPair":
        return cls(public_key=pubkey_from_str(public))

    @property
    def can_sign(self) -> bool:
        return self._signing_key is not None

    def public_key_b64url(self) -> str:
        return b64url_encode(self.public_key)

    def secret_b64url(self) -> str:
        if self._signing_key is None:
            raise ValueError("Verify-only key pair has no secret")
        return b64url_encode(bytes(self._signing_key))

    def sign_bytes(self, data: bytes) -> bytes:
        """Detached 64-byte Ed25519 signature."""
        if self._signing_key is None:
            raise ValueError("Cannot sign with a verify-only key pair")
        return self._signing_key.sign(data).signature

    def verify_bytes(self, signature: bytes, data: bytes) -> bool:
        try:
            nacl.signing.VerifyKey(self.public_key).verify(data, signature)
            return True
        except nacl.exceptions.BadSignatureError:
            return False
        except (ValueError, TypeError):
            return False

    def __repr__(self) -> str:
        return f"IdentityKeyPair({self.public_key_b64url()})"
