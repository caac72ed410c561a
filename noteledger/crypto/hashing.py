# noteledger/crypto/hashing.py
import hashlib

from noteledger.core.canon import canonical_json


def sha256(*parts: bytes) -> bytes:
    h = hashlib.sha256()
    for part in parts:
        h.update(part)
    return h.digest()


def account_discriminator(type_name: str) -> bytes:
    """8-byte tag that prefixes every stored record of the given type."""
    return sha256(f"account:{type_name}".encode("utf-8"))[:8]


def instruction_discriminator(name: str) -> bytes:
    """8-byte tag that selects a handler in instruction data."""
    return sha256(f"global:{name}".encode("utf-8"))[:8]


def payload_hash(payload: dict) -> str:
    """hex(sha256(canonical_json(payload))), used to identify transaction messages."""
    return hashlib.sha256(canonical_json(payload)).hexdigest()
