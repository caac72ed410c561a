# noteledger/crypto/derivation.py
"""
Program-derived addresses.

An address derived from (seeds, program_id) is the sha256 of the seeds, the
program id and a fixed marker. Only digests that are NOT valid ed25519 points
are accepted, so no private key can ever sign for a derived address. The
canonical bump is the highest one-byte suffix (255 → 0) that lands off curve.
"""

from typing import Sequence, Tuple

import nacl.bindings

from noteledger.core.errors import InvalidSeeds
from noteledger.crypto.hashing import sha256

PDA_MARKER = b"ProgramDerivedAddress"
MAX_SEEDS = 16
MAX_SEED_LENGTH = 32


def is_on_curve(candidate: bytes) -> bool:
    """True when the 32 bytes decode to a valid ed25519 point."""
    return bool(nacl.bindings.crypto_core_ed25519_is_valid_point(candidate))


def create_program_address(seeds: Sequence[bytes], program_id: bytes) -> bytes:
    if len(seeds) > MAX_SEEDS:
        raise InvalidSeeds(f"{len(seeds)} seeds given, at most {MAX_SEEDS} allowed")
    for seed in seeds:
        if len(seed) > MAX_SEED_LENGTH:
            raise InvalidSeeds(f"seed of {len(seed)} bytes exceeds {MAX_SEED_LENGTH}")

    candidate = sha256(*seeds, program_id, PDA_MARKER)
    if is_on_curve(candidate):
        raise InvalidSeeds("derived address lies on the ed25519 curve")
    return candidate


def find_program_address(seeds: Sequence[bytes], program_id: bytes) -> Tuple[bytes, int]:
    """Return (address, bump) for the canonical (highest) off-curve bump."""
    if len(seeds) >= MAX_SEEDS:
        raise InvalidSeeds(f"{len(seeds)} seeds leave no room for a bump seed")
    if any(len(seed) > MAX_SEED_LENGTH for seed in seeds):
        raise InvalidSeeds(f"every seed must be at most {MAX_SEED_LENGTH} bytes")
    for bump in range(255, -1, -1):
        try:
            address = create_program_address([*seeds, bytes([bump])], program_id)
        except InvalidSeeds:
            continue
        return address, bump
    raise InvalidSeeds("no viable bump seed found")
