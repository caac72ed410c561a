# noteledger/program/state.py
from dataclasses import dataclass, asdict
from typing import Tuple

from noteledger.core.config import MAX_CONTENT_LENGTH, ProgramConfig
from noteledger.core.encoding import pubkey_to_str
from noteledger.core.errors import (
    AccountDidNotDeserialize,
    AccountDiscriminatorMismatch,
    ConstraintSeeds,
    InvalidSeeds,
)
from noteledger.core.layout import LayoutError, Reader, Writer, split_discriminator
from noteledger.crypto.derivation import create_program_address, find_program_address
from noteledger.crypto.hashing import account_discriminator

NOTE_DISCRIMINATOR = account_discriminator("Note")
DISCRIMINATOR_SIZE = 8
# owner + bump + upvotes + tip_total + created_at + updated_at + content length prefix
BASE_SIZE = 32 + 1 + 8 + 8 + 8 + 8 + 4


def space_for(content_len: int) -> int:
    """Exact account size for a note whose content is `content_len` UTF-8 bytes."""
    return DISCRIMINATOR_SIZE + BASE_SIZE + content_len


def max_space(max_content_length: int = MAX_CONTENT_LENGTH) -> int:
    return space_for(max_content_length)


def content_length(content: str) -> int:
    """Stored length of content, in encoded bytes."""
    return len(content.encode("utf-8"))


@dataclass(frozen=True)
class Note:
    """The single note record an owner may hold."""
    owner: bytes
    bump: int
    upvotes: int
    tip_total: int
    created_at: int
    updated_at: int
    content: str

    @property
    def space(self) -> int:
        return space_for(content_length(self.content))

    def encode(self) -> bytes:
        return (
            Writer()
            .raw(NOTE_DISCRIMINATOR)
            .raw(self.owner)
            .u8(self.bump)
            .u64(self.upvotes)
            .u64(self.tip_total)
            .i64(self.created_at)
            .i64(self.updated_at)
            .string(self.content)
            .getvalue()
        )

    @classmethod
    def decode(cls, data: bytes) -> "Note":
        """
        Parse account data. Bytes beyond the content are tolerated (an account
        may have been sized larger than its record); a wrong tag is not.
        """
        try:
            tag, _ = split_discriminator(data)
        except LayoutError as e:
            raise AccountDidNotDeserialize(str(e)) from e
        if tag != NOTE_DISCRIMINATOR:
            raise AccountDiscriminatorMismatch()

        r = Reader(data, offset=DISCRIMINATOR_SIZE)
        try:
            return cls(
                owner=r.raw(32),
                bump=r.u8(),
                upvotes=r.u64(),
                tip_total=r.u64(),
                created_at=r.i64(),
                updated_at=r.i64(),
                content=r.string(),
            )
        except LayoutError as e:
            raise AccountDidNotDeserialize(str(e)) from e

    def to_dict(self) -> dict:
        d = asdict(self)
        d["owner"] = pubkey_to_str(self.owner)
        return d


# ── Addressing ──────────────────────────────────────────────────────────────

def note_seeds(owner: bytes, config: ProgramConfig) -> list:
    return [config.seed, owner]


def find_note_address(owner: bytes, config: ProgramConfig) -> Tuple[bytes, int]:
    """Canonical (address, bump) of `owner`'s note under `config.program_id`."""
    return find_program_address(note_seeds(owner, config), config.program_id)


def verify_note_address(address: bytes, owner: bytes, bump: int, config: ProgramConfig) -> None:
    """
    Re-derive the note address from (seed, owner, bump, program id) and require
    it to equal `address`. Every handler touching an existing note calls this.
    """
    try:
        expected = create_program_address([*note_seeds(owner, config), bytes([bump])], config.program_id)
    except InvalidSeeds as e:
        raise ConstraintSeeds(f"seeds do not derive an address: {e.detail}") from e
    if expected != address:
        raise ConstraintSeeds(
            f"expected {pubkey_to_str(expected)}, got {pubkey_to_str(address)}"
        )
