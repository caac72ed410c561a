# noteledger/program/instructions.py
"""
Instruction surface of the notes program: wire encoding and account lists.

Each instruction is an 8-byte discriminator followed by its arguments.
Builders declare every account with the exact signer / writable access its
handler needs, which is what lets a host schedule non-conflicting
transactions in parallel.
"""

from typing import Dict, Optional, Tuple

from noteledger.core.config import ProgramConfig
from noteledger.core.errors import InstructionDidNotDeserialize, InstructionFallbackNotFound
from noteledger.core.layout import LayoutError, Reader, Writer, split_discriminator
from noteledger.core.types import SYSTEM_PROGRAM_ID, AccountMeta, Instruction
from noteledger.crypto.hashing import instruction_discriminator
from noteledger.program.state import find_note_address

CREATE_NOTE = "create_note"
UPDATE_NOTE = "update_note"
DELETE_NOTE = "delete_note"
UPVOTE_NOTE = "upvote_note"
TIP_NOTE = "tip_note"

DISCRIMINATORS: Dict[bytes, str] = {
    instruction_discriminator(name): name
    for name in (CREATE_NOTE, UPDATE_NOTE, DELETE_NOTE, UPVOTE_NOTE, TIP_NOTE)
}


def encode_args(name: str, *args) -> bytes:
    w = Writer().raw(instruction_discriminator(name))
    if name in (CREATE_NOTE, UPDATE_NOTE):
        (content,) = args
        w.string(content)
    elif name == TIP_NOTE:
        (amount,) = args
        w.u64(amount)
    elif args:
        raise ValueError(f"{name} takes no arguments")
    return w.getvalue()


def decode_instruction(data: bytes) -> Tuple[str, tuple]:
    """Split instruction data into (handler name, arguments)."""
    try:
        tag, _ = split_discriminator(data)
    except LayoutError as e:
        raise InstructionFallbackNotFound(str(e)) from e
    name = DISCRIMINATORS.get(tag)
    if name is None:
        raise InstructionFallbackNotFound(f"unknown discriminator {tag.hex()}")

    r = Reader(data, offset=8)
    try:
        if name in (CREATE_NOTE, UPDATE_NOTE):
            args = (r.string(),)
        elif name == TIP_NOTE:
            args = (r.u64(),)
        else:
            args = ()
        r.expect_end()
    except LayoutError as e:
        raise InstructionDidNotDeserialize(f"{name}: {e}") from e
    return name, args


def _note_for(owner: bytes, config: ProgramConfig, note: Optional[bytes]) -> bytes:
    if note is not None:
        return note
    address, _ = find_note_address(owner, config)
    return address


def create_note_ix(authority: bytes, content: str, config: ProgramConfig,
                   note: Optional[bytes] = None) -> Instruction:
    return Instruction(
        program_id=config.program_id,
        accounts=[
            AccountMeta(authority, is_signer=True, is_writable=True),
            AccountMeta(_note_for(authority, config, note), is_writable=True),
            AccountMeta(SYSTEM_PROGRAM_ID),
        ],
        data=encode_args(CREATE_NOTE, content),
    )


def update_note_ix(authority: bytes, content: str, config: ProgramConfig,
                   note: Optional[bytes] = None) -> Instruction:
    """`note` defaults to the authority's own note address."""
    return Instruction(
        program_id=config.program_id,
        accounts=[
            AccountMeta(authority, is_signer=True, is_writable=True),
            AccountMeta(_note_for(authority, config, note), is_writable=True),
            AccountMeta(SYSTEM_PROGRAM_ID),
        ],
        data=encode_args(UPDATE_NOTE, content),
    )


def delete_note_ix(authority: bytes, config: ProgramConfig,
                   note: Optional[bytes] = None) -> Instruction:
    return Instruction(
        program_id=config.program_id,
        accounts=[
            AccountMeta(authority, is_signer=True, is_writable=True),
            AccountMeta(_note_for(authority, config, note), is_writable=True),
        ],
        data=encode_args(DELETE_NOTE),
    )


def upvote_note_ix(voter: bytes, note_author: bytes, config: ProgramConfig,
                   note: Optional[bytes] = None) -> Instruction:
    return Instruction(
        program_id=config.program_id,
        accounts=[
            AccountMeta(voter, is_signer=True, is_writable=True),
            AccountMeta(note_author),
            AccountMeta(_note_for(note_author, config, note), is_writable=True),
        ],
        data=encode_args(UPVOTE_NOTE),
    )


def tip_note_ix(tipper: bytes, note_author: bytes, amount: int, config: ProgramConfig,
                note: Optional[bytes] = None) -> Instruction:
    return Instruction(
        program_id=config.program_id,
        accounts=[
            AccountMeta(tipper, is_signer=True, is_writable=True),
            AccountMeta(note_author, is_writable=True),
            AccountMeta(_note_for(note_author, config, note), is_writable=True),
            AccountMeta(SYSTEM_PROGRAM_ID),
        ],
        data=encode_args(TIP_NOTE, amount),
    )
