# noteledger/program/notes.py
"""
Handlers of the notes program.

Every handler runs an ordered precondition check first (each check named by
the error it raises), then stages the new record and applies its effects.
Nothing here catches errors: the host rolls the whole transaction back.
"""

from dataclasses import replace

from noteledger.core.encoding import short_key
from noteledger.core.errors import (
    AccountNotInitialized,
    AccountNotSigner,
    AccountNotSystemOwned,
    AccountOwnedByWrongProgram,
    AccountAlreadyInUse,
    AuthorMismatch,
    CannotTipOwnNote,
    CannotUpvoteOwnNote,
    ConstraintHasOne,
    ConstraintMut,
    ConstraintSeeds,
    ContentEmpty,
    ContentTooLong,
    InvalidProgramId,
    InvalidTipAmount,
    MathOverflow,
)
from noteledger.core.types import SYSTEM_PROGRAM_ID, U64_MAX, AccountMeta
from noteledger.program import instructions as ix
from noteledger.program.state import Note, content_length, find_note_address, verify_note_address


def process_instruction(ctx) -> None:
    """Program entrypoint: decode the instruction and dispatch to its handler."""
    name, args = ix.decode_instruction(ctx.instruction.data)
    HANDLERS[name](ctx, *args)


# ── shared checks ───────────────────────────────────────────────────────────

def require_signer(ctx, meta: AccountMeta) -> None:
    if not ctx.is_signer(meta.pubkey):
        raise AccountNotSigner(short_key(meta.pubkey))


def require_mut(*metas: AccountMeta) -> None:
    for meta in metas:
        if not meta.is_writable:
            raise ConstraintMut(short_key(meta.pubkey))


def require_system_program(meta: AccountMeta) -> None:
    if meta.pubkey != SYSTEM_PROGRAM_ID:
        raise InvalidProgramId(short_key(meta.pubkey))


def require_content(ctx, content: str) -> None:
    length = content_length(content)
    if length == 0:
        raise ContentEmpty()
    if length > ctx.config.max_content_length:
        raise ContentTooLong(f"{length} > {ctx.config.max_content_length} bytes")


def load_note(ctx, meta: AccountMeta) -> Note:
    """Deserialize an existing note owned by this program."""
    acct = ctx.get(meta.pubkey)
    if acct.is_empty:
        raise AccountNotInitialized(short_key(meta.pubkey))
    if acct.owner != ctx.program_id:
        raise AccountOwnedByWrongProgram(short_key(meta.pubkey))
    return Note.decode(acct.data)


def checked_add(a: int, b: int) -> int:
    total = a + b
    if total > U64_MAX:
        raise MathOverflow(f"{a} + {b}")
    return total


# ── create_note ─────────────────────────────────────────────────────────────

def _check_create(ctx, authority: AccountMeta, note: AccountMeta, system: AccountMeta,
                  content: str) -> int:
    require_signer(ctx, authority)
    require_mut(authority, note)
    require_system_program(system)
    expected, bump = find_note_address(authority.pubkey, ctx.config)
    if expected != note.pubkey:
        raise ConstraintSeeds(f"note must live at {short_key(expected)}")
    if not ctx.get(note.pubkey).is_empty:
        raise AccountAlreadyInUse(short_key(note.pubkey))
    length = content_length(content)
    if length > ctx.config.max_content_length:
        raise ContentTooLong(f"{length} > {ctx.config.max_content_length} bytes")
    if length == 0:
        raise ContentEmpty()
    return bump


def create_note(ctx, content: str) -> None:
    authority, note, system = ctx.metas(3)
    bump = _check_create(ctx, authority, note, system, content)

    now = ctx.now()
    record = Note(
        owner=authority.pubkey,
        bump=bump,
        upvotes=0,
        tip_total=0,
        created_at=now,
        updated_at=now,
        content=content,
    )
    ctx.create_account(payer=authority.pubkey, address=note.pubkey, space=record.space)
    ctx.write_data(note.pubkey, record.encode())
    ctx.log(f"note created for {short_key(authority.pubkey)} ({content_length(content)} bytes)")


# ── update_note ─────────────────────────────────────────────────────────────

def _check_owner_access(ctx, authority: AccountMeta, note: AccountMeta) -> Note:
    require_signer(ctx, authority)
    require_mut(authority, note)
    record = load_note(ctx, note)
    verify_note_address(note.pubkey, record.owner, record.bump, ctx.config)
    if record.owner != authority.pubkey:
        raise ConstraintHasOne(f"note belongs to {short_key(record.owner)}")
    return record


def update_note(ctx, content: str) -> None:
    authority, note, system = ctx.metas(3)
    require_system_program(system)
    record = _check_owner_access(ctx, authority, note)
    require_content(ctx, content)

    updated = replace(record, content=content, updated_at=ctx.now())
    ctx.resize(note.pubkey, updated.space, payer=authority.pubkey)
    ctx.write_data(note.pubkey, updated.encode())
    ctx.log(f"note updated ({record.space} -> {updated.space} bytes)")


# ── delete_note ─────────────────────────────────────────────────────────────

def delete_note(ctx) -> None:
    authority, note = ctx.metas(2)
    _check_owner_access(ctx, authority, note)
    ctx.close(note.pubkey, destination=authority.pubkey)
    ctx.log(f"note of {short_key(authority.pubkey)} closed")


# ── upvote_note ─────────────────────────────────────────────────────────────

def _check_upvote(ctx, voter: AccountMeta, author: AccountMeta, note: AccountMeta) -> Note:
    require_signer(ctx, voter)
    require_mut(voter, note)
    record = load_note(ctx, note)
    # derived from the claimed author, not the stored owner
    verify_note_address(note.pubkey, author.pubkey, record.bump, ctx.config)
    if record.owner != author.pubkey:
        raise AuthorMismatch()
    if record.owner == voter.pubkey:
        raise CannotUpvoteOwnNote()
    return record


def upvote_note(ctx) -> None:
    voter, author, note = ctx.metas(3)
    record = _check_upvote(ctx, voter, author, note)

    updated = replace(record, upvotes=checked_add(record.upvotes, 1), updated_at=ctx.now())
    ctx.write_data(note.pubkey, updated.encode())
    ctx.log(f"upvotes={updated.upvotes}")


# ── tip_note ────────────────────────────────────────────────────────────────

def _check_tip(ctx, tipper: AccountMeta, author: AccountMeta, note: AccountMeta,
               system: AccountMeta, amount: int) -> Note:
    require_signer(ctx, tipper)
    require_mut(tipper, author, note)
    if not ctx.get(author.pubkey).is_system_owned:
        raise AccountNotSystemOwned(short_key(author.pubkey))
    record = load_note(ctx, note)
    verify_note_address(note.pubkey, author.pubkey, record.bump, ctx.config)
    require_system_program(system)
    if amount <= 0:
        raise InvalidTipAmount()
    if record.owner != author.pubkey:
        raise AuthorMismatch()
    if record.owner == tipper.pubkey:
        raise CannotTipOwnNote()
    return record


def tip_note(ctx, amount: int) -> None:
    tipper, author, note, system = ctx.metas(4)
    record = _check_tip(ctx, tipper, author, note, system, amount)

    ctx.transfer(tipper.pubkey, author.pubkey, amount)
    updated = replace(record, tip_total=checked_add(record.tip_total, amount), updated_at=ctx.now())
    ctx.write_data(note.pubkey, updated.encode())
    ctx.log(f"tip of {amount} lamports, tip_total={updated.tip_total}")


HANDLERS = {
    ix.CREATE_NOTE: create_note,
    ix.UPDATE_NOTE: update_note,
    ix.DELETE_NOTE: delete_note,
    ix.UPVOTE_NOTE: upvote_note,
    ix.TIP_NOTE: tip_note,
}
