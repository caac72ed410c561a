# tests/test_verify.py
from dataclasses import replace

from noteledger.chain.runtime import LAMPORTS_PER_UNIT, Runtime
from noteledger.core.config import ProgramConfig
from noteledger.crypto.keys import IdentityKeyPair
from noteledger.program.instructions import create_note_ix, tip_note_ix, upvote_note_ix
from noteledger.program.state import Note, find_note_address
from noteledger.storage import SQLiteStorage
from noteledger.verify.verifier import NoteVerifier, VerificationResult


def create_test_state(n_authors=3):
    config = ProgramConfig.default()
    host = Runtime(config=config, clock=lambda: 1_700_000_000)
    authors = [IdentityKeyPair.generate() for _ in range(n_authors)]
    for kp in authors:
        host.airdrop(kp.public_key, LAMPORTS_PER_UNIT)
        host.send(create_note_ix(kp.public_key, f"note by {kp.public_key_b64url()[:6]}", config), kp)

    fan = IdentityKeyPair.generate()
    host.airdrop(fan.public_key, LAMPORTS_PER_UNIT)
    host.send(upvote_note_ix(fan.public_key, authors[0].public_key, config), fan)
    host.send(tip_note_ix(fan.public_key, authors[0].public_key, 1_000, config), fan)
    return host, authors


def note_entry(host, kp):
    address, _ = find_note_address(kp.public_key, host.config)
    return address, host.get_account(address)


def tamper(accounts, address, note=None, **fields):
    acct = accounts[address]
    if note is not None:
        fields.setdefault("data", note.encode())
    accounts[address] = replace(acct, **fields)
    return accounts


def test_valid_state():
    host, _ = create_test_state(3)
    verifier = NoteVerifier(host.config)
    result = verifier.verify(dict(host.accounts()))
    assert result.is_valid is True
    assert bool(result)
    assert len(result.failures) == 0
    assert result.notes_checked == 3


def test_wallets_are_ignored():
    host, _ = create_test_state(1)
    result = NoteVerifier(host.config).verify(dict(host.accounts()))
    assert result.notes_checked == 1


def test_truncated_record():
    host, authors = create_test_state(2)
    accounts = dict(host.accounts())
    address, acct = note_entry(host, authors[0])
    tamper(accounts, address, data=acct.data[:30])

    result = NoteVerifier(host.config).verify(accounts)
    assert result.is_valid is False
    assert result.first_failure.category == "layout"


def test_owner_swapped_breaks_address():
    host, authors = create_test_state(2)
    accounts = dict(host.accounts())
    address, acct = note_entry(host, authors[0])
    forged = replace(Note.decode(acct.data), owner=authors[1].public_key)
    tamper(accounts, address, note=forged)

    result = NoteVerifier(host.config).verify(accounts)
    assert result.is_valid is False
    assert any("address" in f.category for f in result.failures)


def test_empty_content_flagged():
    host, authors = create_test_state(1)
    accounts = dict(host.accounts())
    address, acct = note_entry(host, authors[0])
    emptied = replace(Note.decode(acct.data), content="")
    tamper(accounts, address, note=emptied)

    result = NoteVerifier(host.config).verify(accounts)
    assert result.is_valid is False
    assert any("content" in f.category for f in result.failures)


def test_oversized_account_flagged():
    host, authors = create_test_state(1)
    accounts = dict(host.accounts())
    address, acct = note_entry(host, authors[0])
    tamper(accounts, address, data=acct.data + b"\x00" * 4)

    result = NoteVerifier(host.config).verify(accounts)
    assert result.is_valid is False
    assert any("bytes" in f.message for f in result.failures if f.category == "layout")


def test_timestamps_out_of_order():
    host, authors = create_test_state(1)
    accounts = dict(host.accounts())
    address, acct = note_entry(host, authors[0])
    note = Note.decode(acct.data)
    tamper(accounts, address, note=replace(note, updated_at=note.created_at - 1))

    result = NoteVerifier(host.config).verify(accounts)
    assert result.is_valid is False
    assert any("timestamps" in f.category for f in result.failures)


def test_below_rent_minimum():
    host, authors = create_test_state(1)
    accounts = dict(host.accounts())
    address, acct = note_entry(host, authors[0])
    tamper(accounts, address, lamports=acct.lamports - 1)

    result = NoteVerifier(host.config).verify(accounts)
    assert result.is_valid is False
    assert any("rent" in f.category for f in result.failures)
    assert "FAILED" in str(result)


def test_verify_from_storage(tmp_path):
    config = ProgramConfig.default()
    host = Runtime(config=config, storage=str(tmp_path / "verify.db"))
    kp = IdentityKeyPair.generate()
    host.airdrop(kp.public_key, LAMPORTS_PER_UNIT)
    host.send(create_note_ix(kp.public_key, "stored", config), kp)
    host.close()

    with SQLiteStorage(tmp_path / "verify.db") as storage:
        result = NoteVerifier(config).verify_from_storage(storage)
    assert result.is_valid is True
    assert result.notes_checked == 1


def test_verify_from_closed_storage(tmp_path):
    storage = SQLiteStorage(tmp_path / "closed.db")
    storage.close()
    result = NoteVerifier(ProgramConfig.default()).verify_from_storage(storage)
    assert isinstance(result, VerificationResult)
    assert result.is_valid is False
    assert result.first_failure.category == "storage"
