# tests/test_core.py
import pytest

from noteledger.core.canon import canonical_json
from noteledger.core.config import MAX_CONTENT_LENGTH, ProgramConfig
from noteledger.core.encoding import b64url_decode, b64url_encode, pubkey_from_str, pubkey_to_str
from noteledger.core.errors import (
    NOTE_ERRORS,
    AccountDiscriminatorMismatch,
    AccountDidNotDeserialize,
    ContentEmpty,
    MathOverflow,
    NoteError,
    note_error_for_code,
)
from noteledger.core.layout import LayoutError, Reader, Writer
from noteledger.program.state import BASE_SIZE, NOTE_DISCRIMINATOR, Note, max_space, space_for


@pytest.fixture
def sample_note():
    return Note(
        owner=bytes(range(32)),
        bump=254,
        upvotes=3,
        tip_total=2_000_000,
        created_at=1_700_000_000,
        updated_at=1_700_000_100,
        content="gm, café notes",
    )


def test_note_immutable(sample_note):
    with pytest.raises(AttributeError):
        sample_note.upvotes = 99


def test_note_layout_offsets(sample_note):
    data = sample_note.encode()
    assert data[:8] == NOTE_DISCRIMINATOR
    assert data[8:40] == sample_note.owner
    assert data[40] == 254
    assert int.from_bytes(data[41:49], "little") == 3
    assert int.from_bytes(data[49:57], "little") == 2_000_000
    content_bytes = "gm, café notes".encode("utf-8")
    assert int.from_bytes(data[73:77], "little") == len(content_bytes)
    assert data[77:] == content_bytes
    assert len(data) == sample_note.space == space_for(len(content_bytes))


def test_note_decode(sample_note):
    assert Note.decode(sample_note.encode()) == sample_note


def test_note_decode_wrong_discriminator(sample_note):
    data = b"\x00" * 8 + sample_note.encode()[8:]
    with pytest.raises(AccountDiscriminatorMismatch):
        Note.decode(data)


def test_note_decode_truncated(sample_note):
    with pytest.raises(AccountDidNotDeserialize):
        Note.decode(sample_note.encode()[:-3])
    with pytest.raises(AccountDidNotDeserialize):
        Note.decode(b"\x01\x02")


def test_space_sizing():
    assert BASE_SIZE == 69
    assert space_for(0) == 77
    assert max_space() == 77 + MAX_CONTENT_LENGTH == 1101


def test_note_to_dict_is_canonicalizable(sample_note):
    d = sample_note.to_dict()
    assert d["owner"] == pubkey_to_str(sample_note.owner)
    canon = canonical_json(d)
    assert canon == canonical_json(Note.decode(sample_note.encode()).to_dict())
    assert b'"bump":254' in canon


def test_base64url_roundtrip():
    original = bytes(range(32))
    encoded = b64url_encode(original)
    assert "=" not in encoded  # no padding
    assert b64url_decode(encoded) == original


def test_pubkey_text_rejects_wrong_length():
    with pytest.raises(ValueError):
        pubkey_from_str(b64url_encode(b"short"))
    with pytest.raises(ValueError):
        pubkey_to_str(b"\x00" * 31)


def test_layout_string_and_ints():
    data = Writer().u8(7).u64(2**64 - 1).i64(-5).string("héllo").getvalue()
    r = Reader(data)
    assert r.u8() == 7
    assert r.u64() == 2**64 - 1
    assert r.i64() == -5
    assert r.string() == "héllo"
    r.expect_end()


def test_layout_rejects_out_of_range():
    with pytest.raises(LayoutError):
        Writer().u64(2**64)
    with pytest.raises(LayoutError):
        Writer().u64(-1)


def test_layout_trailing_bytes():
    r = Reader(Writer().u8(1).u8(2).getvalue())
    r.u8()
    with pytest.raises(LayoutError, match="trailing"):
        r.expect_end()


def test_error_codes_are_stable():
    assert {code: cls.__name__ for code, cls in NOTE_ERRORS.items()} == {
        6000: "ContentEmpty",
        6001: "ContentTooLong",
        6002: "AuthorMismatch",
        6003: "CannotUpvoteOwnNote",
        6004: "CannotTipOwnNote",
        6005: "InvalidTipAmount",
        6006: "MathOverflow",
    }
    assert note_error_for_code(6006) is MathOverflow
    with pytest.raises(ValueError):
        note_error_for_code(42)


def test_error_str_carries_name_and_detail():
    err = ContentEmpty("update")
    assert isinstance(err, NoteError)
    assert err.name == "ContentEmpty"
    assert str(err) == "ContentEmpty (6000): Content must not be empty [update]"


def test_config_from_env(monkeypatch):
    custom = b64url_encode(bytes([9] * 32))
    monkeypatch.setenv("NOTELEDGER_PROGRAM_ID", custom)
    assert ProgramConfig.from_env().program_id == bytes([9] * 32)

    monkeypatch.delenv("NOTELEDGER_PROGRAM_ID")
    assert ProgramConfig.from_env() == ProgramConfig.default()


def test_config_validation():
    with pytest.raises(ValueError):
        ProgramConfig(program_id=b"\x00" * 31)
    with pytest.raises(ValueError):
        ProgramConfig(program_id=b"\x00" * 32, seed=b"")
