# tests/test_cli.py
import json
import sqlite3
from pathlib import Path
from typing import Generator

import pytest
from typer.testing import CliRunner

from noteledger.chain.runtime import LAMPORTS_PER_UNIT, Runtime
from noteledger.cli.main import app
from noteledger.core.config import ProgramConfig
from noteledger.core.encoding import pubkey_to_str
from noteledger.crypto.keys import IdentityKeyPair
from noteledger.program.instructions import create_note_ix, tip_note_ix, upvote_note_ix
from noteledger.program.state import find_note_address

runner = CliRunner()
WIDE = {"COLUMNS": "200", "NOTELEDGER_PROGRAM_ID": None}


@pytest.fixture
def temp_db(tmp_path: Path) -> Generator[Path, None, None]:
    """Temporary DB file + auto-cleanup."""
    db_path = tmp_path / "test-cli.db"
    yield db_path
    if db_path.exists():
        db_path.unlink()


@pytest.fixture
def author() -> IdentityKeyPair:
    return IdentityKeyPair.generate()


@pytest.fixture
def populated_db(temp_db: Path, author: IdentityKeyPair) -> Path:
    """DB with two notes: the author's (upvoted and tipped) and a fan's."""
    config = ProgramConfig.default()
    fan = IdentityKeyPair.generate()

    host = Runtime(config=config, storage=str(temp_db))
    host.airdrop(author.public_key, LAMPORTS_PER_UNIT)
    host.airdrop(fan.public_key, LAMPORTS_PER_UNIT)

    host.send(create_note_ix(author.public_key, "Hello from the author", config), author)
    host.send(create_note_ix(fan.public_key, "Big fan here", config), fan)
    host.send(upvote_note_ix(fan.public_key, author.public_key, config), fan)
    host.send(tip_note_ix(fan.public_key, author.public_key, 5_000, config), fan)

    host.close()
    return temp_db


def test_notes_no_db(temp_db: Path):
    result = runner.invoke(app, ["notes", "--db", str(temp_db)], env=WIDE)
    assert result.exit_code == 1
    assert "not found" in result.stdout.lower()
    assert "to get started" in result.stdout.lower()


def test_notes_empty_db(temp_db: Path):
    """CLI handles a DB with no notes gracefully."""
    Runtime(config=ProgramConfig.default(), storage=str(temp_db)).close()
    result = runner.invoke(app, ["notes", "--db", str(temp_db)], env=WIDE)
    assert result.exit_code == 0
    assert "no notes found" in result.stdout.lower()


def test_notes_with_data(populated_db: Path):
    result = runner.invoke(app, ["notes", "--db", str(populated_db)], env=WIDE)
    assert result.exit_code == 0
    assert "Hello from the author" in result.stdout
    assert "Big fan here" in result.stdout
    assert "5000" in result.stdout


def test_db_option_before_command(populated_db: Path):
    result = runner.invoke(app, ["--db", str(populated_db), "notes"], env=WIDE)
    assert result.exit_code == 0
    assert "Big fan here" in result.stdout


def test_show_note(populated_db: Path, author: IdentityKeyPair):
    result = runner.invoke(app, ["show", author.public_key_b64url(), "--db", str(populated_db)], env=WIDE)
    assert result.exit_code == 0
    assert "Hello from the author" in result.stdout
    assert "upvotes    1" in result.stdout
    assert "tip_total  5000" in result.stdout


def test_show_missing_owner(populated_db: Path):
    stranger = IdentityKeyPair.generate()
    result = runner.invoke(app, ["show", stranger.public_key_b64url(), "--db", str(populated_db)], env=WIDE)
    assert result.exit_code == 1
    assert "no note found" in result.stdout.lower()


def test_show_rejects_bad_key(populated_db: Path):
    result = runner.invoke(app, ["show", "not-a-key", "--db", str(populated_db)], env=WIDE)
    assert result.exit_code == 2


def test_address_matches_derivation(author: IdentityKeyPair):
    result = runner.invoke(app, ["address", author.public_key_b64url()], env=WIDE)
    assert result.exit_code == 0
    address, bump = find_note_address(author.public_key, ProgramConfig.default())
    assert pubkey_to_str(address) in result.stdout
    assert f"bump    {bump}" in result.stdout


def test_verify_populated_db(populated_db: Path):
    result = runner.invoke(app, ["verify", "--db", str(populated_db)], env=WIDE)
    assert result.exit_code == 0
    assert "valid" in result.stdout.lower()
    assert "2 notes valid" in result.stdout


def test_verify_detects_tampering(populated_db: Path):
    config = ProgramConfig.default()
    conn = sqlite3.connect(populated_db)
    conn.execute("UPDATE accounts SET lamports = '1' WHERE owner = ?", (pubkey_to_str(config.program_id),))
    conn.commit()
    conn.close()

    result = runner.invoke(app, ["verify", "--db", str(populated_db)], env=WIDE)
    assert result.exit_code == 1
    assert "verification failed" in result.stdout.lower()
    assert "rent" in result.stdout


def test_transactions_lists_logs(populated_db: Path):
    result = runner.invoke(app, ["transactions", "--db", str(populated_db), "--limit", "2"], env=WIDE)
    assert result.exit_code == 0
    assert "ok" in result.stdout
    assert "tip of 5000 lamports" in result.stdout
    assert "note created" not in result.stdout


def test_export_creates_jsonl(populated_db: Path, tmp_path: Path, author: IdentityKeyPair):
    """Export command writes one canonical JSON record per note."""
    output_file = tmp_path / "export-test.jsonl"

    result = runner.invoke(
        app,
        ["export", "--db", str(populated_db), "--output", str(output_file)],
        env=WIDE,
    )

    assert result.exit_code == 0
    assert "Exported 2 notes" in result.stdout
    assert output_file.exists()

    with open(output_file, "r", encoding="utf-8") as f:
        records = [json.loads(line) for line in f if line.strip()]
    assert len(records) == 2
    by_owner = {r["owner"]: r for r in records}
    mine = by_owner[author.public_key_b64url()]
    assert mine["upvotes"] == 1
    assert mine["tip_total"] == 5_000
    assert mine["content"] == "Hello from the author"
    assert {"address", "lamports", "bump", "created_at", "updated_at"} <= set(mine)


def test_keygen_prints_usable_pair():
    result = runner.invoke(app, ["keygen"], env=WIDE)
    assert result.exit_code == 0
    lines = dict(line.split(" ", 1) for line in result.stdout.strip().splitlines())
    kp = IdentityKeyPair.from_secret_b64url(lines["secret"].strip())
    assert kp.public_key_b64url() == lines["public"].strip()
