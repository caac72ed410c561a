# noteledger/cli/main.py
"""
CLI for inspecting, verifying and exporting persisted note ledger state.
"""

import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from noteledger.core.canon import canonical_json_str
from noteledger.core.config import ProgramConfig, resolve_db_path
from noteledger.core.encoding import pubkey_from_str, pubkey_to_str
from noteledger.core.errors import LedgerError
from noteledger.crypto.keys import IdentityKeyPair
from noteledger.program.state import Note, find_note_address
from noteledger.storage import SQLiteStorage
from noteledger.verify.verifier import NoteVerifier

app = typer.Typer(
    name="note-ledger",
    help="Inspect, verify and export the one-note-per-author ledger",
    add_completion=False,
    no_args_is_help=True,
)

console = Console()


def get_db_path(db_flag: Optional[Path] = None) -> Path:
    path = resolve_db_path(db_flag)
    path.parent.mkdir(parents=True, exist_ok=True)
    return path


def _fmt_ts(ts: int) -> str:
    return datetime.fromtimestamp(ts, tz=timezone.utc).isoformat(timespec="seconds")


def _open_storage(ctx: typer.Context, db: Optional[Path]) -> SQLiteStorage:
    # a --db given after the subcommand wins over one given before it
    if db is None and ctx.obj:
        db = ctx.obj.get("db")
    db_path = get_db_path(db)

    if not db_path.exists():
        console.print(f"[red]Database file not found: {db_path}[/]")
        console.print("[yellow]To get started:[/]")
        console.print("  • Run a host with storage=<path> first (creates/populates DB)")
        console.print("  • Set env var: export NOTELEDGER_DB_PATH=/path/to/notes.db")
        console.print("  • Or use --db: note-ledger notes --db /custom/path.db")
        raise typer.Exit(1)

    try:
        return SQLiteStorage(db_path)
    except Exception as e:
        console.print(f"[red]Failed to open database: {str(e)}[/]")
        console.print("[yellow]The file may be corrupted or not a valid SQLite DB.[/]")
        raise typer.Exit(1)


def _load_notes(storage: SQLiteStorage, config: ProgramConfig) -> list:
    try:
        accounts = storage.accounts_owned_by(config.program_id)
    except sqlite3.OperationalError as e:
        console.print(f"[yellow]Database is empty or schema missing: {str(e)}[/]")
        raise typer.Exit(0)

    notes = []
    for address, acct in accounts.items():
        try:
            notes.append((address, acct, Note.decode(acct.data)))
        except LedgerError as e:
            console.print(f"[yellow]Skipping unreadable account {pubkey_to_str(address)}: {escape(str(e))}[/]")
    return notes


def _parse_owner(owner: str) -> bytes:
    try:
        return pubkey_from_str(owner)
    except ValueError as e:
        console.print(f"[red]{escape(str(e))}[/]")
        raise typer.Exit(2)


@app.callback()
def main(
    ctx: typer.Context,
    db: Optional[Path] = typer.Option(
        None,
        "--db",
        help="Path to SQLite database (overrides NOTELEDGER_DB_PATH env var)",
    ),
):
    """Manage the note ledger."""
    ctx.obj = {"db": db}


@app.command()
def notes(
    ctx: typer.Context,
    db: Optional[Path] = typer.Option(None, "--db", hidden=True),
):
    """List every note with its counters and last activity."""
    config = ProgramConfig.from_env()
    storage = _open_storage(ctx, db)
    rows = _load_notes(storage, config)

    if not rows:
        console.print("[yellow]No notes found in database.[/]")
        return

    table = Table(title="Notes")
    table.add_column("Owner")
    table.add_column("Upvotes", justify="right")
    table.add_column("Tips (lamports)", justify="right")
    table.add_column("Updated")
    table.add_column("Content")

    for _, _, note in sorted(rows, key=lambda r: r[2].updated_at, reverse=True):
        preview = note.content[:40] + ("..." if len(note.content) > 40 else "")
        table.add_row(pubkey_to_str(note.owner), str(note.upvotes), str(note.tip_total),
                      _fmt_ts(note.updated_at), escape(preview))

    console.print(table)


@app.command()
def show(
    ctx: typer.Context,
    owner: str = typer.Argument(..., help="Owner public key (base64url)"),
    db: Optional[Path] = typer.Option(None, "--db", hidden=True),
):
    """Show the note belonging to OWNER."""
    config = ProgramConfig.from_env()
    owner_key = _parse_owner(owner)
    address, _ = find_note_address(owner_key, config)

    storage = _open_storage(ctx, db)
    try:
        acct = storage.get_account(address)
    except sqlite3.OperationalError as e:
        console.print(f"[yellow]Database is empty or schema missing: {str(e)}[/]")
        raise typer.Exit(0)

    if acct is None or acct.owner != config.program_id:
        console.print(f"[yellow]No note found for owner '{escape(owner)}'[/]")
        raise typer.Exit(1)

    try:
        note = Note.decode(acct.data)
    except LedgerError as e:
        console.print(f"[red]Note account is unreadable: {escape(str(e))}[/]")
        raise typer.Exit(1)

    console.print(f"[bold cyan]Note {pubkey_to_str(address)}[/]")
    console.print(f"  owner      {pubkey_to_str(note.owner)}")
    console.print(f"  bump       {note.bump}")
    console.print(f"  upvotes    {note.upvotes}")
    console.print(f"  tip_total  {note.tip_total}")
    console.print(f"  created    {_fmt_ts(note.created_at)}")
    console.print(f"  updated    {_fmt_ts(note.updated_at)}")
    console.print(f"  lamports   {acct.lamports} ({len(acct.data)} bytes)")
    console.print("  " + "─" * 60)
    console.print(f"  {escape(note.content)}")


@app.command()
def address(
    owner: str = typer.Argument(..., help="Owner public key (base64url)"),
):
    """Print the derived note address and canonical bump for OWNER."""
    config = ProgramConfig.from_env()
    addr, bump = find_note_address(_parse_owner(owner), config)
    console.print(f"address {pubkey_to_str(addr)}")
    console.print(f"bump    {bump}")


@app.command()
def verify(
    ctx: typer.Context,
    db: Optional[Path] = typer.Option(None, "--db", hidden=True),
):
    """Verify every stored note (layout, address derivation, bounds, rent)."""
    config = ProgramConfig.from_env()
    storage = _open_storage(ctx, db)
    verifier = NoteVerifier(config)

    result = verifier.verify_from_storage(storage)

    if result.is_valid:
        console.print("[green]✓ Ledger state is valid[/]")
        console.print(f"  {result.message}")
    else:
        console.print("[red]✗ Verification failed[/]")
        for failure in result.failures:
            console.print(f"  • {escape(f'[{failure.address}]')} {failure.category}: {escape(failure.message)}")
        raise typer.Exit(1)


@app.command()
def transactions(
    ctx: typer.Context,
    db: Optional[Path] = typer.Option(None, "--db", hidden=True),
    limit: int = typer.Option(20, "--limit", "-n", help="Number of recent transactions to show"),
):
    """Show the most recent transactions and their program logs."""
    storage = _open_storage(ctx, db)
    try:
        txs = storage.query_transactions(limit=limit)
    except sqlite3.OperationalError as e:
        console.print(f"[yellow]Database is empty or schema missing: {str(e)}[/]")
        raise typer.Exit(0)

    if not txs:
        console.print("[yellow]No transactions recorded[/]")
        return

    for tx in txs:
        status = "[green]ok[/]" if tx["success"] else "[red]failed[/]"
        console.print(f"[bold cyan]{tx['seq']:4d} | {_fmt_ts(tx['timestamp'])} | {tx['tx_id'][:16]}[/] {status}")
        for line in tx["logs"]:
            console.print(f"    {escape(line)}")


@app.command()
def export(
    ctx: typer.Context,
    db: Optional[Path] = typer.Option(None, "--db", hidden=True),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Output file (default: notes.jsonl)"),
):
    """Export all notes as JSONL (one canonical JSON record per line)."""
    config = ProgramConfig.from_env()
    storage = _open_storage(ctx, db)
    rows = _load_notes(storage, config)

    if not rows:
        console.print("[yellow]No notes found in database.[/]")
        raise typer.Exit(0)

    out_path = output or Path("notes.jsonl")
    with open(out_path, "w", encoding="utf-8") as f:
        for addr, acct, note in rows:
            record = note.to_dict()
            record["address"] = pubkey_to_str(addr)
            record["lamports"] = acct.lamports
            f.write(canonical_json_str(record))
            f.write("\n")

    console.print(f"[green]Exported {len(rows)} notes to {out_path}[/]")
    console.print("Format: JSONL, one note per line")


@app.command()
def keygen():
    """Generate a fresh identity key pair (printed, not stored)."""
    kp = IdentityKeyPair.generate()
    console.print(f"public {kp.public_key_b64url()}")
    console.print(f"secret {kp.secret_b64url()}")


if __name__ == "__main__":
    app()
