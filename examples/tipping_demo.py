# examples/tipping_demo.py
# Run with: python examples/tipping_demo.py [path/to/notes.db]
#
# Without a path the host runs purely in memory. With one, the state is
# written through to SQLite and can be inspected with `note-ledger notes --db <path>`.

import sys
from dataclasses import replace

from noteledger import IdentityKeyPair, Note, ProgramConfig, Runtime
from noteledger.chain.runtime import LAMPORTS_PER_UNIT
from noteledger.core.encoding import short_key
from noteledger.core.errors import LedgerError
from noteledger.program.instructions import (
    create_note_ix,
    delete_note_ix,
    tip_note_ix,
    update_note_ix,
    upvote_note_ix,
)
from noteledger.program.state import find_note_address
from noteledger.verify.verifier import NoteVerifier


def show(host: Runtime, owner: IdentityKeyPair, label: str):
    address, _ = find_note_address(owner.public_key, host.config)
    acct = host.get_account(address)
    if not acct.data:
        print(f"   [{label:6}] (no note)")
        return
    note = Note.decode(acct.data)
    print(f"   [{label:6}] {short_key(address)} upvotes={note.upvotes} tips={note.tip_total} "
          f"rent={acct.lamports} content={note.content!r}")


if __name__ == "__main__":
    storage = sys.argv[1] if len(sys.argv) > 1 else None
    config = ProgramConfig.from_env()
    host = Runtime(config=config, storage=storage)

    print("=" * 70)
    print("NOTE LEDGER DEMO")
    print("=" * 70)
    print()

    # Step 1: identities
    alice = IdentityKeyPair.generate()
    bob = IdentityKeyPair.generate()
    for kp in (alice, bob):
        host.airdrop(kp.public_key, 2 * LAMPORTS_PER_UNIT)
    print(f"1. Funded alice={short_key(alice.public_key)} bob={short_key(bob.public_key)}")
    print()

    # Step 2: create
    receipt = host.send(create_note_ix(alice.public_key, "gm from alice", config), alice)
    print("2. Alice created her note:")
    for line in receipt.logs:
        print(f"   {line}")
    show(host, alice, "alice")
    print()

    # Step 3: interactions
    host.send(upvote_note_ix(bob.public_key, alice.public_key, config), bob)
    host.send(tip_note_ix(bob.public_key, alice.public_key, 25_000_000, config), bob)
    print("3. Bob upvoted and tipped 0.025 units:")
    show(host, alice, "alice")
    print()

    # Step 4: update grows the account, payer covers the extra rent
    host.send(update_note_ix(alice.public_key, "gm from alice, now with a longer note", config), alice)
    print("4. Alice rewrote her note (account resized to fit):")
    show(host, alice, "alice")
    print()

    # Step 5: rejected operations leave state untouched
    print("5. Rejected operations:")
    attempts = [
        ("self upvote", upvote_note_ix(alice.public_key, alice.public_key, config), alice),
        ("zero tip", tip_note_ix(bob.public_key, alice.public_key, 0, config), bob),
        ("empty update", update_note_ix(alice.public_key, "", config), alice),
    ]
    for label, instruction, signer in attempts:
        try:
            host.send(instruction, signer)
        except LedgerError as e:
            print(f"   {label:12} -> {e}")
    show(host, alice, "alice")
    print()

    # Step 6: verify, then tamper
    print("6. Verifying host state...")
    verifier = NoteVerifier(config)
    print(f"   {verifier.verify(dict(host.accounts()))}")

    address, _ = find_note_address(alice.public_key, config)
    accounts = dict(host.accounts())
    accounts[address] = replace(accounts[address], lamports=1)
    print("   after draining the note's rent:")
    print(f"   {verifier.verify(accounts)}")
    print()

    # Step 7: delete refunds the rent
    before = host.balance(alice.public_key)
    host.send(delete_note_ix(alice.public_key, config), alice)
    print(f"7. Alice deleted her note, refund={host.balance(alice.public_key) - before} lamports")
    show(host, alice, "alice")

    host.close()
