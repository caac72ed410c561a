# noteledger/chain/runtime.py
"""
Local host runtime for the notes program.

Provides the collaborator contract the program relies on: keyed accounts,
allocation / resizing / closing charged to a payer, a monotonic clock, a native
lamport transfer, signer enforcement, and all-or-nothing transactions. Every
account a transaction names is journaled before execution; any exception
restores the journal, so failed transactions leave no trace in state.
"""

import time
from dataclasses import dataclass, field, replace
from typing import Callable, Dict, Iterator, List, Optional, Set, Tuple

from noteledger.chain.transaction import Transaction
from noteledger.core.config import ProgramConfig
from noteledger.core.encoding import short_key
from noteledger.core.errors import (
    AccountAlreadyInUse,
    AccountDidNotSerialize,
    AccountNotEnoughKeys,
    AccountNotMutable,
    AccountNotSigner,
    AccountOwnedByWrongProgram,
    AlreadyProcessed,
    ArithmeticOverflow,
    InsufficientFunds,
    LedgerError,
    UnknownProgram,
)
from noteledger.core.types import U64_MAX, Account, AccountMeta, Instruction
from noteledger.program import notes
from noteledger.program.state import Note
from noteledger.storage import StorageBackend, create_storage

LAMPORTS_PER_UNIT = 1_000_000_000
LAMPORTS_PER_BYTE_YEAR = 3480
EXEMPTION_THRESHOLD_YEARS = 2
ACCOUNT_STORAGE_OVERHEAD = 128


def minimum_balance(space: int) -> int:
    """Lamports that make an account of `space` data bytes rent exempt."""
    return (space + ACCOUNT_STORAGE_OVERHEAD) * LAMPORTS_PER_BYTE_YEAR * EXEMPTION_THRESHOLD_YEARS


@dataclass
class TransactionReceipt:
    tx_id: str
    timestamp: int
    logs: List[str] = field(default_factory=list)


class InvokeContext:
    """
    What a program sees while one instruction runs.
    Access is limited to the accounts the instruction declared, and writes
    require the account to be declared writable.
    """

    def __init__(self, runtime: "Runtime", instruction: Instruction, signers: Set[bytes], logs: List[str]):
        self._runtime = runtime
        self.instruction = instruction
        self.program_id = instruction.program_id
        self.config = runtime.config
        self._signers = signers
        self._logs = logs

    # ── accounts ────────────────────────────────────────────────────────────
    def metas(self, count: int) -> List[AccountMeta]:
        if len(self.instruction.accounts) < count:
            raise AccountNotEnoughKeys(f"expected {count}, got {len(self.instruction.accounts)}")
        return list(self.instruction.accounts[:count])

    def _meta(self, key: bytes) -> AccountMeta:
        for meta in self.instruction.accounts:
            if meta.pubkey == key:
                return meta
        raise AccountNotEnoughKeys(f"{short_key(key)} was not passed to the instruction")

    def is_signer(self, key: bytes) -> bool:
        return self._meta(key).is_signer and key in self._signers

    def get(self, key: bytes) -> Account:
        self._meta(key)
        return self._runtime.get_account(key)

    def _writable(self, key: bytes) -> Account:
        if not self._meta(key).is_writable:
            raise AccountNotMutable(short_key(key))
        return self._runtime.get_account(key)

    def _put(self, key: bytes, account: Account) -> None:
        self._runtime._accounts[key] = account

    def write_data(self, key: bytes, data: bytes) -> None:
        """Overwrite a program-owned account's data; its size cannot change here."""
        acct = self._writable(key)
        if acct.owner != self.program_id:
            raise AccountOwnedByWrongProgram(short_key(key))
        if len(data) != len(acct.data):
            raise AccountDidNotSerialize(f"{len(data)} bytes into an account of {len(acct.data)}")
        self._put(key, replace(acct, data=bytes(data)))

    # ── system operations ───────────────────────────────────────────────────
    def transfer(self, source: bytes, destination: bytes, amount: int) -> None:
        """Native transfer; the source must be a signing, system-owned wallet."""
        if not self.is_signer(source):
            raise AccountNotSigner(short_key(source))
        src = self._writable(source)
        self._writable(destination)
        if not src.is_empty:
            raise AccountOwnedByWrongProgram(f"transfer source {short_key(source)} carries data")
        self._move_lamports(source, destination, amount)

    def _move_lamports(self, source: bytes, destination: bytes, amount: int) -> None:
        src = self._runtime.get_account(source)
        if src.lamports < amount:
            raise InsufficientFunds(f"{short_key(source)} has {src.lamports}, needs {amount}")
        self._put(source, replace(src, lamports=src.lamports - amount))
        dst = self._runtime.get_account(destination)
        if dst.lamports + amount > U64_MAX:
            raise ArithmeticOverflow(short_key(destination))
        self._put(destination, replace(dst, lamports=dst.lamports + amount))

    def create_account(self, payer: bytes, address: bytes, space: int) -> None:
        """
        Allocate `space` zeroed bytes at `address`, assign it to the calling
        program, and fund it to the rent-exempt minimum from `payer`.
        Lamports already sitting at the address count towards the minimum.
        """
        target = self._writable(address)
        if not target.is_empty:
            raise AccountAlreadyInUse(short_key(address))
        shortfall = minimum_balance(space) - target.lamports
        if shortfall > 0:
            self.transfer(payer, address, shortfall)
        funded = self._runtime.get_account(address)
        self._put(address, replace(funded, data=bytes(space), owner=self.program_id))

    def resize(self, address: bytes, new_space: int, payer: bytes) -> None:
        """
        Grow or shrink a program-owned account to `new_space` bytes, keeping it
        exactly rent exempt: the payer covers growth and receives the excess.
        """
        acct = self._writable(address)
        if acct.owner != self.program_id:
            raise AccountOwnedByWrongProgram(short_key(address))
        data = acct.data[:new_space] + bytes(max(0, new_space - len(acct.data)))
        self._put(address, replace(acct, data=data))

        required = minimum_balance(new_space)
        if required > acct.lamports:
            self.transfer(payer, address, required - acct.lamports)
        elif acct.lamports > required:
            self._writable(payer)
            self._move_lamports(address, payer, acct.lamports - required)

    def close(self, address: bytes, destination: bytes) -> None:
        """Drain a program-owned account into `destination` and remove it."""
        acct = self._writable(address)
        if acct.owner != self.program_id:
            raise AccountOwnedByWrongProgram(short_key(address))
        self._writable(destination)
        self._move_lamports(address, destination, acct.lamports)
        self._runtime._accounts.pop(address, None)

    # ── environment ─────────────────────────────────────────────────────────
    def now(self) -> int:
        return self._runtime.now()

    def log(self, message: str) -> None:
        self._logs.append(f"Program log: {message}")


ProgramEntrypoint = Callable[[InvokeContext], None]


class Runtime:
    """
    In-process host holding every account by address.
    Optionally backed by persistent storage: accounts are loaded on start and
    every committed transaction is written through.
    """

    def __init__(
        self,
        config: Optional[ProgramConfig] = None,
        clock: Optional[Callable[[], int]] = None,
        storage: Optional[StorageBackend | str] = None,
    ):
        self.config = config or ProgramConfig.from_env()
        self._clock = clock or (lambda: int(time.time()))
        self._last_now: Optional[int] = None
        self._accounts: Dict[bytes, Account] = {}
        self.programs: Dict[bytes, ProgramEntrypoint] = {self.config.program_id: notes.process_instruction}
        self.last_logs: List[str] = []
        self._committed: Set[str] = set()

        if isinstance(storage, str):
            stripped = storage.strip()
            if stripped.startswith("sqlite://"):
                storage = create_storage(stripped)
            elif stripped:
                # Plain file path → SQLite
                storage = create_storage(f"sqlite://{stripped}")
            else:
                storage = None
        self.storage: Optional[StorageBackend] = storage

        if self.storage:
            loaded = self.storage.load_accounts()
            self._accounts.update(loaded)
            self._committed = self.storage.committed_tx_ids()
            self._last_now = self._latest_stamp()
            print(f"[noteledger] Loaded {len(loaded)} accounts from storage")

    # ── state access ────────────────────────────────────────────────────────
    def now(self) -> int:
        """Wall-clock seconds, never lower than a value already handed out."""
        current = int(self._clock())
        if self._last_now is not None and current < self._last_now:
            current = self._last_now
        self._last_now = current
        return current

    def _latest_stamp(self) -> Optional[int]:
        """Newest `updated_at` among loaded notes; the clock never goes below it."""
        latest = None
        for acct in self._accounts.values():
            if acct.owner != self.config.program_id:
                continue
            try:
                stamp = Note.decode(acct.data).updated_at
            except LedgerError:
                continue
            if latest is None or stamp > latest:
                latest = stamp
        return latest

    def get_account(self, address: bytes) -> Account:
        return self._accounts.get(address, Account())

    def balance(self, address: bytes) -> int:
        return self.get_account(address).lamports

    def accounts(self) -> Iterator[Tuple[bytes, Account]]:
        return iter(sorted(self._accounts.items()))

    def set_account(self, address: bytes, account: Account) -> None:
        """Install an account directly (genesis state, fixtures)."""
        self._persist({address: account})
        self._accounts[address] = account

    def airdrop(self, address: bytes, lamports: int) -> int:
        """Mint lamports into a wallet on the local host; returns the new balance."""
        if lamports <= 0:
            raise ValueError("Airdrop amount must be positive")
        acct = self.get_account(address)
        if acct.lamports + lamports > U64_MAX:
            raise ArithmeticOverflow(short_key(address))
        updated = replace(acct, lamports=acct.lamports + lamports)
        self._persist({address: updated})
        self._accounts[address] = updated
        return updated.lamports

    # ── execution ───────────────────────────────────────────────────────────
    def process_transaction(self, tx: Transaction) -> TransactionReceipt:
        """
        Verify signatures, run every instruction, commit. On any failure the
        journal is restored and the original exception is re-raised.
        """
        logs: List[str] = []
        self.last_logs = logs
        tx_id = tx.id
        timestamp = self.now()

        try:
            tx.verify_signatures()
            if tx_id in self._committed:
                raise AlreadyProcessed(tx_id[:16])
        except LedgerError as e:
            logs.append(f"Transaction rejected: {e}")
            self._record(tx_id, timestamp, False, logs)
            raise

        touched = self._touched(tx)
        journal = {addr: self._accounts.get(addr) for addr in touched}
        signers = set(tx.signatures)

        for index, ix in enumerate(tx.instructions):
            label = short_key(ix.program_id)
            logs.append(f"Program {label} invoke [{index + 1}]")
            try:
                program = self.programs.get(ix.program_id)
                if program is None:
                    raise UnknownProgram(label)
                program(InvokeContext(self, ix, signers, logs))
            except Exception as e:
                self._restore(journal)
                logs.append(f"Program {label} failed: {e}")
                self._record(tx_id, timestamp, False, logs)
                raise
            logs.append(f"Program {label} success")

        try:
            self._commit(tx_id, timestamp, {addr: self._accounts.get(addr) for addr in touched}, logs)
        except Exception as e:
            self._restore(journal)
            print(f"[noteledger] Warning: transaction {tx_id[:16]} not persisted: {e}")
            raise
        self._committed.add(tx_id)
        return TransactionReceipt(tx_id=tx_id, timestamp=timestamp, logs=list(logs))

    def send(self, instruction: Instruction, *signers) -> TransactionReceipt:
        """Convenience: wrap one instruction, sign, process."""
        return self.process_transaction(Transaction([instruction]).sign(*signers))

    @staticmethod
    def _touched(tx: Transaction) -> List[bytes]:
        seen: List[bytes] = []
        for ix in tx.instructions:
            for meta in ix.accounts:
                if meta.pubkey not in seen:
                    seen.append(meta.pubkey)
        return seen

    def _restore(self, journal: Dict[bytes, Optional[Account]]) -> None:
        for addr, previous in journal.items():
            if previous is None:
                self._accounts.pop(addr, None)
            else:
                self._accounts[addr] = previous

    def _persist(self, changes: Dict[bytes, Optional[Account]]) -> None:
        if self.storage:
            self.storage.save_accounts(changes)

    def _commit(self, tx_id: str, timestamp: int, changes: Dict[bytes, Optional[Account]],
                logs: List[str]) -> None:
        if self.storage:
            self.storage.commit_transaction(changes, tx_id, timestamp, logs)

    def _record(self, tx_id: str, timestamp: int, success: bool, logs: List[str]) -> None:
        if self.storage:
            self.storage.append_log(tx_id, timestamp, success, logs)

    def close(self) -> None:
        """Release storage resources (e.g. database connection)."""
        if self.storage:
            try:
                self.storage.close()
                print("[noteledger] Storage closed")
            except Exception as e:
                print(f"[noteledger] Warning: Error closing storage: {e}")
            self.storage = None
