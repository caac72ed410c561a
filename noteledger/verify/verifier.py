# noteledger/verify/verifier.py
from typing import Dict, List, Optional
from dataclasses import dataclass

from noteledger.chain.runtime import minimum_balance
from noteledger.core.config import ProgramConfig
from noteledger.core.encoding import short_key
from noteledger.core.errors import LedgerError
from noteledger.core.types import Account
from noteledger.program.state import Note, content_length, verify_note_address
from noteledger.storage import StorageBackend


@dataclass
class VerificationFailure:
    address: str
    message: str
    category: str = "general"  # e.g. "layout", "address", "content", "timestamps", "rent"


@dataclass
class VerificationResult:
    is_valid: bool
    message: str = ""
    failures: List[VerificationFailure] = None
    notes_checked: int = 0

    def __post_init__(self):
        if self.failures is None:
            self.failures = []

    @property
    def first_failure(self) -> Optional[VerificationFailure]:
        return self.failures[0] if self.failures else None

    def __bool__(self):
        return self.is_valid

    def __str__(self):
        if self.is_valid:
            return f"State is valid ✓ ({self.notes_checked} notes)"
        lines = [f"Verification FAILED ({len(self.failures)} issues):"]
        for f in self.failures:
            lines.append(f"  • [{f.address}] {f.category}: {f.message}")
        return "\n".join(lines)


class NoteVerifier:
    """
    Offline checker for persisted note state.
    Re-validates every program-owned account against the record invariants.
    """

    def __init__(self, config: ProgramConfig):
        self.config = config

    def verify(self, accounts: Dict[bytes, Account]) -> VerificationResult:
        result = VerificationResult(True)

        for address, acct in sorted(accounts.items()):
            if acct.owner != self.config.program_id:
                continue
            label = short_key(address)
            result.notes_checked += 1

            # 1. Layout
            try:
                note = Note.decode(acct.data)
            except LedgerError as e:
                result.failures.append(VerificationFailure(label, str(e), "layout"))
                continue

            # 2. Address re-derivation from the stored owner + bump
            try:
                verify_note_address(address, note.owner, note.bump, self.config)
            except LedgerError as e:
                result.failures.append(VerificationFailure(label, str(e), "address"))

            # 3. Content bounds and exact sizing
            length = content_length(note.content)
            if not 0 < length <= self.config.max_content_length:
                result.failures.append(VerificationFailure(
                    label, f"content length {length} outside (0, {self.config.max_content_length}]", "content"))
            if len(acct.data) != note.space:
                result.failures.append(VerificationFailure(
                    label, f"account holds {len(acct.data)} bytes, record needs {note.space}", "layout"))

            # 4. Timestamps
            if note.updated_at < note.created_at:
                result.failures.append(VerificationFailure(
                    label, f"updated_at {note.updated_at} precedes created_at {note.created_at}", "timestamps"))

            # 5. Rent exemption
            if acct.lamports < minimum_balance(len(acct.data)):
                result.failures.append(VerificationFailure(
                    label, f"{acct.lamports} lamports below rent-exempt minimum", "rent"))

        result.is_valid = not result.failures
        result.message = (
            f"{result.notes_checked} notes valid" if result.is_valid
            else f"Failed with {len(result.failures)} issues"
        )
        return result

    def verify_from_storage(self, storage: StorageBackend) -> VerificationResult:
        """
        Load accounts from persistent storage and verify them.
        Returns result with extra info if load fails.
        """
        try:
            accounts = storage.load_accounts()
        except Exception as e:
            return VerificationResult(
                False,
                f"Failed to load accounts from storage: {str(e)}",
                [VerificationFailure("-", str(e), "storage")]
            )

        return self.verify(accounts)
