# noteledger/core/errors.py
"""
Failure vocabulary shared by the host runtime and the notes program.

Three families, all aborting the whole transaction:
- NoteError      : domain rules of the notes program (codes 6000+)
- ConstraintError: account/authorization checks done before a handler body
- HostError      : failures raised by the host itself (funds, signatures, allocation)
"""

from typing import Dict, Optional, Type


class LedgerError(Exception):
    """Canonical error type; every subclass carries a numeric code and fixed message."""

    code: int = 0
    msg: str = "Ledger error"

    def __init__(self, detail: Optional[str] = None):
        self.detail = detail
        super().__init__(str(self))

    @property
    def name(self) -> str:
        return type(self).__name__

    def __str__(self) -> str:
        if self.detail:
            return f"{self.name} ({self.code}): {self.msg} [{self.detail}]"
        return f"{self.name} ({self.code}): {self.msg}"


# ── Domain errors ───────────────────────────────────────────────────────────

class NoteError(LedgerError):
    msg = "Notes program error"


class ContentEmpty(NoteError):
    code = 6000
    msg = "Content must not be empty"


class ContentTooLong(NoteError):
    code = 6001
    msg = "Content exceeds maximum length"


class AuthorMismatch(NoteError):
    code = 6002
    msg = "Note authority does not match the PDA seeds"


class CannotUpvoteOwnNote(NoteError):
    code = 6003
    msg = "Authors cannot upvote their own note"


class CannotTipOwnNote(NoteError):
    code = 6004
    msg = "Authors cannot tip their own note"


class InvalidTipAmount(NoteError):
    code = 6005
    msg = "Tip amount must be greater than zero"


class MathOverflow(NoteError):
    code = 6006
    msg = "Mathematical operation overflowed"


# ── Structural / authorization errors ──────────────────────────────────────

class ConstraintError(LedgerError):
    msg = "Account constraint violated"


class InstructionFallbackNotFound(ConstraintError):
    code = 101
    msg = "Fallback functions are not supported"


class InstructionDidNotDeserialize(ConstraintError):
    code = 102
    msg = "The program could not deserialize the given instruction"


class ConstraintMut(ConstraintError):
    code = 2000
    msg = "A mut constraint was violated"


class ConstraintHasOne(ConstraintError):
    code = 2001
    msg = "A has one constraint was violated"


class ConstraintSigner(ConstraintError):
    code = 2002
    msg = "A signer constraint was violated"


class ConstraintSeeds(ConstraintError):
    code = 2006
    msg = "A seeds constraint was violated"


class AccountDiscriminatorMismatch(ConstraintError):
    code = 3002
    msg = "Account discriminator did not match what was expected"


class AccountDidNotDeserialize(ConstraintError):
    code = 3003
    msg = "Failed to deserialize the account"


class AccountDidNotSerialize(ConstraintError):
    code = 3004
    msg = "Failed to serialize the account"


class AccountNotEnoughKeys(ConstraintError):
    code = 3005
    msg = "Not enough account keys given to the instruction"


class AccountNotMutable(ConstraintError):
    code = 3006
    msg = "The given account is not mutable"


class AccountOwnedByWrongProgram(ConstraintError):
    code = 3007
    msg = "The given account is owned by a different program than expected"


class InvalidProgramId(ConstraintError):
    code = 3008
    msg = "Program ID was not as expected"


class AccountNotSigner(ConstraintError):
    code = 3010
    msg = "The given account did not sign"


class AccountNotSystemOwned(ConstraintError):
    code = 3011
    msg = "The given account is not owned by the system program"


class AccountNotInitialized(ConstraintError):
    code = 3012
    msg = "The program expected this account to be already initialized"


# ── Host errors ─────────────────────────────────────────────────────────────

class HostError(LedgerError):
    msg = "Host runtime error"


class AccountAlreadyInUse(HostError):
    code = 1
    msg = "Account already in use"


class InsufficientFunds(HostError):
    code = 2
    msg = "Insufficient lamports for the requested operation"


class ArithmeticOverflow(HostError):
    code = 3
    msg = "Lamport balance arithmetic overflowed"


class MissingRequiredSignature(HostError):
    code = 4
    msg = "A required signature is missing"


class SignatureVerificationFailed(HostError):
    code = 5
    msg = "Transaction signature verification failed"


class InvalidSeeds(HostError):
    code = 6
    msg = "Provided seeds do not result in a valid address"


class UnknownProgram(HostError):
    code = 7
    msg = "Instruction targets a program the host does not know"


class AlreadyProcessed(HostError):
    code = 8
    msg = "This transaction has already been processed"


def _collect(base: Type[LedgerError]) -> Dict[int, Type[LedgerError]]:
    found: Dict[int, Type[LedgerError]] = {}
    for cls in base.__subclasses__():
        found[cls.code] = cls
    return found


NOTE_ERRORS = _collect(NoteError)
CONSTRAINT_ERRORS = _collect(ConstraintError)
HOST_ERRORS = _collect(HostError)


def note_error_for_code(code: int) -> Type[NoteError]:
    """Map a program error code (6000+) back to its exception class."""
    try:
        return NOTE_ERRORS[code]
    except KeyError:
        raise ValueError(f"Unknown notes program error code: {code}") from None
