# noteledger/core/types.py
from dataclasses import dataclass, field
from typing import List

from noteledger.core.encoding import b64url_encode, pubkey_to_str

SYSTEM_PROGRAM_ID = bytes(32)      # all-zero key, owner of plain wallets
U64_MAX = 2**64 - 1
I64_MAX = 2**63 - 1


@dataclass(frozen=True)
class Account:
    """Host-side view of one address: balance, raw data and owning program."""
    lamports: int = 0
    data: bytes = b""
    owner: bytes = SYSTEM_PROGRAM_ID
    executable: bool = False

    @property
    def is_system_owned(self) -> bool:
        return self.owner == SYSTEM_PROGRAM_ID

    @property
    def is_empty(self) -> bool:
        """Nothing allocated here: system-owned with no data (lamports may be > 0)."""
        return self.is_system_owned and not self.data

    def to_dict(self) -> dict:
        return {
            "lamports": self.lamports,
            "data": b64url_encode(self.data),
            "owner": pubkey_to_str(self.owner),
            "executable": self.executable,
        }


@dataclass(frozen=True)
class AccountMeta:
    """One account an instruction names, with the access it declares."""
    pubkey: bytes
    is_signer: bool = False
    is_writable: bool = False

    def to_dict(self) -> dict:
        return {
            "pubkey": pubkey_to_str(self.pubkey),
            "is_signer": self.is_signer,
            "is_writable": self.is_writable,
        }


@dataclass(frozen=True)
class Instruction:
    """A single program call: target program, ordered accounts, encoded arguments."""
    program_id: bytes
    accounts: List[AccountMeta] = field(default_factory=list)
    data: bytes = b""

    def to_dict(self) -> dict:
        return {
            "program_id": pubkey_to_str(self.program_id),
            "accounts": [m.to_dict() for m in self.accounts],
            "data": b64url_encode(self.data),
        }
