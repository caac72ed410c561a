# noteledger/core/config.py
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from noteledger.core.encoding import pubkey_from_str

# Fixed identity of the notes program on the local host (base64url of 32 bytes).
DEFAULT_PROGRAM_ID = "TxFoqIgRBd2sRvI4RNM8ODm7JmcLNf4GHzwl5yl5qMk"
NOTE_SEED = b"note"
MAX_CONTENT_LENGTH = 1024


@dataclass(frozen=True)
class ProgramConfig:
    """
    Process-wide, read-only settings of the notes program.
    Built once at startup and handed to the host; never mutated afterwards.
    """
    program_id: bytes
    seed: bytes = NOTE_SEED
    max_content_length: int = MAX_CONTENT_LENGTH

    def __post_init__(self):
        if len(self.program_id) != 32:
            raise ValueError("program_id must be 32 bytes")
        if not self.seed or len(self.seed) > 32:
            raise ValueError("seed must be 1..32 bytes")
        if self.max_content_length <= 0:
            raise ValueError("max_content_length must be positive")

    @classmethod
    def default(cls) -> "ProgramConfig":
        return cls(program_id=pubkey_from_str(DEFAULT_PROGRAM_ID))

    @classmethod
    def from_env(cls) -> "ProgramConfig":
        """Resolve program id: NOTELEDGER_PROGRAM_ID env var, else the built-in id."""
        env_id = os.environ.get("NOTELEDGER_PROGRAM_ID")
        if env_id:
            return cls(program_id=pubkey_from_str(env_id))
        return cls.default()


def resolve_db_path(db_flag: Optional[Path] = None) -> Path:
    """Resolve DB path in this order:
    1. explicit path (--db flag)
    2. NOTELEDGER_DB_PATH environment variable
    3. Default: ~/.noteledger/notes.db
    """
    if db_flag:
        path = Path(db_flag).resolve()
    else:
        env_path = os.environ.get("NOTELEDGER_DB_PATH")
        if env_path:
            path = Path(env_path).resolve()
        else:
            path = Path.home() / ".noteledger" / "notes.db"
    return path
