# noteledger/storage/__init__.py
"""
Storage backends for persistent host state (accounts + transaction log).
"""

from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Set
from pathlib import Path
from noteledger.core.types import Account


class StorageBackend(ABC):
    """Abstract base for all persistent storage implementations."""

    @abstractmethod
    def save_accounts(self, changes: Dict[bytes, Optional[Account]]) -> None:
        """Write a committed change set atomically; None deletes the address."""

    @abstractmethod
    def load_accounts(self) -> Dict[bytes, Account]:
        pass

    @abstractmethod
    def append_log(self, tx_id: str, timestamp: int, success: bool, logs: List[str]) -> None:
        pass

    @abstractmethod
    def commit_transaction(self, changes: Dict[bytes, Optional[Account]],
                           tx_id: str, timestamp: int, logs: List[str]) -> None:
        """Write a committed transaction's accounts and its log row in one atomic step."""

    @abstractmethod
    def committed_tx_ids(self) -> Set[str]:
        pass

    @abstractmethod
    def close(self) -> None:
        pass


def create_storage(uri: str) -> StorageBackend:
    if uri.startswith("sqlite://"):
        from .sqlite import SQLiteStorage
        # Extract everything after sqlite://
        raw_path = uri[len("sqlite://"):].lstrip("/")
        if not raw_path.startswith('/'):
            raw_path = '/' + raw_path

        absolute_path = Path(raw_path).resolve()
        return SQLiteStorage(absolute_path)
    else:
        raise ValueError(f"Unsupported storage URI: {uri}")


from .sqlite import SQLiteStorage

__all__ = ["StorageBackend", "create_storage", "SQLiteStorage"]
