# noteledger/__init__.py
"""
Note ledger: one signed note per author, addressed by deterministic derivation.
State-transition rules for create / update / delete / upvote / tip, executed
atomically inside a small local host runtime.
"""

__version__ = "0.1.0-dev"

from noteledger.core.config import ProgramConfig
from noteledger.crypto.keys import IdentityKeyPair
from noteledger.chain.runtime import Runtime
from noteledger.program.state import Note

__all__ = ["ProgramConfig", "IdentityKeyPair", "Runtime", "Note", "__version__"]
