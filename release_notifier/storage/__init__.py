"""Persistent stores backed by the shared database handle"""

from release_notifier.storage.directory import RepositoryDirectory
from release_notifier.storage.ledger import ReleaseLedger

__all__ = ["RepositoryDirectory", "ReleaseLedger"]
