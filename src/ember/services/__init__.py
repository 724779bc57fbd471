"""Application services used by the HTTP layer."""

from ember.services.accounts import AccountService
from ember.services.memories import MemoryPage, MemoryService, MemoryUpdate, summarize
from ember.services.retention import PurgeReport, RetentionService, restore_cutoff

__all__ = [
    "AccountService",
    "MemoryPage",
    "MemoryService",
    "MemoryUpdate",
    "PurgeReport",
    "RetentionService",
    "restore_cutoff",
    "summarize",
]
