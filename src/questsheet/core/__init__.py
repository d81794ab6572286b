"""
QuestSheet Core - store access shared by every module.

Components:
- store: TabularStore interface, in-memory backend, timeout/metrics wrapper
- sheets: Google Sheets API v4 backend
- retry: exponential backoff for store calls
- rows: A1 ranges, row -> record mapping, sheet timestamps
"""

from questsheet.core.store import (
    InMemoryTabularStore,
    InstrumentedStore,
    StoreError,
    TabularStore,
    TransientStoreError,
)

__all__ = [
    "InMemoryTabularStore",
    "InstrumentedStore",
    "StoreError",
    "TabularStore",
    "TransientStoreError",
]
