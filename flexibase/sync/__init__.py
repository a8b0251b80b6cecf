"""
Remote sync for FlexiBase: debounced push and last-write-wins reconciliation.
"""

from .engine import SyncEngine, SyncResult

__all__ = ["SyncEngine", "SyncResult"]
