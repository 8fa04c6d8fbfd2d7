"""Error taxonomy for a sync pass.

Fetch and parse errors abort the pass of the source they occur in. Store
errors are isolated per record by the batch writer.
"""

from __future__ import annotations


class SyncError(RuntimeError):
    """Base class for pass-scoped failures."""


class FetchError(SyncError):
    """Network failure or non-success status while fetching a source feed."""


class ParseError(SyncError):
    """Source payload did not have the expected shape."""


class StoreError(SyncError):
    """Catalog query, insert or update failed."""
