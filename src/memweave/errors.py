"""
Error taxonomy.

- MalformedInputError: bad embedding encodings, unparsable JSON, missing columns.
  Recovered where it happens; the value is treated as absent.
- StoreUnavailableError: missing table or failed connection. Recovered per
  step; fatal only when the store cannot be reached at all.
- CompressorError: the external compressor failed. Always non-fatal.
"""


class MemweaveError(Exception):
    """Base class for all memweave errors."""


class MalformedInputError(MemweaveError):
    pass


class StoreError(MemweaveError):
    pass


class StoreUnavailableError(StoreError):
    """A table or the whole store cannot be accessed."""

    def __init__(self, message: str, table: str | None = None):
        super().__init__(message)
        self.table = table


class CompressorError(MemweaveError):
    pass


class CompressionBusyError(MemweaveError):
    """A compression run is already in progress for this store."""
