"""
Error taxonomy for balance computation.
"""
from typing import Optional


class LedgerError(Exception):
    """Base class for errors surfaced to API callers."""
    status_code = 500
    code = "INTERNAL_ERROR"

    def __init__(self, message: str, details: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.details = details


class ValidationError(LedgerError):
    """Malformed request input, rejected before any computation."""
    status_code = 400
    code = "VALIDATION_ERROR"


class PermissionDeniedError(LedgerError):
    """Viewer is not an active member of the requested group."""
    status_code = 403
    code = "PERMISSION_DENIED"


class StoreAccessError(LedgerError):
    """A query against the backing store failed."""
    status_code = 503
    code = "STORE_ERROR"


class DataIntegrityAnomaly(Exception):
    """
    A stored record that cannot be applied to the ledger.

    Raised while loading a single record and caught by the netting engine,
    which logs it and skips the record. Never reaches API callers.
    """

    def __init__(self, message: str, record_id: Optional[str] = None):
        super().__init__(message)
        self.record_id = record_id
