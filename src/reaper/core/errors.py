"""
Error taxonomy for the reclaim pipeline.

Every failure that stops a run derives from PipelineError. SimulationCallError
is the one advisory error: the submitter logs it and keeps going.
"""

from typing import Any, Optional


class PipelineError(Exception):
    """Base class for all errors raised by the reclaim pipeline."""
    pass


class LedgerConnectionError(PipelineError):
    """Raised when the ledger adapter is not configured or cannot connect."""
    pass


class FetchError(PipelineError):
    """Raised when token accounts cannot be listed."""
    pass


class DecodeError(PipelineError):
    """Raised when raw account data is not a valid token account."""

    def __init__(self, message: str, address: Optional[str] = None):
        super().__init__(message)
        self.address = address


class AnchorFetchError(PipelineError):
    """Raised when no recent blockhash can be obtained."""
    pass


class SimulationCallError(PipelineError):
    """Raised when the simulation endpoint cannot be reached."""
    pass


class SimulationFailure(PipelineError):
    """Raised when simulation reports an on-chain error for a batch."""

    def __init__(self, message: str, err: Any = None, logs: Optional[list] = None):
        super().__init__(message)
        self.err = err
        self.logs = logs or []


class SubmissionError(PipelineError):
    """Raised when a transaction is rejected or never confirms."""

    def __init__(self, message: str, signature: Optional[str] = None):
        super().__init__(message)
        self.signature = signature
