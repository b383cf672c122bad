"""
SPL Token Account Reaper

Burns leftover balances and closes every SPL token account owned by a wallet,
reclaiming the rent deposits. Instructions are packed into bounded batches,
each simulated, submitted and confirmed before the next one is built.
"""

__version__ = "0.1.0"

from reaper.core.reaper import Reaper
from reaper.core.batch import Batch, BatchStatus
from reaper.core.outcome import RunReport

__all__ = [
    "Reaper",
    "Batch",
    "BatchStatus",
    "RunReport",
]
