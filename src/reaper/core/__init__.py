"""
Core reaper components.

This module contains the account and batch models, the outcome types,
the error taxonomy and the main run orchestration.
"""

from reaper.core.account import AccountState, AssetAccountRecord
from reaper.core.batch import Batch, BatchStatus
from reaper.core.outcome import RunReport, SimulationOutcome, SimulationStatus, SubmissionOutcome
from reaper.core.reaper import Reaper

__all__ = [
    "AccountState",
    "AssetAccountRecord",
    "Batch",
    "BatchStatus",
    "RunReport",
    "SimulationOutcome",
    "SimulationStatus",
    "SubmissionOutcome",
    "Reaper",
]
