"""
Outcome types for simulation, submission and the whole run.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, List, Optional

from reaper.core.batch import Batch, BatchStatus


class SimulationStatus(str, Enum):
    """Result tag of a pre-flight simulation."""
    OK = "ok"                          # Simulation ran and reported no error
    ADVISORY_SKIP = "advisory_skip"    # Simulation call failed, proceed anyway
    FATAL = "fatal"                    # Simulation reported an on-chain error


@dataclass
class SimulationOutcome:
    """Tagged result of simulating one signed transaction."""

    status: SimulationStatus
    err: Any = None
    logs: List[str] = field(default_factory=list)
    units_consumed: Optional[int] = None
    reason: str = ""

    @classmethod
    def ok(cls, logs: Optional[List[str]] = None, units_consumed: Optional[int] = None) -> "SimulationOutcome":
        return cls(SimulationStatus.OK, logs=logs or [], units_consumed=units_consumed)

    @classmethod
    def advisory_skip(cls, reason: str) -> "SimulationOutcome":
        return cls(SimulationStatus.ADVISORY_SKIP, reason=reason)

    @classmethod
    def fatal(cls, err: Any, logs: Optional[List[str]] = None) -> "SimulationOutcome":
        return cls(SimulationStatus.FATAL, err=err, logs=logs or [], reason=str(err))

    @property
    def is_fatal(self) -> bool:
        return self.status == SimulationStatus.FATAL


@dataclass
class SubmissionOutcome:
    """Result of pushing one batch through the submitter."""

    batch: Batch
    signature: Optional[str] = None
    simulation: Optional[SimulationOutcome] = None
    error: Optional[str] = None

    @property
    def confirmed(self) -> bool:
        return self.batch.status == BatchStatus.CONFIRMED

    @property
    def success(self) -> bool:
        return self.error is None


@dataclass
class RunReport:
    """
    Auditable record of a whole reclaim run.

    Batches that were confirmed before a failure stay listed here, since
    their effects on the ledger are irreversible.
    """

    owner: str
    dry_run: bool = False
    accounts_found: int = 0
    accounts_skipped: int = 0
    instruction_count: int = 0
    outcomes: List[SubmissionOutcome] = field(default_factory=list)
    batches_planned: int = 0
    error: Optional[str] = None
    started_at: datetime = field(default_factory=datetime.utcnow)
    finished_at: Optional[datetime] = None

    @property
    def success(self) -> bool:
        return self.error is None and all(o.success for o in self.outcomes)

    @property
    def signatures(self) -> List[str]:
        """Signatures of confirmed batches, in submission order."""
        return [o.signature for o in self.outcomes if o.confirmed and o.signature]

    def finish(self, error: Optional[str] = None) -> None:
        self.error = error
        self.finished_at = datetime.utcnow()

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "owner": self.owner,
            "dry_run": self.dry_run,
            "success": self.success,
            "accounts_found": self.accounts_found,
            "accounts_skipped": self.accounts_skipped,
            "instruction_count": self.instruction_count,
            "batches_planned": self.batches_planned,
            "batches": [o.batch.to_dict() for o in self.outcomes],
            "signatures": self.signatures,
            "error": self.error,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
        }
