"""
Batch model.

Represents a contiguous group of instructions submitted in a single transaction.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional, Tuple

from solders.instruction import Instruction


class BatchStatus(str, Enum):
    """Status of a batch."""
    PENDING = "pending"           # Partitioned, not yet touched by the submitter
    BUILDING = "building"         # Transaction being constructed
    SIGNED = "signed"             # Transaction signed by the operator key
    SIMULATED = "simulated"       # Simulation passed or was skipped
    SUBMITTED = "submitted"       # Transaction sent to the node
    CONFIRMED = "confirmed"       # Transaction confirmed on-chain
    ABORTED = "aborted"           # Batch failed, run stops here


# Legal transitions of the per-batch state machine
_TRANSITIONS = {
    BatchStatus.PENDING: {BatchStatus.BUILDING, BatchStatus.ABORTED},
    BatchStatus.BUILDING: {BatchStatus.SIGNED, BatchStatus.ABORTED},
    BatchStatus.SIGNED: {BatchStatus.SIMULATED, BatchStatus.ABORTED},
    BatchStatus.SIMULATED: {BatchStatus.SUBMITTED, BatchStatus.ABORTED},
    BatchStatus.SUBMITTED: {BatchStatus.CONFIRMED, BatchStatus.ABORTED},
    BatchStatus.CONFIRMED: set(),
    BatchStatus.ABORTED: set(),
}


class InvalidTransitionError(Exception):
    """Raised when a batch is moved to a status it cannot reach."""
    pass


@dataclass
class Batch:
    """
    A contiguous slice of the scanner's instruction list.

    Batches are produced by the partitioner, walked through the state
    machine by the submitter exactly once, then discarded.

    Attributes:
        sequence: Zero-based position of the batch in the run
        instructions: The burn/close instructions, in scan order
        batch_id: Unique identifier for the batch
        status: Current processing status
        signature: Signature of the transaction carrying this batch
        simulation_units: Compute units reported by simulation
        error_message: Error that aborted the batch
    """

    sequence: int
    instructions: Tuple[Instruction, ...] = ()
    batch_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    status: BatchStatus = BatchStatus.PENDING

    # Transaction info
    signature: Optional[str] = None
    simulation_units: Optional[int] = None
    simulation_skipped: bool = False

    # Timestamps
    created_at: datetime = field(default_factory=datetime.utcnow)
    updated_at: datetime = field(default_factory=datetime.utcnow)
    submitted_at: Optional[datetime] = None
    confirmed_at: Optional[datetime] = None

    # Error tracking
    error_message: Optional[str] = None

    def __post_init__(self):
        """Normalize after initialization."""
        if isinstance(self.status, str):
            self.status = BatchStatus(self.status)
        self.instructions = tuple(self.instructions)

    @property
    def size(self) -> int:
        """Get the number of instructions in this batch."""
        return len(self.instructions)

    @property
    def is_empty(self) -> bool:
        return len(self.instructions) == 0

    @property
    def is_terminal(self) -> bool:
        """Check if the batch reached confirmed or aborted."""
        return self.status in (BatchStatus.CONFIRMED, BatchStatus.ABORTED)

    def _transition(self, status: BatchStatus) -> None:
        if status not in _TRANSITIONS[self.status]:
            raise InvalidTransitionError(
                f"Batch {self.sequence} cannot move from {self.status.value} to {status.value}"
            )
        self.status = status
        self.updated_at = datetime.utcnow()

    def mark_building(self) -> None:
        """Mark batch as building its transaction."""
        self._transition(BatchStatus.BUILDING)

    def mark_signed(self, signature: str) -> None:
        """Mark batch as signed; the first signature identifies the transaction."""
        self._transition(BatchStatus.SIGNED)
        self.signature = signature

    def mark_simulated(self, units_consumed: Optional[int] = None, skipped: bool = False) -> None:
        """Mark batch as simulated (or simulation skipped on infrastructure failure)."""
        self._transition(BatchStatus.SIMULATED)
        self.simulation_units = units_consumed
        self.simulation_skipped = skipped

    def mark_submitted(self) -> None:
        """Mark batch as submitted."""
        self._transition(BatchStatus.SUBMITTED)
        self.submitted_at = datetime.utcnow()

    def mark_confirmed(self) -> None:
        """Mark batch as confirmed."""
        self._transition(BatchStatus.CONFIRMED)
        self.confirmed_at = datetime.utcnow()

    def mark_aborted(self, error: str) -> None:
        """Mark batch as aborted."""
        self._transition(BatchStatus.ABORTED)
        self.error_message = error

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "batch_id": self.batch_id,
            "sequence": self.sequence,
            "status": self.status.value,
            "size": self.size,
            "signature": self.signature,
            "simulation_units": self.simulation_units,
            "simulation_skipped": self.simulation_skipped,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "submitted_at": self.submitted_at.isoformat() if self.submitted_at else None,
            "confirmed_at": self.confirmed_at.isoformat() if self.confirmed_at else None,
            "error_message": self.error_message,
        }

    def __repr__(self) -> str:
        return f"Batch(seq={self.sequence}, status={self.status.value}, size={self.size})"


def flatten_batches(batches: List[Batch]) -> List[Instruction]:
    """Concatenate the instructions of batches back into one ordered list."""
    return [ix for batch in batches for ix in batch.instructions]
