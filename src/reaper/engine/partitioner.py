"""
Instruction Partitioner - splits the instruction list into batches.

Batches are bounded by instruction count, not serialized size.
"""

from typing import List, Sequence

import structlog
from solders.instruction import Instruction

from reaper.core.batch import Batch

logger = structlog.get_logger(__name__)


def partition_instructions(
    instructions: Sequence[Instruction],
    max_instructions: int,
) -> List[Batch]:
    """
    Split instructions into contiguous batches of at most max_instructions.

    Args:
        instructions: Ordered instruction list from the scanner
        max_instructions: Upper bound on instructions per batch

    Returns:
        Batches in order; the last one may be smaller

    Raises:
        ValueError: If max_instructions is below 1
    """
    if max_instructions < 1:
        raise ValueError(f"max_instructions must be at least 1, got {max_instructions}")

    batches = [
        Batch(sequence=seq, instructions=tuple(instructions[start:start + max_instructions]))
        for seq, start in enumerate(range(0, len(instructions), max_instructions))
    ]

    logger.debug(
        "instructions_partitioned",
        instructions=len(instructions),
        batches=len(batches),
        max_instructions=max_instructions,
    )
    return batches


def describe_batches(batches: List[Batch]) -> List[dict]:
    """Give the 1-based instruction range covered by each batch."""
    ranges = []
    start = 0
    for batch in batches:
        ranges.append({
            "sequence": batch.sequence,
            "first": start + 1,
            "last": start + batch.size,
        })
        start += batch.size
    return ranges
