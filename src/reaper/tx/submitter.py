"""
Transaction Submitter - simulates, submits and confirms batch transactions.

Walks one batch at a time through
BUILDING -> SIGNED -> SIMULATED -> SUBMITTED -> CONFIRMED,
moving it to ABORTED on the first fatal error.
"""

import asyncio
from typing import Optional

import structlog
from solders.transaction import Transaction

from reaper.config import SOLSCAN_TX_URL, ReaperConfig, get_config
from reaper.core.batch import Batch
from reaper.core.errors import PipelineError, SimulationCallError, SimulationFailure
from reaper.core.outcome import SimulationOutcome, SimulationStatus, SubmissionOutcome
from reaper.node.interface import LedgerInterface
from reaper.tx.builder import TransactionBuilder

logger = structlog.get_logger(__name__)


class TransactionSubmitter:
    """
    Submits batches strictly one at a time.

    Simulation is a gate only when the node reports an on-chain error;
    if the simulation call itself fails the batch goes ahead anyway.
    """

    def __init__(
        self,
        node: LedgerInterface,
        builder: TransactionBuilder,
        config: Optional[ReaperConfig] = None,
    ):
        """
        Initialize the submitter.

        Args:
            node: Ledger interface for simulation and submission
            builder: Builds the signed transaction for each batch
            config: Reaper configuration
        """
        self.node = node
        self.builder = builder
        self.config = config or get_config()

        # Single-slot guard: at most one batch in flight
        self._in_flight = asyncio.Lock()

    @property
    def busy(self) -> bool:
        """Check if a batch is currently in flight."""
        return self._in_flight.locked()

    async def simulate(self, tx: Transaction) -> SimulationOutcome:
        """
        Simulate a signed transaction.

        Returns:
            OK, ADVISORY_SKIP when the call could not be made,
            or FATAL when the node reported an on-chain error
        """
        try:
            report = await self.node.simulate_transaction(tx)
        except SimulationCallError as e:
            logger.warning("simulation_skipped", error=str(e))
            return SimulationOutcome.advisory_skip(str(e))

        if report.err is not None:
            logger.error("simulation_failed", err=str(report.err), logs=report.logs[-5:])
            return SimulationOutcome.fatal(report.err, report.logs)

        logger.info("simulation_succeeded", units_consumed=report.units_consumed)
        return SimulationOutcome.ok(report.logs, report.units_consumed)

    async def submit(self, batch: Batch) -> SubmissionOutcome:
        """
        Push a batch through build, sign, simulate, submit and confirm.

        Args:
            batch: A pending batch

        Returns:
            Outcome holding the confirmed signature (no signature in dry-run)

        Raises:
            AnchorFetchError, SimulationFailure, SubmissionError,
            TransactionBuildError: The batch is aborted and the run must stop
        """
        async with self._in_flight:
            return await self._submit(batch)

    async def _submit(self, batch: Batch) -> SubmissionOutcome:
        outcome = SubmissionOutcome(batch=batch)

        logger.info("processing_batch", sequence=batch.sequence, size=batch.size)

        try:
            batch.mark_building()
            tx = await self.builder.build_batch_transaction(batch)
            batch.mark_signed(str(tx.signatures[0]))

            simulation = await self.simulate(tx)
            outcome.simulation = simulation
            if simulation.is_fatal:
                raise SimulationFailure(
                    f"Transaction simulation failed: {simulation.err}",
                    err=simulation.err,
                    logs=simulation.logs,
                )
            batch.mark_simulated(
                simulation.units_consumed,
                skipped=simulation.status == SimulationStatus.ADVISORY_SKIP,
            )

            if self.config.dry_run:
                logger.info("dry_run_batch_not_submitted", sequence=batch.sequence)
                return outcome

            batch.mark_submitted()
            signature = await self.node.send_and_confirm_transaction(
                tx,
                timeout_seconds=self.config.confirm_timeout_seconds,
            )
            batch.mark_confirmed()
            outcome.signature = str(signature)

        except PipelineError as e:
            batch.mark_aborted(str(e))
            outcome.error = str(e)
            logger.error(
                "batch_aborted",
                sequence=batch.sequence,
                error_type=type(e).__name__,
                error=str(e),
            )
            raise

        logger.info(
            "batch_confirmed",
            sequence=batch.sequence,
            signature=outcome.signature,
            solscan=SOLSCAN_TX_URL.format(signature=outcome.signature),
        )
        return outcome
