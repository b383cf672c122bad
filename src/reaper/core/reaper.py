"""
Main Reaper orchestrator.

Coordinates scanning, partitioning and submission into one sequential run.
"""

from typing import Callable, List, Optional, Tuple

import structlog
from solders.instruction import Instruction

from reaper.config import ReaperConfig, get_config
from reaper.core.account import AssetAccountRecord
from reaper.core.batch import Batch
from reaper.core.errors import PipelineError
from reaper.core.outcome import RunReport, SubmissionOutcome
from reaper.engine.partitioner import describe_batches, partition_instructions
from reaper.engine.scanner import AccountScanner
from reaper.node.interface import LedgerInterface
from reaper.node.solana_rpc import SolanaRpcAdapter
from reaper.tx.builder import TransactionBuilder
from reaper.tx.signer import TransactionSigner
from reaper.tx.submitter import TransactionSubmitter

logger = structlog.get_logger(__name__)


class Reaper:
    """
    Main reaper orchestrator.

    Runs the pipeline once, strictly in order:
    - Scan the wallet's token accounts into burn/close instructions
    - Partition the instructions into bounded batches
    - Submit each batch and wait for it to confirm before the next

    The first fatal error stops the run; batches confirmed before it
    remain on the ledger and in the report.

    Usage:
        ```python
        reaper = Reaper(config)
        report = await reaper.run()
        ```
    """

    def __init__(
        self,
        config: Optional[ReaperConfig] = None,
        node: Optional[LedgerInterface] = None,
        signer: Optional[TransactionSigner] = None,
    ):
        """
        Initialize the reaper.

        Args:
            config: Reaper configuration
            node: Custom ledger interface (SolanaRpcAdapter if not provided)
            signer: Pre-loaded signer (loaded from config if not provided)
        """
        self.config = config or get_config()
        self.node = node or SolanaRpcAdapter(self.config)
        self.signer = signer or TransactionSigner(self.config)

        self._scanner: Optional[AccountScanner] = None
        self._submitter: Optional[TransactionSubmitter] = None
        self._initialized = False

        self.report: Optional[RunReport] = None

        # Callbacks
        self._on_batch_confirmed: Optional[Callable[[Batch, str], None]] = None
        self._on_error: Optional[Callable[[Exception], None]] = None

    async def initialize(self) -> None:
        """
        Connect to the node and load the signing key.

        Must be called before running; run() calls it when needed.
        """
        if self._initialized:
            return

        if not self.signer.is_loaded:
            self.signer.load_from_config()

        await self.node.connect()

        self._scanner = AccountScanner(node=self.node, config=self.config)
        builder = TransactionBuilder(node=self.node, signer=self.signer, config=self.config)
        self._submitter = TransactionSubmitter(node=self.node, builder=builder, config=self.config)

        self._initialized = True
        logger.info("reaper_initialized", wallet=str(self.signer.pubkey))

    async def shutdown(self) -> None:
        """Disconnect from the node."""
        await self.node.disconnect()
        self._initialized = False
        logger.info("reaper_shutdown")

    async def plan(self) -> Tuple[List[AssetAccountRecord], List[Batch]]:
        """
        Scan the wallet and partition the result, without submitting.

        Returns:
            Tuple of (account records to process, planned batches)

        Raises:
            FetchError: If the accounts cannot be listed
            DecodeError: If any account is malformed
        """
        if not self._initialized:
            await self.initialize()

        owner = self.signer.pubkey
        records, _ = await self._scanner.scan_accounts(owner)
        instructions = self._scanner.build_instructions(records, owner)
        return records, self._partition(instructions)

    def _partition(self, instructions: List[Instruction]) -> List[Batch]:
        batches = partition_instructions(instructions, self.config.max_instructions)

        if batches:
            logger.info(
                "batches_planned",
                instructions=len(instructions),
                batches=len(batches),
                ranges=describe_batches(batches),
            )
        return batches

    async def run(self) -> RunReport:
        """
        Execute the full scan -> batch -> submit pipeline.

        Returns:
            Report of the run; report.success is True only when every
            batch reached CONFIRMED (SIMULATED in dry-run)

        Raises:
            PipelineError: On the first fatal error, after recording it
        """
        try:
            if not self._initialized:
                await self.initialize()

            owner = self.signer.pubkey
            self.report = RunReport(owner=str(owner), dry_run=self.config.dry_run)

            logger.info("reaper_starting", wallet=str(owner), dry_run=self.config.dry_run)

            await self._execute(self.report)

        except PipelineError as e:
            if self.report is not None:
                self.report.finish(error=str(e))
            logger.error("reaper_failed", error_type=type(e).__name__, error=str(e))
            if self._on_error:
                self._on_error(e)
            raise
        finally:
            await self.shutdown()

        self.report.finish()
        logger.info(
            "reaper_completed",
            batches=len(self.report.outcomes),
            signatures=len(self.report.signatures),
        )
        return self.report

    async def _execute(self, report: RunReport) -> None:
        owner = self.signer.pubkey

        instructions = await self._scanner.scan(owner)
        report.accounts_found = self._scanner.accounts_found
        report.accounts_skipped = self._scanner.accounts_skipped
        report.instruction_count = len(instructions)

        if not instructions:
            logger.info("nothing_to_process", accounts_found=report.accounts_found)
            return

        logger.info(
            "processing_instructions",
            instructions=len(instructions),
            accounts=report.accounts_found - report.accounts_skipped,
        )

        batches = self._partition(instructions)
        report.batches_planned = len(batches)

        for batch in batches:
            try:
                outcome = await self._submitter.submit(batch)
            except PipelineError as e:
                report.outcomes.append(SubmissionOutcome(batch=batch, error=str(e)))
                raise

            report.outcomes.append(outcome)
            if outcome.confirmed and self._on_batch_confirmed:
                self._on_batch_confirmed(batch, outcome.signature)

    # Callback registration

    def on_batch_confirmed(self, callback: Callable[[Batch, str], None]) -> None:
        """Register callback for batch confirmation events."""
        self._on_batch_confirmed = callback

    def on_error(self, callback: Callable[[Exception], None]) -> None:
        """Register callback for fatal errors."""
        self._on_error = callback

    def get_stats(self) -> dict:
        """Get reaper statistics."""
        return {
            "initialized": self._initialized,
            "wallet": str(self.signer.pubkey) if self.signer.is_loaded else None,
            "scanner": self._scanner.get_stats() if self._scanner else {},
            "report": self.report.to_dict() if self.report else None,
        }

    @property
    def scanner(self) -> Optional[AccountScanner]:
        """Get the account scanner (available after initialize())."""
        return self._scanner
