"""
Transaction Builder - constructs batch transactions.

Prepends compute-budget directives to a batch, anchors it to a recent
blockhash and has the signer sign it.
"""

from typing import List, Optional

import structlog
from solders.compute_budget import set_compute_unit_limit, set_compute_unit_price
from solders.instruction import Instruction
from solders.message import Message
from solders.transaction import Transaction

from reaper.config import ReaperConfig, get_config
from reaper.core.batch import Batch
from reaper.core.errors import PipelineError
from reaper.node.interface import LedgerInterface
from reaper.tx.signer import TransactionSigner

logger = structlog.get_logger(__name__)

# Maximum serialized transaction size accepted by the network
PACKET_DATA_SIZE = 1232


class TransactionBuildError(PipelineError):
    """Raised when transaction construction fails."""
    pass


def compute_budget_instructions(unit_price: int, unit_limit: int) -> List[Instruction]:
    """Fee-priority and execution-budget directives, price first."""
    return [
        set_compute_unit_price(unit_price),
        set_compute_unit_limit(unit_limit),
    ]


class TransactionBuilder:
    """
    Builds and signs batch transactions.

    Every batch gets its own compute-budget directives and its own
    blockhash; nothing is shared between transactions.
    """

    def __init__(
        self,
        node: LedgerInterface,
        signer: TransactionSigner,
        config: Optional[ReaperConfig] = None,
    ):
        """
        Initialize the transaction builder.

        Args:
            node: Ledger interface used to fetch blockhashes
            signer: Transaction signer (also the fee payer)
            config: Reaper configuration
        """
        self.node = node
        self.signer = signer
        self.config = config or get_config()

    def assemble_instructions(self, batch: Batch) -> List[Instruction]:
        """Compute-budget directives followed by the batch, in order."""
        return compute_budget_instructions(
            self.config.compute_unit_price,
            self.config.compute_unit_limit,
        ) + list(batch.instructions)

    async def build_batch_transaction(self, batch: Batch) -> Transaction:
        """
        Build a signed transaction for a batch.

        Args:
            batch: The batch to process

        Returns:
            Signed transaction

        Raises:
            TransactionBuildError: If the signer or batch is unusable
            AnchorFetchError: If no recent blockhash is available
        """
        if not self.signer.is_loaded:
            raise TransactionBuildError("Signer key not loaded")

        if batch.is_empty:
            raise TransactionBuildError("Cannot build transaction for empty batch")

        instructions = self.assemble_instructions(batch)
        blockhash = await self.node.get_latest_blockhash()

        message = Message.new_with_blockhash(instructions, self.signer.pubkey, blockhash)
        tx = self.signer.sign_transaction(message, blockhash)

        tx_size = len(bytes(tx))
        if tx_size > PACKET_DATA_SIZE:
            logger.warning(
                "transaction_oversized",
                sequence=batch.sequence,
                size=tx_size,
                limit=PACKET_DATA_SIZE,
            )

        logger.info(
            "batch_transaction_built",
            sequence=batch.sequence,
            instructions=len(instructions),
            size=tx_size,
            signature=str(tx.signatures[0])[:16] + "...",
        )
        return tx
