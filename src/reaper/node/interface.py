"""
Abstract interface for Solana ledger access.

Defines the contract for blockchain access that all ledger adapters must implement.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, List, Optional

from solders.hash import Hash
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.transaction import Transaction


@dataclass
class RawTokenAccount:
    """A token account as returned by the node, data still undecoded."""
    address: Pubkey
    data: bytes
    lamports: int = 0
    program_id: Optional[Pubkey] = None


@dataclass
class SimulationReport:
    """What the node said about a simulated transaction."""
    err: Any = None                     # None when the simulation succeeded
    logs: List[str] = field(default_factory=list)
    units_consumed: Optional[int] = None


class LedgerInterface(ABC):
    """
    Abstract interface for ledger access.

    This interface defines all blockchain operations needed by the reaper:
    - Token account queries
    - Recent blockhash
    - Transaction simulation
    - Transaction submission and confirmation
    """

    @abstractmethod
    async def connect(self) -> None:
        """
        Establish connection to the node.

        Raises:
            LedgerConnectionError: If connection cannot be established
        """
        pass

    @abstractmethod
    async def disconnect(self) -> None:
        """Close connection to the node."""
        pass

    @abstractmethod
    async def get_token_accounts_by_owner(
        self,
        owner: Pubkey,
        program_id: Pubkey,
    ) -> List[RawTokenAccount]:
        """
        Get all token accounts owned by a wallet.

        Args:
            owner: Wallet public key
            program_id: Token program whose accounts should be listed

        Returns:
            Token accounts in the order the node returned them

        Raises:
            FetchError: If the accounts cannot be listed
        """
        pass

    @abstractmethod
    async def get_latest_blockhash(self) -> Hash:
        """
        Get a recent blockhash to anchor a transaction.

        Raises:
            AnchorFetchError: If no blockhash is available
        """
        pass

    @abstractmethod
    async def simulate_transaction(self, tx: Transaction) -> SimulationReport:
        """
        Simulate a signed transaction without committing it.

        Args:
            tx: Signed transaction

        Returns:
            Simulation report; report.err is set when the program failed

        Raises:
            SimulationCallError: If the simulation call itself fails
        """
        pass

    @abstractmethod
    async def send_and_confirm_transaction(
        self,
        tx: Transaction,
        timeout_seconds: float = 60.0,
    ) -> Signature:
        """
        Submit a signed transaction and wait for confirmation.

        Args:
            tx: Signed transaction to submit
            timeout_seconds: Maximum time to wait for confirmation

        Returns:
            Transaction signature

        Raises:
            SubmissionError: If the transaction is rejected, fails on-chain
                or is not confirmed within the timeout
        """
        pass
