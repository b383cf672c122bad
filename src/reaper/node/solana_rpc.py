"""
Solana JSON-RPC adapter for ledger integration.

Provides blockchain access via solana-py's asynchronous RPC client.
"""

import asyncio
from typing import Dict, List, Optional

import httpx
import structlog
from solana.exceptions import SolanaRpcException
from solana.rpc.async_api import AsyncClient
from solana.rpc.commitment import Commitment
from solana.rpc.core import (
    RPCException,
    RPCNoResultException,
    TransactionExpiredBlockheightExceededError,
    UnconfirmedTxError,
)
from solana.rpc.types import TokenAccountOpts, TxOpts
from solders.hash import Hash
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.transaction import Transaction

from reaper.config import ReaperConfig, get_config
from reaper.core.errors import (
    AnchorFetchError,
    FetchError,
    LedgerConnectionError,
    SimulationCallError,
    SubmissionError,
)
from reaper.node.interface import LedgerInterface, RawTokenAccount, SimulationReport

logger = structlog.get_logger(__name__)

# Errors solana-py surfaces for transport problems and RPC error payloads
RPC_ERRORS = (SolanaRpcException, RPCException, httpx.HTTPError)


class SolanaRpcAdapter(LedgerInterface):
    """
    Solana JSON-RPC adapter.

    Implements the LedgerInterface on top of solana.rpc.async_api.AsyncClient.
    """

    def __init__(
        self,
        config: Optional[ReaperConfig] = None,
        poll_interval_seconds: float = 0.5,
    ):
        """
        Initialize the RPC adapter.

        Args:
            config: Reaper configuration. Uses global config if not provided.
            poll_interval_seconds: Delay between signature status polls
        """
        self.config = config or get_config()
        self.endpoint = self.config.rpc_endpoint
        self.commitment = Commitment(self.config.commitment.value)
        self.poll_interval_seconds = poll_interval_seconds
        self._client: Optional[AsyncClient] = None
        # blockhash -> last valid block height, used to bound confirmation
        self._anchor_heights: Dict[str, int] = {}

    async def connect(self) -> None:
        """Create the RPC client and check the node is reachable."""
        if self._client is not None:
            return

        if not self.endpoint:
            raise LedgerConnectionError("RPC endpoint not configured")

        self._client = AsyncClient(
            self.endpoint,
            commitment=self.commitment,
            timeout=self.config.rpc_timeout_seconds,
        )

        try:
            healthy = await self._client.is_connected()
        except RPC_ERRORS as e:
            await self.disconnect()
            raise LedgerConnectionError(f"Failed to connect to RPC node: {e}") from e

        if not healthy:
            await self.disconnect()
            raise LedgerConnectionError(f"RPC node at {self.endpoint} is not healthy")

        logger.info("rpc_connected", endpoint=self.endpoint)

    async def disconnect(self) -> None:
        """Close the RPC client."""
        if self._client:
            await self._client.close()
            self._client = None
            logger.info("rpc_disconnected")

    async def _get_client(self) -> AsyncClient:
        if not self._client:
            await self.connect()
        return self._client

    async def get_token_accounts_by_owner(
        self,
        owner: Pubkey,
        program_id: Pubkey,
    ) -> List[RawTokenAccount]:
        """List token accounts of a program owned by a wallet."""
        client = await self._get_client()

        try:
            resp = await client.get_token_accounts_by_owner(
                owner,
                TokenAccountOpts(program_id=program_id, encoding="base64"),
                commitment=self.commitment,
            )
        except RPC_ERRORS as e:
            logger.error("token_accounts_fetch_failed", owner=str(owner), error=str(e))
            raise FetchError(f"Failed to fetch token accounts: {e}") from e

        value = getattr(resp, "value", None)
        if value is None:
            raise FetchError(f"Unexpected getTokenAccountsByOwner response: {resp}")

        accounts = [
            RawTokenAccount(
                address=keyed.pubkey,
                data=bytes(keyed.account.data),
                lamports=keyed.account.lamports,
                program_id=keyed.account.owner,
            )
            for keyed in value
        ]

        logger.debug("token_accounts_fetched", owner=str(owner), count=len(accounts))
        return accounts

    async def get_latest_blockhash(self) -> Hash:
        """Get the latest blockhash at the configured commitment."""
        client = await self._get_client()

        try:
            resp = await client.get_latest_blockhash(commitment=self.commitment)
            blockhash = resp.value.blockhash
            last_valid = resp.value.last_valid_block_height
        except RPC_ERRORS as e:
            raise AnchorFetchError(f"Failed to get recent blockhash: {e}") from e
        except AttributeError as e:
            raise AnchorFetchError(f"Unexpected getLatestBlockhash response: {e}") from e

        self._anchor_heights[str(blockhash)] = last_valid
        return blockhash

    async def simulate_transaction(self, tx: Transaction) -> SimulationReport:
        """Simulate a signed transaction against current state."""
        client = await self._get_client()

        try:
            resp = await client.simulate_transaction(
                tx,
                sig_verify=True,
                commitment=self.commitment,
            )
            result = resp.value
        except RPC_ERRORS as e:
            raise SimulationCallError(f"Simulation call failed: {e}") from e
        except AttributeError as e:
            raise SimulationCallError(f"Unexpected simulateTransaction response: {e}") from e

        return SimulationReport(
            err=result.err,
            logs=list(result.logs or []),
            units_consumed=result.units_consumed,
        )

    async def send_and_confirm_transaction(
        self,
        tx: Transaction,
        timeout_seconds: float = 60.0,
    ) -> Signature:
        """Send a signed transaction and poll until it is confirmed."""
        client = await self._get_client()
        blockhash = str(tx.message.recent_blockhash)
        last_valid = self._anchor_heights.pop(blockhash, None)

        try:
            resp = await client.send_transaction(
                tx,
                opts=TxOpts(
                    skip_confirmation=True,
                    skip_preflight=False,
                    preflight_commitment=self.commitment,
                ),
            )
            signature = resp.value
        except RPC_ERRORS as e:
            logger.error("tx_send_failed", error=str(e))
            raise SubmissionError(f"Transaction submission failed: {e}") from e

        logger.info("tx_submitted", signature=str(signature))

        try:
            status_resp = await asyncio.wait_for(
                client.confirm_transaction(
                    signature,
                    commitment=self.commitment,
                    sleep_seconds=self.poll_interval_seconds,
                    last_valid_block_height=last_valid,
                ),
                timeout=timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            logger.warning("tx_confirmation_timeout", signature=str(signature))
            raise SubmissionError(
                f"Transaction not confirmed within {timeout_seconds}s",
                signature=str(signature),
            ) from e
        except (UnconfirmedTxError, TransactionExpiredBlockheightExceededError) as e:
            raise SubmissionError(
                f"Transaction expired before confirmation: {e}",
                signature=str(signature),
            ) from e
        except (RPCNoResultException, *RPC_ERRORS) as e:
            raise SubmissionError(
                f"Confirmation polling failed: {e}",
                signature=str(signature),
            ) from e

        statuses = status_resp.value or []
        tx_status = statuses[0] if statuses else None
        if tx_status is None:
            raise SubmissionError("Transaction status unknown after confirmation", signature=str(signature))
        if tx_status.err is not None:
            raise SubmissionError(
                f"Transaction failed on-chain: {tx_status.err}",
                signature=str(signature),
            )

        logger.info("tx_confirmed", signature=str(signature), slot=tx_status.slot)
        return signature
