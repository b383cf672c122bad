"""
Test suite for the Solana JSON-RPC adapter.

RPC methods are replaced with mocks; the adapter's mapping of responses
and failures onto the pipeline's error types is exercised.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
import pytest_asyncio
from solana.rpc.async_api import AsyncClient
from solders.hash import Hash
from solders.pubkey import Pubkey
from solders.signature import Signature

from reaper.config import ReaperConfig
from reaper.core.batch import Batch, BatchStatus
from reaper.core.errors import (
    AnchorFetchError,
    FetchError,
    LedgerConnectionError,
    SimulationCallError,
    SubmissionError,
)
from reaper.engine.scanner import build_close_instruction, decode_token_account
from reaper.node.solana_rpc import SolanaRpcAdapter
from reaper.tx.builder import TransactionBuilder
from reaper.tx.submitter import TransactionSubmitter

from tests.conftest import TOKEN_PROGRAM, make_raw_account


@pytest.fixture
def adapter(test_config) -> SolanaRpcAdapter:
    """Create an adapter with a mocked RPC client."""
    adapter = SolanaRpcAdapter(test_config, poll_interval_seconds=0.01)
    adapter._client = AsyncMock()
    return adapter


def make_tx(blockhash: Hash) -> MagicMock:
    tx = MagicMock()
    tx.message.recent_blockhash = blockhash
    return tx


class TestConnection:
    """Tests for connecting to the node."""

    @pytest.mark.asyncio
    async def test_connect_without_endpoint(self):
        """Test that a missing endpoint is a connection error."""
        adapter = SolanaRpcAdapter(ReaperConfig(rpc_endpoint=None))

        with pytest.raises(LedgerConnectionError, match="not configured"):
            await adapter.connect()

    @pytest.mark.asyncio
    async def test_disconnect_closes_client(self, adapter):
        """Test that disconnect closes and drops the client."""
        client = adapter._client

        await adapter.disconnect()

        client.close.assert_awaited_once()
        assert adapter._client is None


class TestAccountQueries:
    """Tests for listing token accounts."""

    @pytest.mark.asyncio
    async def test_accounts_mapped_in_order(self, adapter):
        """Test that keyed accounts become raw accounts in node order."""
        addresses = [Pubkey.new_unique(), Pubkey.new_unique()]
        keyed = []
        for i, address in enumerate(addresses):
            item = MagicMock()
            item.pubkey = address
            item.account.data = bytes([i]) * 165
            item.account.lamports = 2_039_280
            item.account.owner = TOKEN_PROGRAM
            keyed.append(item)
        adapter._client.get_token_accounts_by_owner.return_value = MagicMock(value=keyed)

        accounts = await adapter.get_token_accounts_by_owner(Pubkey.new_unique(), TOKEN_PROGRAM)

        assert [a.address for a in accounts] == addresses
        assert accounts[1].data == bytes([1]) * 165
        assert accounts[0].lamports == 2_039_280
        assert accounts[0].program_id == TOKEN_PROGRAM

    @pytest.mark.asyncio
    async def test_transport_error_becomes_fetch_error(self, adapter):
        """Test that an HTTP failure is reported as FetchError."""
        adapter._client.get_token_accounts_by_owner.side_effect = httpx.ConnectError("refused")

        with pytest.raises(FetchError, match="refused"):
            await adapter.get_token_accounts_by_owner(Pubkey.new_unique(), TOKEN_PROGRAM)

    @pytest.mark.asyncio
    async def test_error_payload_becomes_fetch_error(self, adapter):
        """Test that a response without a value is reported as FetchError."""
        adapter._client.get_token_accounts_by_owner.return_value = MagicMock(value=None)

        with pytest.raises(FetchError, match="Unexpected"):
            await adapter.get_token_accounts_by_owner(Pubkey.new_unique(), TOKEN_PROGRAM)


class TestBlockhash:
    """Tests for fetching the transaction anchor."""

    @pytest.mark.asyncio
    async def test_blockhash_remembered_with_height(self, adapter):
        """Test that the last valid height is kept for confirmation."""
        blockhash = Hash.new_unique()
        resp = MagicMock()
        resp.value.blockhash = blockhash
        resp.value.last_valid_block_height = 1_000
        adapter._client.get_latest_blockhash.return_value = resp

        assert await adapter.get_latest_blockhash() == blockhash
        assert adapter._anchor_heights[str(blockhash)] == 1_000

    @pytest.mark.asyncio
    async def test_failure_becomes_anchor_error(self, adapter):
        """Test that a failed call is reported as AnchorFetchError."""
        adapter._client.get_latest_blockhash.side_effect = httpx.ReadTimeout("slow")

        with pytest.raises(AnchorFetchError):
            await adapter.get_latest_blockhash()


class TestSimulation:
    """Tests for transaction simulation."""

    @pytest.mark.asyncio
    async def test_simulation_report(self, adapter):
        """Test that err, logs and units are carried over."""
        resp = MagicMock()
        resp.value.err = None
        resp.value.logs = ["Program log: ok"]
        resp.value.units_consumed = 4_200
        adapter._client.simulate_transaction.return_value = resp

        report = await adapter.simulate_transaction(make_tx(Hash.new_unique()))

        assert report.err is None
        assert report.logs == ["Program log: ok"]
        assert report.units_consumed == 4_200

    @pytest.mark.asyncio
    async def test_call_failure_becomes_simulation_call_error(self, adapter):
        """Test that an unreachable simulator raises SimulationCallError."""
        adapter._client.simulate_transaction.side_effect = httpx.ConnectError("down")

        with pytest.raises(SimulationCallError):
            await adapter.simulate_transaction(make_tx(Hash.new_unique()))


class TestSendAndConfirm:
    """Tests for submission and confirmation."""

    @pytest.mark.asyncio
    async def test_confirmed_signature_returned(self, adapter):
        """Test the happy path and that confirmation is bounded by the anchor."""
        blockhash = Hash.new_unique()
        adapter._anchor_heights[str(blockhash)] = 777
        signature = Signature.new_unique()
        adapter._client.send_transaction.return_value = MagicMock(value=signature)
        status = MagicMock(err=None, slot=42)
        adapter._client.confirm_transaction.return_value = MagicMock(value=[status])

        result = await adapter.send_and_confirm_transaction(make_tx(blockhash), timeout_seconds=1.0)

        assert result == signature
        kwargs = adapter._client.confirm_transaction.call_args.kwargs
        assert kwargs["last_valid_block_height"] == 777
        assert str(blockhash) not in adapter._anchor_heights

    @pytest.mark.asyncio
    async def test_rejected_send(self, adapter):
        """Test that a rejected send is a SubmissionError."""
        adapter._client.send_transaction.side_effect = httpx.ConnectError("refused")

        with pytest.raises(SubmissionError, match="submission failed"):
            await adapter.send_and_confirm_transaction(make_tx(Hash.new_unique()))

    @pytest.mark.asyncio
    async def test_confirmation_timeout(self, adapter):
        """Test that a slow confirmation is cut off by the timeout."""
        signature = Signature.new_unique()
        adapter._client.send_transaction.return_value = MagicMock(value=signature)

        async def never_confirms(*args, **kwargs):
            await asyncio.sleep(10)

        adapter._client.confirm_transaction.side_effect = never_confirms

        with pytest.raises(SubmissionError, match="not confirmed") as exc_info:
            await adapter.send_and_confirm_transaction(make_tx(Hash.new_unique()), timeout_seconds=0.05)
        assert exc_info.value.signature == str(signature)

    @pytest.mark.asyncio
    async def test_on_chain_failure(self, adapter):
        """Test that a confirmed-but-failed transaction is a SubmissionError."""
        adapter._client.send_transaction.return_value = MagicMock(value=Signature.new_unique())
        status = MagicMock(err={"InstructionError": [2, "Custom(0)"]}, slot=42)
        adapter._client.confirm_transaction.return_value = MagicMock(value=[status])

        with pytest.raises(SubmissionError, match="failed on-chain"):
            await adapter.send_and_confirm_transaction(make_tx(Hash.new_unique()))


class TestBlockhashExpiry:
    """Tests for transactions whose blockhash expires before confirming."""

    @pytest_asyncio.fixture
    async def expiring_adapter(self, test_config):
        """Adapter over a real AsyncClient whose chain has moved past the anchor."""
        adapter = SolanaRpcAdapter(test_config, poll_interval_seconds=0.01)
        client = AsyncClient(test_config.rpc_endpoint)

        blockhash_resp = MagicMock()
        blockhash_resp.value.blockhash = Hash.new_unique()
        blockhash_resp.value.last_valid_block_height = 100
        client.get_latest_blockhash = AsyncMock(return_value=blockhash_resp)

        simulate_resp = MagicMock()
        simulate_resp.value.err = None
        simulate_resp.value.logs = []
        simulate_resp.value.units_consumed = 3_000
        client.simulate_transaction = AsyncMock(return_value=simulate_resp)

        client.send_transaction = AsyncMock(return_value=MagicMock(value=Signature.new_unique()))
        client.get_signature_statuses = AsyncMock(return_value=MagicMock(value=[None]))
        client.get_block_height = AsyncMock(return_value=MagicMock(value=101))

        adapter._client = client
        yield adapter
        await client.close()

    @pytest.mark.asyncio
    async def test_expired_blockhash_becomes_submission_error(self, expiring_adapter):
        """Test that block height passing the anchor is reported as SubmissionError."""
        blockhash = await expiring_adapter.get_latest_blockhash()

        with pytest.raises(SubmissionError, match="expired") as exc_info:
            await expiring_adapter.send_and_confirm_transaction(make_tx(blockhash), timeout_seconds=5.0)

        assert exc_info.value.signature is not None

    @pytest.mark.asyncio
    async def test_expired_blockhash_aborts_batch(self, expiring_adapter, test_signer, test_config):
        """Test that an expired transaction leaves its batch aborted, not submitted."""
        builder = TransactionBuilder(expiring_adapter, test_signer, test_config)
        submitter = TransactionSubmitter(expiring_adapter, builder, test_config)
        owner = test_signer.pubkey
        ix = build_close_instruction(decode_token_account(make_raw_account(owner)), owner)
        batch = Batch(sequence=0, instructions=[ix])

        with pytest.raises(SubmissionError):
            await submitter.submit(batch)

        assert batch.status == BatchStatus.ABORTED
        assert "expired" in batch.error_message
