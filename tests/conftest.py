"""
Pytest configuration and shared fixtures for the test suite.
"""

import asyncio
from typing import Any, Dict, List, Optional, Set

import pytest
from solders.hash import Hash
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.transaction import Transaction
from spl.token._layouts import ACCOUNT_LAYOUT

from reaper.config import SPL_TOKEN_PROGRAM_ID, USDC_MINT, ReaperConfig
from reaper.core.errors import (
    AnchorFetchError,
    FetchError,
    SimulationCallError,
    SubmissionError,
)
from reaper.node.interface import LedgerInterface, RawTokenAccount, SimulationReport


TOKEN_PROGRAM = Pubkey.from_string(SPL_TOKEN_PROGRAM_ID)
USDC = Pubkey.from_string(USDC_MINT)


# ============================================================================
# Configuration Fixtures
# ============================================================================

@pytest.fixture
def test_config() -> ReaperConfig:
    """Create a test configuration."""
    return ReaperConfig(
        rpc_endpoint="http://localhost:8899",
        skip_usdc=True,
        max_instructions=22,
        compute_unit_price=220_000,
        compute_unit_limit=350_000,
        confirm_timeout_seconds=5.0,
        dry_run=False,
        log_level="DEBUG",
    )


# ============================================================================
# Test Data Generators
# ============================================================================

def encode_token_account(
    mint: Pubkey,
    owner: Pubkey,
    amount: int,
    state: int = 1,
) -> bytes:
    """Encode a token account the way the token program stores it."""
    return ACCOUNT_LAYOUT.build(dict(
        mint=bytes(mint),
        owner=bytes(owner),
        amount=amount,
        delegate_option=0,
        delegate=bytes(32),
        state=state,
        is_native_option=0,
        is_native=0,
        delegated_amount=0,
        close_authority_option=0,
        close_authority=bytes(32),
    ))


def make_raw_account(
    owner: Pubkey,
    amount: int = 0,
    mint: Optional[Pubkey] = None,
    state: int = 1,
) -> RawTokenAccount:
    """Create a raw token account with a fresh address."""
    return RawTokenAccount(
        address=Pubkey.new_unique(),
        data=encode_token_account(mint or Pubkey.new_unique(), owner, amount, state),
        lamports=2_039_280,
        program_id=TOKEN_PROGRAM,
    )


# ============================================================================
# Mock Ledger Interface
# ============================================================================

class MockLedger(LedgerInterface):
    """
    Mock ledger for testing.

    Failures are keyed by the zero-based index of the call, so a test
    can make the second simulation fail and leave the others alone.
    """

    def __init__(self):
        self.accounts: List[RawTokenAccount] = []
        self.fetch_error: Optional[str] = None
        self.blockhash_error: Optional[str] = None
        self.simulation_errors: Dict[int, Any] = {}
        self.simulation_call_failures: Set[int] = set()
        self.send_failures: Set[int] = set()

        self.calls: List[str] = []
        self.simulated_txs: List[Transaction] = []
        self.sent_txs: List[Transaction] = []
        self.blockhashes: List[Hash] = []

        self._connected = False
        self._in_flight = 0
        self.max_in_flight = 0

    async def connect(self) -> None:
        self._connected = True
        self.calls.append("connect")

    async def disconnect(self) -> None:
        self._connected = False
        self.calls.append("disconnect")

    async def get_token_accounts_by_owner(
        self,
        owner: Pubkey,
        program_id: Pubkey,
    ) -> List[RawTokenAccount]:
        self.calls.append("get_token_accounts_by_owner")
        if self.fetch_error:
            raise FetchError(self.fetch_error)
        return list(self.accounts)

    async def get_latest_blockhash(self) -> Hash:
        self.calls.append("get_latest_blockhash")
        if self.blockhash_error:
            raise AnchorFetchError(self.blockhash_error)
        blockhash = Hash.new_unique()
        self.blockhashes.append(blockhash)
        return blockhash

    async def simulate_transaction(self, tx: Transaction) -> SimulationReport:
        index = len(self.simulated_txs)
        self.simulated_txs.append(tx)
        self.calls.append("simulate_transaction")

        if index in self.simulation_call_failures:
            raise SimulationCallError("simulation endpoint unavailable")
        if index in self.simulation_errors:
            return SimulationReport(
                err=self.simulation_errors[index],
                logs=["Program log: Error: insufficient funds"],
            )
        return SimulationReport(logs=["Program log: ok"], units_consumed=12_000)

    async def send_and_confirm_transaction(
        self,
        tx: Transaction,
        timeout_seconds: float = 60.0,
    ) -> Signature:
        index = len(self.sent_txs)
        self.sent_txs.append(tx)
        self.calls.append("send_and_confirm_transaction")

        self._in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self._in_flight)
        try:
            await asyncio.sleep(0)
            if index in self.send_failures:
                raise SubmissionError("Transaction not confirmed", signature=str(tx.signatures[0]))
            return tx.signatures[0]
        finally:
            self._in_flight -= 1

    def add_account(
        self,
        owner: Pubkey,
        amount: int = 0,
        mint: Optional[Pubkey] = None,
    ) -> RawTokenAccount:
        """Add a token account to the mock."""
        raw = make_raw_account(owner, amount=amount, mint=mint)
        self.accounts.append(raw)
        return raw


@pytest.fixture
def mock_ledger() -> MockLedger:
    """Create a mock ledger."""
    return MockLedger()


# ============================================================================
# Test Signer
# ============================================================================

@pytest.fixture
def test_signer():
    """Create a test signer with a random key."""
    from reaper.tx.signer import generate_test_key
    return generate_test_key()
