"""
Account Scanner - discovers token accounts and plans burn/close instructions.

Lists every SPL token account owned by the operator wallet and turns each one
into a burn instruction (when it still holds tokens) followed by a close.
"""

from datetime import datetime
from typing import List, Optional, Tuple

import structlog
from construct import ConstructError
from solders.instruction import Instruction
from solders.pubkey import Pubkey
from spl.token._layouts import ACCOUNT_LAYOUT
from spl.token.instructions import BurnParams, CloseAccountParams, burn, close_account

from reaper.config import SPL_TOKEN_PROGRAM_ID, USDC_MINT, ReaperConfig, get_config
from reaper.core.account import AccountState, AssetAccountRecord
from reaper.core.errors import DecodeError
from reaper.node.interface import LedgerInterface, RawTokenAccount

logger = structlog.get_logger(__name__)

TOKEN_PROGRAM_ID = Pubkey.from_string(SPL_TOKEN_PROGRAM_ID)
USDC_MINT_ID = Pubkey.from_string(USDC_MINT)


def decode_token_account(raw: RawTokenAccount) -> AssetAccountRecord:
    """
    Decode raw SPL token account bytes into a record.

    Args:
        raw: Account as returned by the node

    Returns:
        Decoded account record

    Raises:
        DecodeError: If the bytes do not hold a token account
    """
    if len(raw.data) < ACCOUNT_LAYOUT.sizeof():
        raise DecodeError(
            f"Account {raw.address} has {len(raw.data)} bytes, "
            f"expected {ACCOUNT_LAYOUT.sizeof()}",
            address=str(raw.address),
        )

    try:
        parsed = ACCOUNT_LAYOUT.parse(raw.data)
        state = AccountState(parsed.state)
    except (ConstructError, ValueError) as e:
        raise DecodeError(
            f"Failed to unpack token account {raw.address}: {e}",
            address=str(raw.address),
        ) from e

    if state == AccountState.UNINITIALIZED:
        raise DecodeError(
            f"Token account {raw.address} is not initialized",
            address=str(raw.address),
        )

    return AssetAccountRecord(
        address=raw.address,
        mint=Pubkey(parsed.mint),
        owner=Pubkey(parsed.owner),
        amount=parsed.amount,
        state=state,
        lamports=raw.lamports,
        program_id=raw.program_id or TOKEN_PROGRAM_ID,
    )


def build_burn_instruction(record: AssetAccountRecord, authority: Pubkey) -> Instruction:
    """Burn the full scanned balance of an account."""
    return burn(
        BurnParams(
            program_id=TOKEN_PROGRAM_ID,
            account=record.address,
            mint=record.mint,
            owner=authority,
            amount=record.amount,
        )
    )


def build_close_instruction(record: AssetAccountRecord, authority: Pubkey) -> Instruction:
    """Close an account, returning its rent to the authority."""
    return close_account(
        CloseAccountParams(
            program_id=TOKEN_PROGRAM_ID,
            account=record.address,
            dest=authority,
            owner=authority,
        )
    )


class AccountScanner:
    """
    Scans the ledger for the operator's token accounts.

    Responsibilities:
    - Query token accounts owned by the wallet
    - Decode each account, failing on malformed data
    - Apply the USDC skip policy
    - Emit burn (if needed) and close instructions in scan order
    """

    def __init__(
        self,
        node: LedgerInterface,
        config: Optional[ReaperConfig] = None,
    ):
        """
        Initialize the account scanner.

        Args:
            node: Ledger interface for account queries
            config: Reaper configuration
        """
        self.node = node
        self.config = config or get_config()

        # Statistics
        self._scan_count = 0
        self._last_scan_time: Optional[datetime] = None
        self._accounts_found = 0
        self._accounts_skipped = 0
        self._burn_count = 0
        self._close_count = 0

    async def scan_accounts(self, owner: Pubkey) -> Tuple[List[AssetAccountRecord], int]:
        """
        Fetch, decode and filter the wallet's token accounts.

        Args:
            owner: Wallet whose accounts are listed

        Returns:
            Tuple of (records to process, number of accounts skipped)

        Raises:
            FetchError: If the accounts cannot be listed
            DecodeError: If any account is malformed
        """
        self._scan_count += 1
        self._last_scan_time = datetime.utcnow()

        logger.info("fetching_token_accounts", owner=str(owner))

        raw_accounts = await self.node.get_token_accounts_by_owner(owner, TOKEN_PROGRAM_ID)
        self._accounts_found = len(raw_accounts)

        if not raw_accounts:
            logger.info("no_token_accounts_found", owner=str(owner))
            self._accounts_skipped = 0
            return [], 0

        logger.info("token_accounts_found", count=len(raw_accounts))

        records = []
        skipped = 0
        for raw in raw_accounts:
            record = decode_token_account(raw)

            if self.config.skip_usdc and record.mint == USDC_MINT_ID:
                logger.info("skipping_usdc_account", account=str(record.address))
                skipped += 1
                continue

            if record.is_frozen:
                logger.warning("frozen_account", account=str(record.address), mint=str(record.mint))

            records.append(record)

        self._accounts_skipped = skipped
        return records, skipped

    def build_instructions(
        self,
        records: List[AssetAccountRecord],
        owner: Pubkey,
    ) -> List[Instruction]:
        """
        Turn account records into burn/close instructions.

        Each record yields a burn (only if its balance is positive)
        immediately followed by a close.
        """
        instructions: List[Instruction] = []

        for record in records:
            if record.has_balance:
                logger.info(
                    "burning_tokens",
                    account=str(record.address),
                    mint=str(record.mint),
                    amount=record.amount,
                )
                instructions.append(build_burn_instruction(record, owner))
                self._burn_count += 1

            logger.info("closing_account", account=str(record.address))
            instructions.append(build_close_instruction(record, owner))
            self._close_count += 1

        return instructions

    async def scan(self, owner: Pubkey) -> List[Instruction]:
        """
        Scan the wallet and return the ordered instruction list.

        Raises:
            FetchError: If the accounts cannot be listed
            DecodeError: If any account is malformed
        """
        records, _ = await self.scan_accounts(owner)
        instructions = self.build_instructions(records, owner)

        logger.info(
            "scan_complete",
            accounts=len(records),
            instructions=len(instructions),
        )
        return instructions

    @property
    def accounts_found(self) -> int:
        return self._accounts_found

    @property
    def accounts_skipped(self) -> int:
        return self._accounts_skipped

    def get_stats(self) -> dict:
        """Get scanner statistics."""
        return {
            "scan_count": self._scan_count,
            "last_scan_time": self._last_scan_time.isoformat() if self._last_scan_time else None,
            "accounts_found": self._accounts_found,
            "accounts_skipped": self._accounts_skipped,
            "burn_instructions": self._burn_count,
            "close_instructions": self._close_count,
        }
