"""
Token account record.

Represents a single SPL token account as it looked at scan time.
"""

from dataclasses import dataclass
from enum import IntEnum

from solders.pubkey import Pubkey


class AccountState(IntEnum):
    """On-chain state byte of an SPL token account."""
    UNINITIALIZED = 0
    INITIALIZED = 1
    FROZEN = 2


@dataclass(frozen=True)
class AssetAccountRecord:
    """
    Snapshot of a token account owned by the operator wallet.

    The snapshot is taken once during the scan and never refreshed, so the
    burn amount is whatever the balance was when the account was listed.

    Attributes:
        address: Address of the token account
        mint: Mint (asset type) the account holds
        owner: Wallet that owns the account
        amount: Raw token balance (u64, base units)
        state: Account state from the layout
        lamports: Rent deposit held by the account
        program_id: Token program that owns the account
    """

    address: Pubkey
    mint: Pubkey
    owner: Pubkey
    amount: int
    state: AccountState = AccountState.INITIALIZED
    lamports: int = 0
    program_id: Pubkey = Pubkey.default()

    @property
    def has_balance(self) -> bool:
        """Check if the account still holds tokens that must be burned."""
        return self.amount > 0

    @property
    def is_frozen(self) -> bool:
        return self.state == AccountState.FROZEN

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "address": str(self.address),
            "mint": str(self.mint),
            "owner": str(self.owner),
            "amount": self.amount,
            "state": self.state.name.lower(),
            "lamports": self.lamports,
            "program_id": str(self.program_id),
        }

    def __repr__(self) -> str:
        return (
            f"AssetAccountRecord(address={str(self.address)[:8]}..., "
            f"mint={str(self.mint)[:8]}..., amount={self.amount})"
        )
