"""
Configuration management for the token account reaper.

Supports configuration via environment variables and .env files.
"""

from enum import Enum
from typing import Optional

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


# Mints and programs the reaper knows by address
USDC_MINT = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"
SPL_TOKEN_PROGRAM_ID = "TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA"

SOLSCAN_TX_URL = "https://solscan.io/tx/{signature}"


class CommitmentLevel(str, Enum):
    """Solana commitment levels accepted by the RPC node."""
    PROCESSED = "processed"
    CONFIRMED = "confirmed"
    FINALIZED = "finalized"


class ReaperConfig(BaseSettings):
    """
    Configuration settings for the token account reaper.

    Settings are read from unprefixed environment variables
    (RPC_ENDPOINT, PRIVATE_KEY, MAX_INSTRUCTIONS, ...) and from a .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # RPC settings
    rpc_endpoint: Optional[str] = Field(
        default=None,
        description="Solana JSON-RPC endpoint URL"
    )
    rpc_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Timeout for a single RPC request"
    )
    commitment: CommitmentLevel = Field(
        default=CommitmentLevel.CONFIRMED,
        description="Commitment used for reads and confirmation"
    )

    # Wallet settings
    private_key: Optional[SecretStr] = Field(
        default=None,
        description="Base58-encoded 64-byte secret key of the wallet"
    )
    keypair_path: Optional[str] = Field(
        default=None,
        description="Path to a Solana CLI keypair file (alternative to private_key)"
    )

    # Scan policy
    skip_usdc: bool = Field(
        default=True,
        description="Leave USDC token accounts untouched"
    )

    # Batching and fee parameters
    max_instructions: int = Field(
        default=22,
        ge=1,
        description="Maximum burn/close instructions per transaction"
    )
    compute_unit_price: int = Field(
        default=220_000,
        ge=0,
        description="Compute unit price in micro-lamports"
    )
    compute_unit_limit: int = Field(
        default=350_000,
        ge=1,
        le=1_400_000,
        description="Compute unit limit per transaction"
    )

    # Submission settings
    confirm_timeout_seconds: float = Field(
        default=60.0,
        gt=0,
        description="Maximum time to wait for a transaction to confirm"
    )
    dry_run: bool = Field(
        default=False,
        description="Build, sign and simulate batches without submitting them"
    )

    # Logging settings
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)"
    )
    log_json: bool = Field(
        default=False,
        description="Output logs in JSON format"
    )

    @property
    def private_key_value(self) -> Optional[str]:
        """Get the raw private key string, if configured."""
        if self.private_key is None:
            return None
        return self.private_key.get_secret_value()


# Global config instance
_config: Optional[ReaperConfig] = None


def get_config() -> ReaperConfig:
    """Get or create the global configuration instance."""
    global _config
    if _config is None:
        _config = ReaperConfig()
    return _config


def set_config(config: ReaperConfig) -> None:
    """Set the global configuration instance."""
    global _config
    _config = config
