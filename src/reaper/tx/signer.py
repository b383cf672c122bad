"""
Transaction Signer - handles transaction signing.

Holds the operator keypair and signs transactions with it.
"""

import json
from pathlib import Path
from typing import Optional

import structlog
from solders.hash import Hash
from solders.keypair import Keypair
from solders.message import Message
from solders.pubkey import Pubkey
from solders.transaction import Transaction

from reaper.config import ReaperConfig, get_config

logger = structlog.get_logger(__name__)


class TransactionSigner:
    """
    Handles transaction signing with the operator's key.

    Supports loading keys from:
    - Base58-encoded 64-byte secret (Phantom/Solflare export format)
    - Solana CLI keypair file (JSON array of 64 ints)

    The key is read-only for the lifetime of the signer.
    """

    def __init__(self, config: Optional[ReaperConfig] = None):
        """
        Initialize the transaction signer.

        Args:
            config: Reaper configuration
        """
        self.config = config or get_config()
        self._keypair: Optional[Keypair] = None

    def load_key_from_base58(self, secret: str) -> None:
        """
        Load signing key from a base58 string.

        Args:
            secret: Base58-encoded 64-byte secret key
        """
        try:
            self._keypair = Keypair.from_base58_string(secret.strip())
        except ValueError as e:
            raise ValueError(f"Failed to decode base58 private key: {e}") from e

        logger.info("signing_key_loaded", pubkey=str(self.pubkey))

    def load_key_from_file(self, key_path: str) -> None:
        """
        Load signing key from a Solana CLI keypair file.

        Args:
            key_path: Path to the JSON keypair file
        """
        path = Path(key_path).expanduser()
        if not path.exists():
            raise FileNotFoundError(f"Keypair file not found: {key_path}")

        payload = json.loads(path.read_text(encoding="utf-8"))
        if not isinstance(payload, list):
            raise ValueError(f"Unsupported keypair format (expected JSON array): {key_path}")

        raw = bytes(int(x) for x in payload)
        if len(raw) != 64:
            raise ValueError(f"Keypair must be 64 bytes (got {len(raw)}): {key_path}")

        self._keypair = Keypair.from_bytes(raw)
        logger.info("signing_key_loaded", path=key_path, pubkey=str(self.pubkey))

    def load_from_config(self) -> None:
        """Load signing key from configuration."""
        if self.config.private_key_value:
            self.load_key_from_base58(self.config.private_key_value)
        elif self.config.keypair_path:
            self.load_key_from_file(self.config.keypair_path)
        else:
            raise ValueError("No signing key configured")

    @property
    def pubkey(self) -> Optional[Pubkey]:
        """Get the operator wallet address."""
        return self._keypair.pubkey() if self._keypair else None

    @property
    def is_loaded(self) -> bool:
        """Check if a signing key is loaded."""
        return self._keypair is not None

    def sign_transaction(self, message: Message, blockhash: Hash) -> Transaction:
        """
        Sign a message, producing a complete transaction.

        Args:
            message: Compiled message with the operator as fee payer
            blockhash: Recent blockhash the message was compiled with

        Returns:
            Signed transaction
        """
        if not self._keypair:
            raise RuntimeError("No signing key loaded")

        tx = Transaction([self._keypair], message, blockhash)
        logger.debug("transaction_signed", signature=str(tx.signatures[0]))
        return tx


def generate_test_key() -> TransactionSigner:
    """
    Generate a new random signing key for testing.

    WARNING: Do not use in production. The key is not persisted.

    Returns:
        TransactionSigner with a new random key
    """
    signer = TransactionSigner(ReaperConfig())
    signer._keypair = Keypair()

    logger.warning("test_key_generated", pubkey=str(signer.pubkey))

    return signer
