"""
Ledger Integration Layer.

Provides abstracted access to Solana account data and transaction submission.
"""

from reaper.node.interface import LedgerInterface, RawTokenAccount, SimulationReport
from reaper.node.solana_rpc import SolanaRpcAdapter

__all__ = [
    "LedgerInterface",
    "RawTokenAccount",
    "SimulationReport",
    "SolanaRpcAdapter",
]
