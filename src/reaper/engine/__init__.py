"""
Engine module.

Handles account scanning and instruction partitioning.
"""

from reaper.engine.scanner import AccountScanner, decode_token_account
from reaper.engine.partitioner import partition_instructions

__all__ = [
    "AccountScanner",
    "decode_token_account",
    "partition_instructions",
]
