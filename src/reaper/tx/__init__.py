"""
Transaction module.

Handles transaction construction, signing, simulation and submission.
"""

from reaper.tx.builder import TransactionBuilder, TransactionBuildError
from reaper.tx.signer import TransactionSigner
from reaper.tx.submitter import TransactionSubmitter

__all__ = [
    "TransactionBuilder",
    "TransactionBuildError",
    "TransactionSigner",
    "TransactionSubmitter",
]
