"""Tamper-evident audit log."""

from docverify.audit.hash_chain import (
    AuditChain,
    ChainVerification,
    canonicalize,
    compute_hash,
    verify_chain,
    verify_entries,
)

__all__ = [
    "AuditChain",
    "ChainVerification",
    "canonicalize",
    "compute_hash",
    "verify_chain",
    "verify_entries",
]
