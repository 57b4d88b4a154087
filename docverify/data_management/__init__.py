"""Data management package for the verification engine.

Provides schemas and async storage adapters for:
- Certificates - uploaded documents and their status flags
- Verifications - verification attempts and their ordered steps
- Manual reviews - human adjudication work items
- Audit log - the append-only hash chain

Storage adapters:
- CertificateStore
- VerificationStore
- ReviewStore
- AuditStore

All stores are memory-backed with optional JSON persistence; ``Stores``
bundles one of each, rooted at a common data directory.
"""

from docverify.data_management.audit_store import AuditStore
from docverify.data_management.certificate_store import CertificateStore
from docverify.data_management.review_store import ReviewStore
from docverify.data_management.stores import Stores
from docverify.data_management.verification_store import VerificationStore

__all__ = [
    "AuditStore",
    "CertificateStore",
    "ReviewStore",
    "Stores",
    "VerificationStore",
]
