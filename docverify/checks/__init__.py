"""Check providers: the boundary to external verification authorities."""

from docverify.checks.base_provider import CheckProvider, StaticCheckProvider
from docverify.checks.mock_providers import (
    MockAadhaarProvider,
    MockDigitalAuthenticityProvider,
    MockForensicProvider,
    MockIssuerPortalProvider,
    MockPanProvider,
    build_mock_providers,
)

__all__ = [
    "CheckProvider",
    "StaticCheckProvider",
    "MockAadhaarProvider",
    "MockDigitalAuthenticityProvider",
    "MockForensicProvider",
    "MockIssuerPortalProvider",
    "MockPanProvider",
    "build_mock_providers",
]
