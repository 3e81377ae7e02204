"""ANAF tax-registry adapters."""

from __future__ import annotations

from .client import AnafAPIError, AnafFinancialsClient, AnafVerificationClient
from .parse import parse_financials, parse_verification

__all__ = [
    "AnafAPIError",
    "AnafFinancialsClient",
    "AnafVerificationClient",
    "parse_financials",
    "parse_verification",
]
