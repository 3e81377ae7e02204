"""Ports for the external tax-registry verification and financial statement services."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from firmrecon.domain.model import VerificationState

if TYPE_CHECKING:
    from collections.abc import Sequence

    from firmrecon.domain.reconciliation.financials import FinancialYear


@dataclass(slots=True, kw_only=True)
class VerificationData:
    """Normalized answer from the tax registry for one CUI."""

    cui: str
    official_name: str | None = None
    address: str | None = None
    is_active: bool = False
    is_vat_registered: bool = False
    registration_date: date | None = None
    confidence: int = 0
    verified_at: datetime
    raw: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "cui": self.cui,
            "official_name": self.official_name,
            "address": self.address,
            "is_active": self.is_active,
            "is_vat_registered": self.is_vat_registered,
            "registration_date": self.registration_date.isoformat()
            if self.registration_date
            else None,
            "confidence": self.confidence,
            "verified_at": self.verified_at.isoformat(),
            "raw": self.raw,
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> VerificationData:
        registration = payload.get("registration_date")
        return cls(
            cui=str(payload["cui"]),
            official_name=payload.get("official_name"),
            address=payload.get("address"),
            is_active=bool(payload.get("is_active", False)),
            is_vat_registered=bool(payload.get("is_vat_registered", False)),
            registration_date=date.fromisoformat(registration) if registration else None,
            confidence=int(payload.get("confidence", 0)),
            verified_at=datetime.fromisoformat(payload["verified_at"]),
            raw=payload.get("raw") or {},
        )


@dataclass(slots=True, kw_only=True)
class VerificationOutcome:
    """Terminal state of one verification attempt.

    ``retryable`` marks outcomes worth another attempt: rate limiting and transient
    upstream failures. ``cached`` is set when no request was made.
    """

    state: VerificationState
    cui: str
    data: VerificationData | None = None
    error: str | None = None
    retryable: bool = False
    cached: bool = False
    retry_after: float | None = None

    @property
    def succeeded(self) -> bool:
        return self.state is VerificationState.SUCCESS and self.data is not None


@runtime_checkable
class CompanyVerifier(Protocol):
    def verify(self, cui: str) -> VerificationOutcome: ...


@runtime_checkable
class FinancialStatementsSource(Protocol):
    def fetch(self, cui: str) -> Sequence[FinancialYear]:
        """Return parsed yearly statements; raises ``TransientError`` on retryable failures."""
        ...
