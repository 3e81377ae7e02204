"""Domain model for canonical companies and their evidence."""

from __future__ import annotations

from .base import Entity, RedirectableEntity, new_id, utcnow
from .candidate import SourceCandidateRecord
from .company import Company
from .enums import (
    AliasType,
    JobStatus,
    MatchReason,
    MergeStatus,
    SourceId,
    VerificationState,
    Visibility,
)
from .merging import CompanyAlias, MergeCandidate
from .operations import (
    Checkpoint,
    DeadLetterEntry,
    FinancialSnapshot,
    IngestJob,
    RunStats,
)
from .provenance import (
    FieldChange,
    FieldProvenance,
    FieldProvenanceMap,
    ProvenanceRecord,
    cap_field_provenance,
)

__all__ = [
    "AliasType",
    "Checkpoint",
    "Company",
    "CompanyAlias",
    "DeadLetterEntry",
    "Entity",
    "FieldChange",
    "FieldProvenance",
    "FieldProvenanceMap",
    "FinancialSnapshot",
    "IngestJob",
    "JobStatus",
    "MatchReason",
    "MergeCandidate",
    "MergeStatus",
    "ProvenanceRecord",
    "RedirectableEntity",
    "RunStats",
    "SourceCandidateRecord",
    "SourceId",
    "VerificationState",
    "Visibility",
    "cap_field_provenance",
    "new_id",
    "utcnow",
]
