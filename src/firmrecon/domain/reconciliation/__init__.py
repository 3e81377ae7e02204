"""Company reconciliation: identity resolution, field merging, duplicate review."""

from __future__ import annotations

from .apply_merge import MergeResult, apply_merge, choose_canonical
from .contracts import (
    ConflictEntityResolution,
    EntityResolution,
    MatchKind,
    NewEntityResolution,
    ResolutionStatus,
    ResolvedEntityResolution,
)
from .dedup import DedupScanner, PairScore, score_pair
from .merge import CompanyPatch, MergeEngine, MergeOutcome, PatchMetadata, build_company_patch
from .resolve import IdentityResolver, identity_lookup_keys
from .review import DedupScanResult, approve_candidate, reject_candidate, scan_duplicates

__all__ = [
    "CompanyPatch",
    "ConflictEntityResolution",
    "DedupScanResult",
    "DedupScanner",
    "EntityResolution",
    "IdentityResolver",
    "MatchKind",
    "MergeEngine",
    "MergeOutcome",
    "MergeResult",
    "NewEntityResolution",
    "PairScore",
    "PatchMetadata",
    "ResolutionStatus",
    "ResolvedEntityResolution",
    "apply_merge",
    "approve_candidate",
    "build_company_patch",
    "choose_canonical",
    "identity_lookup_keys",
    "reject_candidate",
    "scan_duplicates",
    "score_pair",
]
