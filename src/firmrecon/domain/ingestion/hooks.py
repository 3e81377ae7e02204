"""Best-effort work triggered after a company write has been committed."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Final

from firmrecon.domain.model import SourceId
from firmrecon.domain.reconciliation.policy import HIGH_CONFIDENCE

if TYPE_CHECKING:
    from uuid import UUID

    from firmrecon.domain.model import Company, ProvenanceRecord
    from firmrecon.domain.ports import ReconciliationUnitOfWork

log = logging.getLogger(__name__)

type PostIngestionHook = Callable[[UUID], None]

EVIDENCE_WEIGHTS: Final[dict[SourceId, float]] = {
    SourceId.SEAP: 1.2,
    SourceId.EU_FUNDS: 1.2,
}
EVIDENCE_BASE: Final[int] = 30
EVIDENCE_POINTS: Final[int] = 10


@dataclass(slots=True)
class PostIngestionHooks:
    """Named hooks run in registration order; a failing hook never affects the others."""

    hooks: list[tuple[str, PostIngestionHook]] = field(default_factory=list)

    def register(self, name: str, hook: PostIngestionHook) -> None:
        self.hooks.append((name, hook))

    def run(self, company_id: UUID) -> list[str]:
        failed: list[str] = []
        for name, hook in self.hooks:
            try:
                hook(company_id)
            except Exception:
                log.exception("Post-ingestion hook %s failed for %s", name, company_id)
                failed.append(name)
        return failed


def evidence_confidence(records: list[ProvenanceRecord]) -> int:
    """Confidence earned from independent evidence alone, capped below verification."""

    weighted = sum(EVIDENCE_WEIGHTS.get(record.source_id, 1.0) for record in records)
    return min(HIGH_CONFIDENCE, EVIDENCE_BASE + round(EVIDENCE_POINTS * weighted))


def recompute_data_confidence(company: Company, records: list[ProvenanceRecord]) -> bool:
    score = evidence_confidence(records)
    if score <= company.data_confidence:
        return False
    company.data_confidence = score
    company.touch()
    return True


def confidence_hook(
    unit_of_work_factory: Callable[[], ReconciliationUnitOfWork],
) -> PostIngestionHook:
    def hook(company_id: UUID) -> None:
        with unit_of_work_factory() as uow:
            repositories = uow.repositories
            company = repositories.companies.get(company_id)
            if company is None:
                return
            if recompute_data_confidence(
                company, repositories.provenance.list_for_company(company_id)
            ):
                uow.commit()

    return hook


def default_hooks(
    unit_of_work_factory: Callable[[], ReconciliationUnitOfWork],
) -> PostIngestionHooks:
    hooks = PostIngestionHooks()
    hooks.register("data_confidence", confidence_hook(unit_of_work_factory))
    return hooks
