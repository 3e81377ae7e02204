"""Defaults for duplicate scans."""

from __future__ import annotations

from dataclasses import dataclass

from .env import env_int

DEFAULT_MIN_CONFIDENCE = 50
DEFAULT_MAX_BLOCK_SIZE = 200


@dataclass(frozen=True, slots=True)
class DedupConfig:
    min_confidence: int = DEFAULT_MIN_CONFIDENCE
    max_block_size: int = DEFAULT_MAX_BLOCK_SIZE


def get_dedup_config() -> DedupConfig:
    return DedupConfig(
        min_confidence=env_int("DEDUP_MIN_CONFIDENCE", DEFAULT_MIN_CONFIDENCE),
        max_block_size=env_int("DEDUP_MAX_BLOCK_SIZE", DEFAULT_MAX_BLOCK_SIZE),
    )
