from __future__ import annotations

import pytest

from firmrecon.config import (
    ConfigurationError,
    MissingConfigurationError,
    get_anaf_config,
    get_dedup_config,
    get_eu_funds_config,
    get_ingestion_config,
    get_seap_config,
    get_third_party_config,
    optional_env,
    require_env_vars,
)
from firmrecon.config.anaf import ANAF_VERIFY_URL
from firmrecon.config.env import env_float, env_int


def test_require_env_vars_returns_stripped_values(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("EXAMPLE_VAR", " value ")

    result = require_env_vars(["EXAMPLE_VAR"])

    assert result["EXAMPLE_VAR"] == "value"


def test_require_env_vars_lists_every_missing_name(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("MISSING_B", raising=False)
    monkeypatch.setenv("MISSING_A", "   ")

    with pytest.raises(MissingConfigurationError) as exc:
        require_env_vars(["MISSING_B", "MISSING_A"])

    assert "MISSING_A, MISSING_B" in str(exc.value)


def test_optional_env_falls_back_on_blank(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("BLANK_VAR", "")

    assert optional_env("BLANK_VAR", "fallback") == "fallback"


def test_numeric_env_parsing(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SOME_INT", "12")
    monkeypatch.setenv("SOME_FLOAT", "2.5")
    monkeypatch.setenv("BAD_NUMBER", "twelve")

    assert env_int("SOME_INT", 1) == 12
    assert env_float("SOME_FLOAT", 1.0) == 2.5
    assert env_int("UNSET_INT_FOR_TEST", 7) == 7
    with pytest.raises(ConfigurationError, match="BAD_NUMBER"):
        env_int("BAD_NUMBER", 1)
    with pytest.raises(ConfigurationError):
        env_float("BAD_NUMBER", 1.0)


def test_ingestion_config_reads_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("INGEST_BATCH_LIMIT", "25")
    monkeypatch.setenv("INGEST_CONCURRENCY", "2")
    monkeypatch.delenv("INGEST_TIME_BUDGET_MS", raising=False)

    config = get_ingestion_config()

    assert config.batch_limit == 25
    assert config.concurrency == 2
    assert config.time_budget_ms == 50_000


def test_dedup_config_rejects_garbage(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DEDUP_MIN_CONFIDENCE", "high")

    with pytest.raises(ConfigurationError):
        get_dedup_config()


def test_anaf_config_defaults_and_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("ANAF_API_URL", raising=False)
    monkeypatch.setenv("ANAF_VERIFICATION_TTL_DAYS", "7")

    config = get_anaf_config()

    assert config.verify_url == ANAF_VERIFY_URL
    assert config.verification_ttl_days == 7
    assert config.resilience.retry.total == 0


def test_seap_config_requires_url(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("SEAP_CSV_URL", raising=False)

    with pytest.raises(MissingConfigurationError, match="SEAP_CSV_URL"):
        get_seap_config()

    monkeypatch.setenv("SEAP_CSV_URL", "https://data.example.ro/seap.csv")
    config = get_seap_config()
    assert config.format == "csv"
    assert config.resilience.cache is None
    assert config.resilience.retry.total == 2


def test_eu_funds_config_prefers_csv(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("EU_FUNDS_CSV_URL", raising=False)
    monkeypatch.delenv("EU_FUNDS_JSON_URL", raising=False)

    with pytest.raises(MissingConfigurationError):
        get_eu_funds_config()

    monkeypatch.setenv("EU_FUNDS_JSON_URL", "https://data.example.ro/funds.json")
    assert get_eu_funds_config().format == "json"
    monkeypatch.setenv("EU_FUNDS_CSV_URL", "https://data.example.ro/funds.csv")
    assert get_eu_funds_config().format == "csv"


def test_third_party_config_is_rate_limited(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("THIRD_PARTY_API_URL", "https://api.example.ro/companies")
    monkeypatch.setenv("THIRD_PARTY_API_KEY", "secret")

    config = get_third_party_config()

    assert config.api_key == "secret"
    assert config.resilience.ratelimit is not None
    assert config.resilience.cache is not None
