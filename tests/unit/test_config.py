"""Tests for Settings validation and the cached get_settings()."""

import pytest
from pydantic import ValidationError

from hrflow.core.config import Settings, get_settings


def test_defaults() -> None:
    settings = Settings(_env_file=None)
    assert settings.tenant_header_name == "X-Tenant-ID"
    assert settings.approval_decision_retry_attempts == 3
    assert settings.approval_allow_self_approval is False
    assert settings.approval_webhook_url is None


@pytest.mark.parametrize(
    ("overrides", "message"),
    [
        ({"approval_decision_retry_attempts": 0}, "APPROVAL_DECISION_RETRY_ATTEMPTS"),
        ({"approval_timeout_sweep_batch_size": 0}, "APPROVAL_TIMEOUT_SWEEP_BATCH_SIZE"),
        ({"approval_default_organization_levels": 0}, "APPROVAL_DEFAULT_ORGANIZATION_LEVELS"),
        ({"org_max_hierarchy_depth": 0}, "ORG_MAX_HIERARCHY_DEPTH"),
        ({"approval_webhook_url": "ftp://hooks"}, "APPROVAL_WEBHOOK_URL"),
        ({"approval_webhook_timeout_seconds": 0}, "APPROVAL_WEBHOOK_TIMEOUT_SECONDS"),
    ],
)
def test_invalid_engine_settings_rejected(overrides: dict, message: str) -> None:
    with pytest.raises(ValidationError, match=message):
        Settings(_env_file=None, **overrides)


def test_get_settings_reads_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("APPROVAL_ALLOW_SELF_APPROVAL", "true")
    monkeypatch.setenv("TENANT_HEADER_NAME", "X-Org")
    get_settings.cache_clear()
    try:
        settings = get_settings()
        assert settings.approval_allow_self_approval is True
        assert settings.tenant_header_name == "X-Org"
        assert get_settings() is settings
    finally:
        get_settings.cache_clear()
