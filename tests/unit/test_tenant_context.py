"""Tenant id normalization and scoping, plus id generation."""

import pytest

from hrflow.core.tenant_context import (
    TENANT_ID_MAX_LENGTH,
    get_tenant_id,
    normalize_tenant_id,
    tenant_scope,
)
from hrflow.shared.utils.generators import generate_cuid


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("acme", "acme"),
        ("  acme-eu_1 ", "acme-eu_1"),
        ("", None),
        ("   ", None),
        (None, None),
        ("bad tenant!", None),
        ("acme'; drop", None),
        ("a" * (TENANT_ID_MAX_LENGTH + 1), None),
    ],
)
def test_normalize_tenant_id(raw, expected) -> None:
    assert normalize_tenant_id(raw) == expected


def test_tenant_scope_restores_outer_tenant() -> None:
    assert get_tenant_id() is None
    with tenant_scope("acme"):
        assert get_tenant_id() == "acme"
        with tenant_scope(None):
            assert get_tenant_id() is None
        assert get_tenant_id() == "acme"
    assert get_tenant_id() is None


def test_tenant_scope_resets_when_the_block_raises() -> None:
    with pytest.raises(RuntimeError):
        with tenant_scope("acme"):
            raise RuntimeError("boom")
    assert get_tenant_id() is None


def test_generated_ids_are_distinct_tenant_safe_strings() -> None:
    ids = {generate_cuid() for _ in range(200)}
    assert len(ids) == 200
    assert all(normalize_tenant_id(i) == i for i in ids)
