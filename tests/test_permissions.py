"""
Tests for `domain/permissions.py`.
"""

from __future__ import annotations

import pytest

from domain.permissions import CAPABILITIES, Capability, StaffRole, allowed_roles, is_allowed


def test_every_capability_has_an_entry() -> None:
    assert set(CAPABILITIES) == set(Capability)


@pytest.mark.parametrize(
    "capability",
    [
        Capability.LINK_EXTERNAL_INVOICE,
        Capability.RESTORE_DELETED_SALE,
        Capability.SOFT_DELETE_SALE,
        Capability.FIX_SALE_MARGIN,
        Capability.FIX_SALE_VAT,
    ],
)
def test_superadmin_only_capabilities(capability: Capability) -> None:
    """Verify destructive ledger operations are limited to superadmins."""

    assert allowed_roles(capability) == frozenset({StaffRole.SUPERADMIN})


def test_back_office_roles() -> None:
    """Verify dismiss/restore is open to admins but allocation is not."""

    assert is_allowed(StaffRole.ADMIN, Capability.DISMISS_UNALLOCATED)
    assert is_allowed(StaffRole.ADMIN, Capability.RESTORE_DISMISSED)
    assert not is_allowed(StaffRole.ADMIN, Capability.ALLOCATE_SALE)
    assert is_allowed(StaffRole.OPERATIONS, Capability.ALLOCATE_SALE)
    assert is_allowed(StaffRole.FOUNDER, Capability.SYNC_PAYMENT_STATUS)
    assert not is_allowed(StaffRole.FINANCE, Capability.RECALCULATE_MARGINS)
    assert not is_allowed(StaffRole.SHOPPER, Capability.VIEW_UNALLOCATED)


def test_every_role_may_claim() -> None:
    for role in StaffRole:
        assert is_allowed(role, Capability.CLAIM_SALE)
        assert is_allowed(role, Capability.VIEW_CLAIMABLE)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("superadmin", StaffRole.SUPERADMIN),
        (" Operations ", StaffRole.OPERATIONS),
        ("owner", StaffRole.SHOPPER),
        (None, StaffRole.SHOPPER),
        ("", StaffRole.SHOPPER),
    ],
)
def test_parse_role_defaults_to_least_privilege(raw, expected: StaffRole) -> None:
    assert StaffRole.parse(raw) == expected
