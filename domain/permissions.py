"""
Domain: Staff roles and the capability table.

Every privileged operation is checked against this single table once per
request. Nothing else in the codebase compares role strings.
"""

from __future__ import annotations

from enum import Enum
from typing import FrozenSet, Mapping, Optional


class StaffRole(str, Enum):
    SUPERADMIN = "superadmin"
    FOUNDER = "founder"
    OPERATIONS = "operations"
    ADMIN = "admin"
    FINANCE = "finance"
    SHOPPER = "shopper"

    @staticmethod
    def parse(value: Optional[str]) -> "StaffRole":
        """Resolve a stored role string; unknown or missing roles get the least privilege."""

        if value:
            try:
                return StaffRole(value.strip().lower())
            except ValueError:
                pass
        return StaffRole.SHOPPER


class Capability(str, Enum):
    LINK_EXTERNAL_INVOICE = "link_external_invoice"
    RESTORE_DELETED_SALE = "restore_deleted_sale"
    SOFT_DELETE_SALE = "soft_delete_sale"
    FIX_SALE_MARGIN = "fix_sale_margin"
    FIX_SALE_VAT = "fix_sale_vat"
    EDIT_SALE_ECONOMICS = "edit_sale_economics"
    DISMISS_UNALLOCATED = "dismiss_unallocated"
    RESTORE_DISMISSED = "restore_dismissed"
    VIEW_UNALLOCATED = "view_unallocated"
    ALLOCATE_SALE = "allocate_sale"
    SYNC_PAYMENT_STATUS = "sync_payment_status"
    RECALCULATE_MARGINS = "recalculate_margins"
    CLAIM_SALE = "claim_sale"
    VIEW_CLAIMABLE = "view_claimable"


_ALL_ROLES = frozenset(StaffRole)
_SUPERADMIN = frozenset({StaffRole.SUPERADMIN})
_OPERATIONS_LEADS = frozenset({StaffRole.SUPERADMIN, StaffRole.OPERATIONS, StaffRole.FOUNDER})
_BACK_OFFICE = _OPERATIONS_LEADS | {StaffRole.ADMIN}

CAPABILITIES: Mapping[Capability, FrozenSet[StaffRole]] = {
    Capability.LINK_EXTERNAL_INVOICE: _SUPERADMIN,
    Capability.RESTORE_DELETED_SALE: _SUPERADMIN,
    Capability.SOFT_DELETE_SALE: _SUPERADMIN,
    Capability.FIX_SALE_MARGIN: _SUPERADMIN,
    Capability.FIX_SALE_VAT: _SUPERADMIN,
    Capability.EDIT_SALE_ECONOMICS: _BACK_OFFICE,
    Capability.DISMISS_UNALLOCATED: _BACK_OFFICE,
    Capability.RESTORE_DISMISSED: _BACK_OFFICE,
    Capability.VIEW_UNALLOCATED: _BACK_OFFICE,
    Capability.ALLOCATE_SALE: _OPERATIONS_LEADS,
    Capability.SYNC_PAYMENT_STATUS: _OPERATIONS_LEADS,
    Capability.RECALCULATE_MARGINS: _OPERATIONS_LEADS,
    Capability.CLAIM_SALE: _ALL_ROLES,
    Capability.VIEW_CLAIMABLE: _ALL_ROLES,
}


def is_allowed(role: StaffRole, capability: Capability) -> bool:
    return role in CAPABILITIES.get(capability, frozenset())


def allowed_roles(capability: Capability) -> FrozenSet[StaffRole]:
    return CAPABILITIES.get(capability, frozenset())


__all__ = [
    "CAPABILITIES",
    "Capability",
    "StaffRole",
    "allowed_roles",
    "is_allowed",
]
