"""
Tests for `integrations/identity.py` with a mocked Supabase Auth client.
"""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from domain.errors import UnauthenticatedError
from domain.permissions import StaffRole
from integrations.identity import SupabaseIdentityProvider


def _client_returning(user) -> MagicMock:
    client = MagicMock()
    client.auth.get_user.return_value = SimpleNamespace(user=user)
    return client


def test_role_comes_from_app_metadata() -> None:
    user = SimpleNamespace(
        id="user-1",
        app_metadata={"staff_role": "operations"},
        user_metadata={"full_name": "Olive Ops"},
    )
    client = _client_returning(user)

    identity = SupabaseIdentityProvider(client).resolve("jwt")

    client.auth.get_user.assert_called_once_with("jwt")
    assert identity.user_id == "user-1"
    assert identity.role == StaffRole.OPERATIONS
    assert identity.full_name == "Olive Ops"


def test_missing_role_defaults_to_shopper() -> None:
    user = SimpleNamespace(id="user-2", app_metadata={}, user_metadata=None)

    identity = SupabaseIdentityProvider(_client_returning(user)).resolve("jwt")

    assert identity.role == StaffRole.SHOPPER
    assert identity.full_name is None


def test_rejected_token_is_unauthenticated() -> None:
    client = MagicMock()
    client.auth.get_user.side_effect = RuntimeError("invalid JWT")

    with pytest.raises(UnauthenticatedError):
        SupabaseIdentityProvider(client).resolve("expired")


def test_empty_token_or_no_user_is_unauthenticated() -> None:
    with pytest.raises(UnauthenticatedError):
        SupabaseIdentityProvider(MagicMock()).resolve("")
    with pytest.raises(UnauthenticatedError):
        SupabaseIdentityProvider(_client_returning(None)).resolve("jwt")
