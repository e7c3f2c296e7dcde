"""
API dependencies.

The service container is built once per process (or handed in by tests)
and stored on `app.state`. Endpoints reach services through it, never
through module-level clients.

Authorization happens here, once per request: `require(capability)`
resolves the caller from the bearer token and checks the capability table
before the endpoint body runs.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from fastapi import Depends, Header, Request

from config import Settings
from domain.errors import UnauthenticatedError, UnauthorizedError
from domain.permissions import Capability, is_allowed
from integrations.external_ledger import ExternalLedgerClient, static_credentials
from integrations.identity import CallerIdentity, IdentityProvider, SupabaseIdentityProvider
from repositories.buyer_repository import BUYERS_TABLE, BuyerRepository
from repositories.client import create_supabase_client
from repositories.sale_repository import SALES_TABLE, SaleRepository
from repositories.schema import SCHEMA_MIGRATIONS_TABLE, require_schema_version
from repositories.shopper_repository import SHOPPERS_TABLE, ShopperRepository
from repositories.table import SupabaseTable
from services.allocation_service import AllocationService
from services.economics_service import SaleEconomicsService
from services.reconciliation_service import ReconciliationService

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ServiceContainer:
    identity: IdentityProvider
    allocation: AllocationService
    economics: SaleEconomicsService
    reconciliation: ReconciliationService
    ledger: Optional[ExternalLedgerClient] = None

    def close(self) -> None:
        if self.ledger is not None:
            self.ledger.close()


def build_container(settings: Settings) -> ServiceContainer:
    """
    Wire the production services.

    Raises:
        SchemaVersionError: the database has not been migrated far enough
    """

    client = create_supabase_client(settings)
    require_schema_version(SupabaseTable(client, SCHEMA_MIGRATIONS_TABLE))

    sales = SaleRepository(SupabaseTable(client, SALES_TABLE))
    buyers = BuyerRepository(SupabaseTable(client, BUYERS_TABLE))
    shoppers = ShopperRepository(SupabaseTable(client, SHOPPERS_TABLE))

    ledger = ExternalLedgerClient(
        settings.ledger_api_base_url,
        static_credentials(settings),
        timeout=settings.ledger_timeout_seconds,
    )

    return ServiceContainer(
        identity=SupabaseIdentityProvider(client),
        allocation=AllocationService(sales, buyers, shoppers),
        economics=SaleEconomicsService(sales),
        reconciliation=ReconciliationService(
            sales, ledger, delay_seconds=settings.payment_sync_delay_seconds
        ),
        ledger=ledger,
    )


def get_container(request: Request) -> ServiceContainer:
    container = getattr(request.app.state, "container", None)
    if container is None:
        raise RuntimeError("Service container has not been initialised")
    return container


def get_current_identity(
    authorization: Optional[str] = Header(None),
    container: ServiceContainer = Depends(get_container),
) -> CallerIdentity:
    """Resolve the caller from `Authorization: Bearer <token>`."""

    if not authorization:
        raise UnauthenticatedError()
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise UnauthenticatedError("Expected a bearer token")
    return container.identity.resolve(token.strip())


def require(capability: Capability) -> Callable[..., CallerIdentity]:
    """Dependency factory: the caller's identity, if their role grants `capability`."""

    def dependency(identity: CallerIdentity = Depends(get_current_identity)) -> CallerIdentity:
        if not is_allowed(identity.role, capability):
            logger.warning(
                "User %s (%s) denied %s", identity.user_id, identity.role.value, capability.value
            )
            raise UnauthorizedError(
                "Your role does not allow this action",
                {"role": identity.role.value, "capability": capability.value},
            )
        return identity

    return dependency


__all__ = [
    "ServiceContainer",
    "build_container",
    "get_container",
    "get_current_identity",
    "require",
]
