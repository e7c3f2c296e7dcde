"""
Pytest configuration.

Adds the project root to the Python path so that tests can import the
domain, repositories, services, integrations and api packages, and
provides services wired to in-memory tables (see fakes.py).
"""

import sys
from pathlib import Path

# Add the project root to the Python path
# so tests can import domain, repositories, etc.
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

import pytest  # noqa: E402

from fakes import FakeLedger, FixedClock, InMemoryTable  # noqa: E402
from repositories.buyer_repository import BUYERS_TABLE, BuyerRepository  # noqa: E402
from repositories.sale_repository import SALES_TABLE, SaleRepository  # noqa: E402
from repositories.shopper_repository import SHOPPERS_TABLE, ShopperRepository  # noqa: E402
from services.allocation_service import AllocationService  # noqa: E402
from services.economics_service import SaleEconomicsService  # noqa: E402
from services.reconciliation_service import ReconciliationService  # noqa: E402


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def sales_table():
    return InMemoryTable(SALES_TABLE)


@pytest.fixture
def buyers_table():
    return InMemoryTable(BUYERS_TABLE)


@pytest.fixture
def shoppers_table():
    return InMemoryTable(
        SHOPPERS_TABLE,
        [
            {"id": "shopper-alice", "name": "Alice Hart", "auth_user_id": "user-alice", "commission_scheme": "senior"},
            {"id": "shopper-bob", "name": "Bob Lane", "auth_user_id": "user-bob", "commission_scheme": None},
            {"id": "shopper-fay", "name": "Fay Moss", "auth_user_id": None, "commission_scheme": "founder"},
        ],
    )


@pytest.fixture
def sales(sales_table):
    return SaleRepository(sales_table)


@pytest.fixture
def buyers(buyers_table):
    return BuyerRepository(buyers_table)


@pytest.fixture
def shoppers(shoppers_table):
    return ShopperRepository(shoppers_table)


@pytest.fixture
def ledger():
    return FakeLedger()


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def allocation_service(sales, buyers, shoppers, clock):
    return AllocationService(sales, buyers, shoppers, clock=clock)


@pytest.fixture
def economics_service(sales):
    return SaleEconomicsService(sales)


@pytest.fixture
def reconciliation_service(sales, ledger, sleeps, clock):
    return ReconciliationService(sales, ledger, delay_seconds=0.1, sleep=sleeps.append, clock=clock)
