"""Shared fixtures for the lineform test suite."""

import os
import tempfile
from pathlib import Path

# Point the application at a throwaway SQLite database before any
# lineform module reads its settings
_TEST_DB_DIR = Path(tempfile.mkdtemp(prefix="lineform-tests-"))
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_TEST_DB_DIR / 'app.db'}"

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from lineform.domain.models import CapabilityFlags, Order
from lineform.domain.pricing import LineItemPricingRule
from lineform.forms.adapters import LineItemFormAdapter
from lineform.infrastructure.database import create_engine_for_url, init_db
from lineform.services.line_items import LineItemFormService


@pytest.fixture
def rule():
    """Pricing rule with product reference support."""
    return LineItemPricingRule(CapabilityFlags(product_reference_enabled=True))


@pytest.fixture
def adapter(rule):
    """Line item form adapter with a single cart status."""
    return LineItemFormAdapter(rule, cart_order_statuses=("cart",))


@pytest.fixture
def pending_order():
    return Order(id="order-1", status="pending")


@pytest.fixture
def cart_order():
    return Order(id="order-1", status="cart")


@pytest.fixture
async def session_factory(tmp_path):
    """Session factory bound to a fresh SQLite database."""
    engine = create_engine_for_url(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    await init_db(engine)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture
def service(adapter, session_factory):
    return LineItemFormService(adapter=adapter, session_factory=session_factory)
