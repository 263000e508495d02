"""
Database configuration and session management with SQLAlchemy.

Uses async SQLAlchemy for non-blocking database operations.
Orders own their line items: deleting an order deletes its line items.

Design Decisions:
- AsyncSession for non-blocking operations
- Connection pooling with sensible defaults (not for SQLite)
- Explicit transaction management
- Session-per-request pattern
- Money stored as integer minor units plus a JSON component breakdown
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, AsyncGenerator
from uuid import uuid4

from sqlalchemy import JSON, BigInteger, DateTime, ForeignKey, Integer, Numeric, String
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from lineform.config import get_settings
from lineform.domain.models import LineItem, Money, Order, PriceComponent

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Base class for all database models."""
    pass


def components_to_json(components: tuple[PriceComponent, ...]) -> list[dict[str, Any]]:
    """Serialize a price breakdown for a JSON column."""
    return [
        {
            "name": c.name,
            "amount": c.amount,
            "currency_code": c.currency_code,
            "included": c.included,
            "data": c.data,
        }
        for c in components
    ]


def components_from_json(raw: list[dict[str, Any]] | None) -> tuple[PriceComponent, ...]:
    """Rebuild a price breakdown from its JSON column."""
    return tuple(
        PriceComponent(
            name=c["name"],
            amount=int(c["amount"]),
            currency_code=c["currency_code"],
            included=c.get("included", True),
            data=c.get("data") or {},
        )
        for c in raw or []
    )


class OrderRecord(Base):
    """An order and its status."""
    __tablename__ = "orders"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc)
    )
    status: Mapped[str] = mapped_column(String(64), index=True)

    line_items: Mapped[list["LineItemRecord"]] = relationship(
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="LineItemRecord.position",
    )

    def to_domain(self) -> Order:
        return Order(
            id=self.id,
            status=self.status,
            line_items=tuple(item.to_domain() for item in self.line_items),
        )


class LineItemRecord(Base):
    """
    A line item belonging to exactly one order.

    Quantity is kept with two decimal places; unit price and total are
    stored as amount, currency and component breakdown.
    """
    __tablename__ = "line_items"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc)
    )
    order_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("orders.id", ondelete="CASCADE"), index=True
    )
    position: Mapped[int] = mapped_column(Integer, default=0)

    line_item_type: Mapped[str] = mapped_column(String(64))
    label: Mapped[str] = mapped_column(String(128))
    quantity: Mapped[Decimal] = mapped_column(Numeric(12, 2))
    product_sku: Mapped[str | None] = mapped_column(String(64))

    # Prices in minor units
    unit_price_amount: Mapped[int] = mapped_column(BigInteger)
    unit_price_currency: Mapped[str] = mapped_column(String(3))
    unit_price_components: Mapped[list] = mapped_column(JSON, default=list)
    total_amount: Mapped[int] = mapped_column(BigInteger)
    total_currency: Mapped[str] = mapped_column(String(3))
    total_components: Mapped[list] = mapped_column(JSON, default=list)

    # Additional attached field values
    fields_json: Mapped[dict] = mapped_column(JSON, default=dict)

    order: Mapped[OrderRecord] = relationship(back_populates="line_items")

    def to_domain(self) -> LineItem:
        return LineItem(
            id=self.id,
            order_id=self.order_id,
            line_item_type=self.line_item_type,
            label=self.label,
            quantity=Decimal(self.quantity),
            product_sku=self.product_sku,
            unit_price=Money(
                amount=self.unit_price_amount,
                currency_code=self.unit_price_currency,
                components=components_from_json(self.unit_price_components),
            ),
            total=Money(
                amount=self.total_amount,
                currency_code=self.total_currency,
                components=components_from_json(self.total_components),
            ),
            fields=dict(self.fields_json or {}),
        )

    def apply(self, line_item: LineItem) -> None:
        """Copy a line item's editable values onto this record."""
        self.line_item_type = line_item.line_item_type
        self.label = line_item.label
        self.quantity = line_item.quantity
        self.product_sku = line_item.product_sku
        self.unit_price_amount = line_item.unit_price.amount
        self.unit_price_currency = line_item.unit_price.currency_code
        self.unit_price_components = components_to_json(line_item.unit_price.components)
        self.total_amount = line_item.total.amount
        self.total_currency = line_item.total.currency_code
        self.total_components = components_to_json(line_item.total.components)
        self.fields_json = dict(line_item.fields)


# Engine and session factory (initialized lazily)
_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def create_engine_for_url(url: str, echo: bool = False) -> AsyncEngine:
    """Create an async engine; SQLite gets no connection pool options."""
    if url.startswith("sqlite"):
        return create_async_engine(url, echo=echo)
    return create_async_engine(
        url,
        echo=echo,
        pool_size=5,
        max_overflow=10,
        pool_timeout=30,
    )


def get_engine() -> AsyncEngine:
    """Get or create the async database engine."""
    global _engine
    if _engine is None:
        settings = get_settings()
        _engine = create_engine_for_url(settings.database_url, echo=settings.debug)
        logger.info(f"Database engine created for {_engine.url.render_as_string(hide_password=True)}")
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Get the session factory for creating database sessions."""
    global _session_factory
    if _session_factory is None:
        engine = get_engine()
        _session_factory = async_sessionmaker(
            engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )
    return _session_factory


@asynccontextmanager
async def get_session(
    factory: async_sessionmaker[AsyncSession] | None = None,
) -> AsyncGenerator[AsyncSession, None]:
    """
    Get a database session for a request.

    Usage:
        async with get_session() as session:
            session.add(record)
            await session.commit()
    """
    factory = factory or get_session_factory()
    session = factory()
    try:
        yield session
    except Exception:
        await session.rollback()
        raise
    finally:
        await session.close()


async def init_db(engine: AsyncEngine | None = None) -> None:
    """
    Initialize database tables.

    Call this on application startup to ensure tables exist.
    In production, use Alembic migrations instead.
    """
    engine = engine or get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables initialized")


async def close_db() -> None:
    """Close database connections on shutdown."""
    global _engine, _session_factory
    if _engine:
        await _engine.dispose()
        _engine = None
        _session_factory = None
    logger.info("Database connections closed")
