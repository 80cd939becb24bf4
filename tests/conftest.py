"""
Test Suite Configuration

Reports run against an in-memory SQLite database seeded with a small set of
car-wash vendor invoices:

    inv-1  2025-01-05  Zep Supply    Downtown Wash    500   Chemicals 200, Equipment 250, Ignore - Fees 50
    inv-2  2025-01-20  Ecolab        Airport Express  1200  Chemicals 400, Chemicals 800
    inv-3  2025-02-10  Zep Supply    Downtown Wash    300   Chemicals 150, Equipment 150
    inv-4  2025-02-15  Office Depot  Airport Express  80    Ignore 80 (ignore-only)
    inv-5  2025-03-01  Ecolab        Westside         -     Supplies 60
"""
from datetime import date, datetime
from decimal import Decimal
from typing import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from spend_analytics.config import Settings
from spend_analytics.config.settings import CacheSettings
from spend_analytics.database.connection import get_db_dependency
from spend_analytics.database.models import Base, Invoice, InvoiceLine
from spend_analytics.repository import InvoiceRepository
from spend_analytics.serving.api.main import create_api_app
from spend_analytics.serving.cache import QueryCache


def _invoice(id, invoice_date, source, location, total, subject, number):
    return Invoice(
        id=id,
        invoice_date=invoice_date,
        source=source,
        location=location,
        invoice_total=Decimal(total) if total is not None else None,
        email_subject=subject,
        invoice_number=number,
        status="processed",
        pdf_url=f"https://files.example.com/{id}.pdf",
    )


def _line(id, invoice_id, line_number, sku, description, category, total, created_at):
    return InvoiceLine(
        id=id,
        invoice_id=invoice_id,
        line_number=line_number,
        sku=sku,
        description=description,
        uom="EA",
        qty=Decimal("1"),
        unit_price=Decimal(total),
        line_total=Decimal(total),
        tax=Decimal("0"),
        category=category,
        created_at=created_at,
    )


def build_seed_rows():
    invoices = [
        _invoice("inv-1", date(2025, 1, 5), "Zep Supply", "Downtown Wash", "500.00", "Invoice Zep January", "Z-100"),
        _invoice("inv-2", date(2025, 1, 20), "Ecolab", "Airport Express", "1200.00", "Ecolab statement", "E-200"),
        _invoice("inv-3", date(2025, 2, 10), "Zep Supply", "Downtown Wash", "300.00", "Invoice Zep February", "Z-101"),
        _invoice("inv-4", date(2025, 2, 15), "Office Depot", "Airport Express", "80.00", "Office order", "O-1"),
        _invoice("inv-5", date(2025, 3, 1), "Ecolab", "Westside", None, "Ecolab towels", "E-201"),
    ]
    lines = [
        _line("l-1", "inv-1", 1, "CHEM-01", "Tire shine", "Chemicals", "200.00", datetime(2025, 1, 5, 10)),
        _line("l-2", "inv-1", 2, "BRUSH-9", "Wash brush", "Equipment", "250.00", datetime(2025, 1, 5, 12)),
        _line("l-3", "inv-1", 3, "MISC", "Fuel surcharge", "Ignore - Fees", "50.00", datetime(2025, 1, 5, 13)),
        _line("l-4", "inv-2", 1, "CHEM-01", "Tire shine", "Chemicals", "400.00", datetime(2025, 1, 20, 10)),
        _line("l-5", "inv-2", 2, "SOAP-2", "Foam soap", "Chemicals", "800.00", datetime(2025, 1, 20, 11)),
        _line("l-6", "inv-3", 1, "CHEM-01", "Tire shine", "Chemicals", "150.00", datetime(2025, 2, 10, 10)),
        _line("l-7", "inv-3", 2, "BRUSH-9", "Wash brush", "Equipment", "150.00", datetime(2025, 2, 10, 12)),
        _line("l-8", "inv-4", 1, "PAPER", "Printer paper", "Ignore", "80.00", datetime(2025, 2, 15, 9)),
        _line("l-9", "inv-5", 1, "TOWEL-3", None, "Supplies", "60.00", datetime(2025, 3, 1, 9)),
    ]
    return invoices + lines


@pytest.fixture
def test_settings() -> Settings:
    """Settings with retries that do not sleep"""
    return Settings().model_copy(
        update={"cache": CacheSettings(max_retries=2, retry_delay_seconds=0.0)}
    )


@pytest.fixture
async def test_engine():
    """In-memory database shared by every session of one test"""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        session.add_all(build_seed_rows())
        await session.commit()

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return async_sessionmaker(bind=test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def test_db(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create test database session"""
    async with session_factory() as session:
        yield session


@pytest.fixture
def query_cache() -> QueryCache:
    return QueryCache()


@pytest.fixture
def repo(test_db, query_cache, test_settings) -> InvoiceRepository:
    return InvoiceRepository(test_db, query_cache, test_settings)


@pytest.fixture
async def client(session_factory, query_cache) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client for the API backed by the seeded database"""
    async def override_db():
        async with session_factory() as session:
            yield session

    app = create_api_app(query_cache=query_cache)
    app.dependency_overrides[get_db_dependency] = override_db

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
