from __future__ import annotations

import asyncio
import os
from datetime import date, datetime, timezone
from decimal import Decimal
from types import SimpleNamespace

os.environ.setdefault("APP_ENV", "test")

import pytest  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from kiwibooks.core.config import settings  # noqa: E402
from kiwibooks.db import session as db_session_module  # noqa: E402
from kiwibooks.db.base_class import Base  # noqa: E402
from kiwibooks.db.session import SessionLocal  # noqa: E402
from kiwibooks.models.models import Expense, Invoice, Payment  # noqa: E402
from kiwibooks.services.ird_gateway import SubmissionReceipt  # noqa: E402

# Register tables on the metadata
from kiwibooks.models import tax_models  # noqa: E402,F401

TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL", "sqlite:///:memory:")


test_engine = create_engine(
    TEST_DATABASE_URL,
    future=True,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

# Ensure application code uses the test engine
settings.DATABASE_URL = TEST_DATABASE_URL  # type: ignore[attr-defined]
settings.ENV = "test"  # type: ignore[attr-defined]
db_session_module.engine = test_engine  # type: ignore[assignment]
SessionLocal.configure(bind=test_engine)


@pytest.fixture(autouse=True)
def _reset_database_state():
    """Ensure each test sees a fresh database schema."""
    Base.metadata.drop_all(bind=test_engine)
    Base.metadata.create_all(bind=test_engine)
    yield


@pytest.fixture
def db_session():
    """Provide a database session for tests."""
    session = SessionLocal()
    try:
        yield session
        session.commit()
    finally:
        session.close()


@pytest.fixture
def gst_config():
    """Plain NZ GST configuration for pure calculation tests."""
    return SimpleNamespace(tax_rate=Decimal("0.15"), tax_name="GST", tax_type="GST")


@pytest.fixture
def invoice_factory(db_session):
    """Factory to create invoices for tests."""
    counter = {"n": 0}

    def _create(total, on=date(2024, 2, 15), user_id=1, **overrides):
        counter["n"] += 1
        data = {
            "user_id": user_id,
            "invoice_number": f"INV-{counter['n']:04d}",
            "date": on,
            "total": Decimal(str(total)),
            "subtotal": Decimal(str(total)),
            "tax_breakdown": {"tax_rate": "0.15"},
            "balance_due": Decimal("0"),
            "payment_status": "paid",
        }
        data.update(overrides)
        invoice = Invoice(**data)
        db_session.add(invoice)
        db_session.commit()
        return invoice

    return _create


@pytest.fixture
def expense_factory(db_session):
    """Factory to create expenses for tests."""

    def _create(amount, category="OFFICE_SUPPLIES", on=date(2024, 2, 20), user_id=1, **overrides):
        data = {
            "user_id": user_id,
            "date": on,
            "description": f"{category.lower()} purchase",
            "amount": Decimal(str(amount)),
            "category": category,
        }
        data.update(overrides)
        expense = Expense(**data)
        db_session.add(expense)
        db_session.commit()
        return expense

    return _create


@pytest.fixture
def payment_factory(db_session):
    """Factory to create payments for tests."""

    def _create(amount, on=date(2024, 2, 25), user_id=1, **overrides):
        data = {
            "user_id": user_id,
            "amount": Decimal(str(amount)),
            "payment_date": on,
        }
        data.update(overrides)
        payment = Payment(**data)
        db_session.add(payment)
        db_session.commit()
        return payment

    return _create


class RecordingGateway:
    """Gateway double that records idempotency keys and yields to the event loop."""

    def __init__(self):
        self.keys: list[str] = []

    async def submit(self, tax_return, idempotency_key: str) -> SubmissionReceipt:
        self.keys.append(idempotency_key)
        await asyncio.sleep(0)
        return SubmissionReceipt(
            ird_reference=f"IRD-TEST-{len(self.keys):04d}",
            submitted_at=datetime(2024, 5, 1, 9, 30, tzinfo=timezone.utc),
        )


@pytest.fixture
def recording_gateway():
    return RecordingGateway()


# FastAPI TestClient fixture for endpoint tests
from fastapi.testclient import TestClient  # noqa: E402
from kiwibooks.api.main import app  # noqa: E402


@pytest.fixture
def client():
    """Provide a FastAPI TestClient bound to the application."""
    return TestClient(app)
