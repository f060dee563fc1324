"""Data access for the tax engine.

`TaxDataStore` is what the reporting services depend on. The SQLAlchemy
implementation wraps one synchronous Session; its coroutines never yield
mid-query, so gathering several of them on one session is safe.
"""
from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from typing import Any, Optional, Protocol, Sequence

from sqlalchemy import delete, update
from sqlalchemy.orm import Session

from kiwibooks.core.exceptions import ConcurrentModificationError, TaxReturnNotFoundError
from kiwibooks.models.models import Expense, Invoice, Payment
from kiwibooks.models.tax_models import TaxConfiguration, TaxReturn, TaxReturnStatus
from kiwibooks.services.tax_config_service import TaxConfigurationService

logger = logging.getLogger(__name__)


class TaxDataStore(Protocol):
    async def get_active_tax_configuration(
        self, user_id: int, country_code: Optional[str] = None, as_of: Optional[date] = None
    ) -> Optional[TaxConfiguration]: ...

    async def get_invoices_by_period(self, user_id: int, start: date, end: date) -> Sequence[Invoice]: ...

    async def get_expenses_by_period(self, user_id: int, start: date, end: date) -> Sequence[Expense]: ...

    async def get_payments_by_period(self, user_id: int, start: date, end: date) -> Sequence[Payment]: ...

    async def create_tax_return(self, values: dict[str, Any]) -> TaxReturn: ...

    async def update_tax_return(
        self, tax_return_id: int, patch: dict[str, Any], expected_version: int
    ) -> TaxReturn: ...

    async def get_tax_return_by_id(self, tax_return_id: int) -> Optional[TaxReturn]: ...

    async def get_tax_returns_by_user(
        self,
        user_id: int,
        return_type: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> Sequence[TaxReturn]: ...

    async def delete_tax_return(self, tax_return_id: int) -> bool: ...


class SQLAlchemyTaxDataStore:
    """TaxDataStore over a SQLAlchemy Session."""

    def __init__(self, db: Session):
        self.db = db
        self.config_service = TaxConfigurationService(db)

    async def get_active_tax_configuration(
        self, user_id: int, country_code: Optional[str] = None, as_of: Optional[date] = None
    ) -> Optional[TaxConfiguration]:
        return self.config_service.get_active_configuration(user_id, country_code, as_of)

    async def get_invoices_by_period(self, user_id: int, start: date, end: date) -> list[Invoice]:
        return (
            self.db.query(Invoice)
            .filter(Invoice.user_id == user_id, Invoice.date >= start, Invoice.date <= end)
            .order_by(Invoice.date, Invoice.id)
            .all()
        )

    async def get_expenses_by_period(self, user_id: int, start: date, end: date) -> list[Expense]:
        return (
            self.db.query(Expense)
            .filter(Expense.user_id == user_id, Expense.date >= start, Expense.date <= end)
            .order_by(Expense.date, Expense.id)
            .all()
        )

    async def get_payments_by_period(self, user_id: int, start: date, end: date) -> list[Payment]:
        return (
            self.db.query(Payment)
            .filter(Payment.user_id == user_id, Payment.payment_date >= start, Payment.payment_date <= end)
            .order_by(Payment.payment_date, Payment.id)
            .all()
        )

    async def create_tax_return(self, values: dict[str, Any]) -> TaxReturn:
        tax_return = TaxReturn(**values)
        self.db.add(tax_return)
        self.db.commit()
        self.db.refresh(tax_return)
        return tax_return

    async def update_tax_return(
        self, tax_return_id: int, patch: dict[str, Any], expected_version: int
    ) -> TaxReturn:
        """
        Compare-and-swap update of a draft return.

        Succeeds only while the row still has `expected_version` and is a
        draft; the version is bumped in the same statement.

        Raises:
            TaxReturnNotFoundError: row does not exist
            ConcurrentModificationError: row changed since it was read
        """
        stmt = (
            update(TaxReturn)
            .where(
                TaxReturn.id == tax_return_id,
                TaxReturn.version == expected_version,
                TaxReturn.status == TaxReturnStatus.DRAFT.value,
            )
            .values(
                **patch,
                version=TaxReturn.version + 1,
                updated_at=datetime.now(timezone.utc),
            )
            .execution_options(synchronize_session=False)
        )
        result = self.db.execute(stmt)
        if result.rowcount == 0:
            self.db.rollback()
            if self.db.get(TaxReturn, tax_return_id) is None:
                raise TaxReturnNotFoundError(tax_return_id)
            logger.warning(
                "Tax return %s changed concurrently (expected version %s)",
                tax_return_id, expected_version,
                extra={"tax_return_id": tax_return_id},
            )
            raise ConcurrentModificationError(tax_return_id, expected_version)
        self.db.commit()
        return self.db.get(TaxReturn, tax_return_id, populate_existing=True)

    async def get_tax_return_by_id(self, tax_return_id: int) -> Optional[TaxReturn]:
        return self.db.get(TaxReturn, tax_return_id)

    async def get_tax_returns_by_user(
        self,
        user_id: int,
        return_type: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[TaxReturn]:
        query = self.db.query(TaxReturn).filter(TaxReturn.user_id == user_id)
        if return_type:
            query = query.filter(TaxReturn.return_type == return_type)
        return (
            query.order_by(TaxReturn.period_end.desc(), TaxReturn.id.desc())
            .offset(offset)
            .limit(limit)
            .all()
        )

    async def delete_tax_return(self, tax_return_id: int) -> bool:
        """Delete a draft return; False when no draft with that id exists."""
        stmt = (
            delete(TaxReturn)
            .where(
                TaxReturn.id == tax_return_id,
                TaxReturn.status == TaxReturnStatus.DRAFT.value,
            )
            .execution_options(synchronize_session="fetch")
        )
        result = self.db.execute(stmt)
        self.db.commit()
        return result.rowcount > 0
