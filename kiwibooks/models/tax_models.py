"""
Tax configuration and IRD return models.

- TaxConfiguration: rate/type per user and country, selected by effective dates
- TaxReturn: generated GST / income tax returns and their submission state
"""
from enum import Enum
from datetime import date, datetime, timezone
from decimal import Decimal

from sqlalchemy import JSON, Boolean, Column, Date, DateTime, Integer, Numeric, String

from kiwibooks.db.base_class import Base


class TaxType(str, Enum):
    GST = "GST"
    VAT = "VAT"
    SALES_TAX = "Sales_Tax"


class ReturnType(str, Enum):
    GST = "GST"
    INCOME_TAX = "Income_Tax"


class TaxReturnStatus(str, Enum):
    """Return lifecycle. Only drafts can change; submitted is terminal."""
    DRAFT = "draft"
    SUBMITTED = "submitted"


class TaxConfiguration(Base):
    """
    Tax rate configuration for a user and country.

    Rates change by superseding: the current record gets an `effective_to`
    and a new active record starts the next day. Records are never deleted
    so past periods keep resolving to the rate that applied then.
    """
    __tablename__ = "tax_configurations"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, nullable=False, index=True)
    country_code = Column(String(2), nullable=False, default="NZ")

    tax_type = Column(String(20), nullable=False, default=TaxType.GST.value)
    tax_rate = Column(Numeric(5, 4), nullable=False)
    tax_name = Column(String(50), nullable=False)
    applies_to_services = Column(Boolean, default=True)
    applies_to_goods = Column(Boolean, default=True)

    effective_from = Column(Date, nullable=False)
    effective_to = Column(Date, nullable=True)
    is_active = Column(Boolean, default=True, index=True)

    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(DateTime, default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc))

    def covers(self, on: date) -> bool:
        """True when this configuration is in force on the given date."""
        if not self.is_active:
            return False
        if self.effective_from and on < self.effective_from:
            return False
        return self.effective_to is None or on <= self.effective_to

    @property
    def rate(self) -> Decimal:
        return Decimal(str(self.tax_rate))

    def __repr__(self):
        return f"<TaxConfiguration(user_id={self.user_id}, {self.tax_type} {self.tax_rate} from {self.effective_from})>"


class TaxReturn(Base):
    """
    IRD return (GST or income tax).

    `version` is bumped on every write; updates compare-and-swap on it so two
    concurrent submissions of one draft cannot both win.
    """
    __tablename__ = "tax_returns"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, nullable=False, index=True)

    period_start = Column(Date, nullable=False)
    period_end = Column(Date, nullable=False)
    return_type = Column(String(20), nullable=False)

    total_sales = Column(Numeric(12, 2), default=0)
    total_purchases = Column(Numeric(12, 2), default=0)
    gst_on_sales = Column(Numeric(12, 2), default=0)
    gst_on_purchases = Column(Numeric(12, 2), default=0)
    net_gst = Column(Numeric(12, 2), default=0)

    status = Column(String(20), nullable=False, default=TaxReturnStatus.DRAFT.value)
    ird_reference = Column(String(100), nullable=True)
    submitted_at = Column(DateTime, nullable=True)
    return_data = Column(JSON, nullable=True)

    version = Column(Integer, nullable=False, default=1)

    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(DateTime, default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc))

    @property
    def is_draft(self) -> bool:
        return self.status == TaxReturnStatus.DRAFT.value

    def __repr__(self):
        return f"<TaxReturn(id={self.id}, {self.return_type} {self.period_start}..{self.period_end}, status={self.status})>"
