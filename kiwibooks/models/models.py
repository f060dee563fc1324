"""
Business records read by the tax engine.

Invoices, expenses and payments are owned by the invoicing/expense modules of
the application; the tax engine only reads them for a reporting period.
"""
from datetime import datetime, timezone
from enum import Enum

from sqlalchemy import JSON, Boolean, Column, Date, DateTime, ForeignKey, Integer, Numeric, String, Text

from kiwibooks.db.base_class import Base


class GSTCategory(str, Enum):
    """GST treatment of a sale"""
    STANDARD = "standard"        # 15% GST
    ZERO_RATED = "zero_rated"    # 0% GST, still part of the sales base (exports)
    EXEMPT = "exempt"            # Outside the GST base (financial services, residential rent)


class PaymentStatus(str, Enum):
    UNPAID = "unpaid"
    PARTIAL = "partial"
    PAID = "paid"
    OVERDUE = "overdue"
    WRITTEN_OFF = "written_off"


class ExpenseCategory(str, Enum):
    """
    Expense categories with their income-tax and GST semantics.

    Each member answers three questions the tax engine needs:
    is it deductible for income tax, can its GST be claimed, and is it a
    capital goods purchase.
    """
    OFFICE_SUPPLIES = "OFFICE_SUPPLIES"
    RENT = "RENT"
    UTILITIES = "UTILITIES"
    TRAVEL = "TRAVEL"
    MARKETING = "MARKETING"
    PROFESSIONAL_SERVICES = "PROFESSIONAL_SERVICES"
    SUBSCRIPTIONS = "SUBSCRIPTIONS"
    INSURANCE = "INSURANCE"
    BANK_FEES = "BANK_FEES"
    WAGES = "WAGES"
    EQUIPMENT = "EQUIPMENT"
    VEHICLES = "VEHICLES"
    CAPITAL_GOODS = "CAPITAL_GOODS"
    GST_EXEMPT = "GST_EXEMPT"
    NON_DEDUCTIBLE = "NON_DEDUCTIBLE"
    OTHER = "OTHER"

    @classmethod
    def parse(cls, value: "str | ExpenseCategory | None") -> "ExpenseCategory":
        """Map stored strings onto the enum; unknown categories become OTHER."""
        if isinstance(value, cls):
            return value
        if not value:
            return cls.OTHER
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            return cls.OTHER

    @property
    def is_deductible(self) -> bool:
        return self is not ExpenseCategory.NON_DEDUCTIBLE

    @property
    def is_gst_claimable(self) -> bool:
        # Bank fees and wages carry no GST; exempt supplies never did
        return self not in _NO_INPUT_GST

    @property
    def is_capital_goods(self) -> bool:
        return self in _CAPITAL_GOODS


_NO_INPUT_GST = frozenset({
    ExpenseCategory.GST_EXEMPT,
    ExpenseCategory.NON_DEDUCTIBLE,
    ExpenseCategory.BANK_FEES,
    ExpenseCategory.WAGES,
})

_CAPITAL_GOODS = frozenset({
    ExpenseCategory.EQUIPMENT,
    ExpenseCategory.VEHICLES,
    ExpenseCategory.CAPITAL_GOODS,
})


class Invoice(Base):
    __tablename__ = "invoices"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, nullable=False, index=True)
    invoice_number = Column(String(40), nullable=False)
    date = Column(Date, nullable=False, index=True)

    subtotal = Column(Numeric(12, 2), default=0)
    tax_amount = Column(Numeric(12, 2), nullable=True)
    total = Column(Numeric(12, 2), nullable=False)
    tax_inclusive = Column(Boolean, nullable=True)  # NULL means inclusive (NZ retail default)
    gst_category = Column(String(20), default=GSTCategory.STANDARD.value)

    status = Column(String(20), default="sent")
    payment_status = Column(String(20), default=PaymentStatus.UNPAID.value, index=True)
    balance_due = Column(Numeric(12, 2), default=0)
    tax_breakdown = Column(JSON, nullable=True)

    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))

    def __repr__(self):
        return f"<Invoice(id={self.id}, number={self.invoice_number}, total={self.total}, date={self.date})>"


class Expense(Base):
    __tablename__ = "expenses"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, nullable=False, index=True)
    date = Column(Date, nullable=False, index=True)
    description = Column(Text, nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    category = Column(String(50), nullable=False, default=ExpenseCategory.OTHER.value)
    supplier_name = Column(String(255))

    tax_amount = Column(Numeric(12, 2), default=0)
    tax_inclusive = Column(Boolean, default=True)
    is_claimable = Column(Boolean, default=True)
    is_capital_expense = Column(Boolean, default=False)

    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))

    @property
    def category_enum(self) -> ExpenseCategory:
        return ExpenseCategory.parse(self.category)

    def __repr__(self):
        return f"<Expense(id={self.id}, amount={self.amount}, category={self.category}, date={self.date})>"


class Payment(Base):
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, nullable=False, index=True)
    invoice_id = Column(Integer, ForeignKey("invoices.id", ondelete="SET NULL"), nullable=True)
    amount = Column(Numeric(12, 2), nullable=False)
    payment_date = Column(Date, nullable=False, index=True)
    payment_method = Column(String(50), nullable=False, default="bank_transfer")
    reference_number = Column(String(100))
    status = Column(String(20), nullable=False, default="completed")  # pending, completed, failed, cancelled

    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))
