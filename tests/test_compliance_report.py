"""Tests for compliance checks and reports."""
from datetime import date, datetime, timezone
from decimal import Decimal
from types import SimpleNamespace

import pytest

from kiwibooks.core.exceptions import InvalidPeriodError
from kiwibooks.services.tax_data_store import SQLAlchemyTaxDataStore
from kiwibooks.services.tax_reporting import ComplianceReporter, check_tax_compliance


def _invoice(total, on=date(2024, 2, 1), breakdown=True):
    return SimpleNamespace(
        total=Decimal(total),
        date=on,
        tax_breakdown={"tax_rate": "0.15"} if breakdown else None,
    )


def _payment(amount, method="bank_transfer"):
    return SimpleNamespace(amount=Decimal(amount), payment_method=method)


def test_clean_period_is_compliant():
    now = datetime(2024, 4, 10, tzinfo=timezone.utc)
    check = check_tax_compliance([_invoice("115")], [_payment("115")], [], now)
    assert check.is_compliant is True
    assert check.issues == []
    assert check.warnings == []
    assert check.checked_at == now


def test_overdue_quarter_is_an_issue():
    # Quarter ends 31 March; 29 days later is past the 28th-of-next-month deadline
    check = check_tax_compliance(
        [_invoice("115")], [], [], datetime(2024, 4, 29, tzinfo=timezone.utc)
    )
    assert check.is_compliant is False
    assert check.issues == ["GST return may be overdue"]


def test_quarter_is_taken_from_earliest_invoice():
    invoices = [_invoice("10", on=date(2024, 5, 1)), _invoice("10", on=date(2024, 1, 20))]
    check = check_tax_compliance(invoices, [], [], datetime(2024, 5, 15, tzinfo=timezone.utc))
    assert check.issues == ["GST return may be overdue"]


def test_no_invoices_uses_current_quarter():
    check = check_tax_compliance([], [], [], datetime(2024, 5, 15, tzinfo=timezone.utc))
    assert check.is_compliant is True


def test_warnings_for_missing_gst_and_large_cash():
    check = check_tax_compliance(
        [_invoice("100", breakdown=False), _invoice("0", breakdown=False), _invoice("50", breakdown=False)],
        [_payment("10000.01", "cash"), _payment("50000", "card"), _payment("10000", "cash")],
        [],
        datetime(2024, 3, 1, tzinfo=timezone.utc),
    )
    assert check.is_compliant is True
    assert check.warnings == [
        "2 invoices may be missing GST calculations",
        "Large cash transactions may require additional reporting",
    ]


@pytest.mark.asyncio
async def test_compliance_report_totals(db_session, invoice_factory, expense_factory, payment_factory):
    invoice_factory("1150.00", payment_status="partial", balance_due=Decimal("150.00"))
    invoice_factory("230.00", payment_status="paid", balance_due=Decimal("0"))
    invoice_factory("460.00", payment_status="unpaid", balance_due=Decimal("460.00"))
    payment_factory("1000.00")
    payment_factory("230.00")
    payment_factory("99.00", status="failed")
    expense_factory("300.00")

    clock = lambda: datetime(2024, 4, 10, tzinfo=timezone.utc)  # noqa: E731
    reporter = ComplianceReporter(SQLAlchemyTaxDataStore(db_session), clock=clock)
    report = await reporter.generate_compliance_report(1, "2024-01-01", "2024-03-31")

    assert report.period.start == date(2024, 1, 1)
    assert report.summary.total_invoiced == Decimal("1840.00")
    assert report.summary.total_received == Decimal("1230.00")
    assert report.summary.total_expenses == Decimal("300.00")
    assert report.summary.net_income == Decimal("930.00")
    assert report.summary.outstanding_receivables == Decimal("610.00")
    assert (report.invoice_count, report.payment_count, report.expense_count) == (3, 3, 1)
    assert report.tax_compliance.is_compliant is True
    assert report.generated_at == clock()


@pytest.mark.asyncio
async def test_compliance_report_rejects_bad_dates(db_session):
    reporter = ComplianceReporter(SQLAlchemyTaxDataStore(db_session))
    with pytest.raises(InvalidPeriodError):
        await reporter.generate_compliance_report(1, "yesterday", "2024-03-31")
