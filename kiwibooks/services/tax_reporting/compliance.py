"""Compliance reporting.

Read-only audit summaries for a period. Nothing here writes to the store;
issues and warnings are advisory.
"""
import asyncio
import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Callable, Optional, Sequence

from kiwibooks import metrics
from kiwibooks.core.exceptions import InvalidPeriodError
from kiwibooks.models.models import PaymentStatus
from kiwibooks.models.tax_schemas import (
    ComplianceReport,
    ComplianceSummary,
    ReportPeriod,
    TaxComplianceCheck,
)
from kiwibooks.services.tax_calculation.rounding import round2, to_decimal
from kiwibooks.services.tax_data_store import TaxDataStore

from .period_utils import DateLike, parse_period_date, quarter_end

logger = logging.getLogger(__name__)

# GST for a quarter is due on the 28th of the following month
GST_FILING_GRACE_DAYS = 28
# Cash receipts above this may need reporting under AML/CFT rules
LARGE_CASH_THRESHOLD = Decimal("10000")


def _sum(values) -> Decimal:
    return round2(sum((to_decimal(v) for v in values), Decimal("0")))


def check_tax_compliance(
    invoices: Sequence[Any],
    payments: Sequence[Any],
    expenses: Sequence[Any],
    now: Optional[datetime] = None,
) -> TaxComplianceCheck:
    """Flag likely GST problems for a period's records."""
    now = now or datetime.now(timezone.utc)
    today = now.date()
    issues: list[str] = []
    warnings: list[str] = []

    missing_gst = [inv for inv in invoices if to_decimal(inv.total) > 0 and not inv.tax_breakdown]
    if missing_gst:
        warnings.append(f"{len(missing_gst)} invoices may be missing GST calculations")

    reference = min((inv.date for inv in invoices if inv.date), default=today)
    if (today - quarter_end(reference)).days > GST_FILING_GRACE_DAYS:
        issues.append("GST return may be overdue")

    large_cash = [
        p for p in payments
        if (p.payment_method or "").lower() == "cash" and to_decimal(p.amount) > LARGE_CASH_THRESHOLD
    ]
    if large_cash:
        warnings.append("Large cash transactions may require additional reporting")

    return TaxComplianceCheck(
        is_compliant=not issues,
        issues=issues,
        warnings=warnings,
        checked_at=now,
    )


class ComplianceReporter:
    """Builds compliance reports from the data store."""

    def __init__(self, store: TaxDataStore, clock: Optional[Callable[[], datetime]] = None):
        self.store = store
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    async def generate_compliance_report(
        self,
        user_id: int,
        period_start: DateLike,
        period_end: DateLike,
    ) -> ComplianceReport:
        try:
            start = parse_period_date(period_start)
            end = parse_period_date(period_end)
        except (TypeError, ValueError) as exc:
            raise InvalidPeriodError("Invalid period dates", period_start, period_end) from exc
        if start > end:
            raise InvalidPeriodError("Period start must be before period end", start, end)

        invoices, payments, expenses = await asyncio.gather(
            self.store.get_invoices_by_period(user_id, start, end),
            self.store.get_payments_by_period(user_id, start, end),
            self.store.get_expenses_by_period(user_id, start, end),
        )

        total_received = _sum(p.amount for p in payments if p.status == "completed")
        total_expenses = _sum(exp.amount for exp in expenses)
        outstanding = _sum(
            inv.balance_due for inv in invoices if inv.payment_status != PaymentStatus.PAID.value
        )

        now = self._clock()
        report = ComplianceReport(
            period=ReportPeriod(start=start, end=end),
            summary=ComplianceSummary(
                total_invoiced=_sum(inv.total for inv in invoices),
                total_received=total_received,
                total_expenses=total_expenses,
                net_income=round2(total_received - total_expenses),
                outstanding_receivables=outstanding,
            ),
            tax_compliance=check_tax_compliance(invoices, payments, expenses, now),
            invoice_count=len(invoices),
            payment_count=len(payments),
            expense_count=len(expenses),
            generated_at=now,
        )
        metrics.compliance_report_record()
        logger.info(
            "Compliance report for user %s (%s to %s): %d issues, %d warnings",
            user_id, start, end,
            len(report.tax_compliance.issues), len(report.tax_compliance.warnings),
            extra={"user_id": user_id},
        )
        return report
