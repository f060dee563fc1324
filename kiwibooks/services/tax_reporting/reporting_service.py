"""IRD Reporting Service.

Main service class for generating, validating and submitting GST and
income tax returns.
"""
import asyncio
import logging
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Callable, Optional, Sequence

from pydantic import ValidationError

from kiwibooks import metrics
from kiwibooks.core.config import settings
from kiwibooks.core.exceptions import (
    ConcurrentModificationError,
    InvalidRequestError,
    InvalidStateTransitionError,
    MissingTaxConfigurationError,
    TaxReturnNotFoundError,
)
from kiwibooks.models.models import GSTCategory
from kiwibooks.models.tax_models import ReturnType, TaxReturn, TaxReturnStatus, TaxType
from kiwibooks.models.tax_schemas import (
    GSTSummary,
    IRDReturnData,
    SubmissionResult,
    ValidationResult,
)
from kiwibooks.services.ird_gateway import SimulatedIRDGateway, SubmissionGateway
from kiwibooks.services.tax_calculation.rounding import extract_inclusive_tax, round2, to_decimal
from kiwibooks.services.tax_data_store import TaxDataStore

from .aggregation import calculate_net_gst
from .computations import (
    DEFAULT_BRACKET_TABLES,
    IncomeTaxBracketTable,
    build_gst_return,
    compute_income_tax_return,
    expense_to_purchase,
    select_bracket_table,
)
from .period_utils import DateLike, parse_period_date, validate_period

logger = logging.getLogger(__name__)

# Fields only the submission flow may set
_PROTECTED_FIELDS = frozenset({"id", "user_id", "status", "ird_reference", "submitted_at", "version", "created_at"})
# Columns mirrored from return_data; rewritten whenever return_data changes
_DERIVED_FIELDS = frozenset({"total_sales", "total_purchases", "gst_on_sales", "gst_on_purchases", "net_gst"})


def _derived_totals(return_type: str, data: IRDReturnData) -> dict[str, Decimal]:
    """Top-level return columns for the given return document."""
    zero = Decimal("0.00")
    if return_type == ReturnType.GST.value:
        if data.gst_return is None:
            raise InvalidRequestError(["GST return data is required"], message="Invalid tax return data")
        sales = data.gst_return.sales_details
        purchases = data.gst_return.purchase_details
        return {
            "total_sales": round2(sales.total_sales),
            "total_purchases": round2(purchases.total_purchases),
            "gst_on_sales": round2(sales.gst_on_sales),
            "gst_on_purchases": round2(purchases.gst_on_purchases),
            "net_gst": calculate_net_gst(sales.gst_on_sales, purchases.gst_on_purchases),
        }
    if data.income_tax is None:
        raise InvalidRequestError(["Income tax return data is required"], message="Invalid tax return data")
    return {
        "total_sales": round2(data.income_tax.gross_income),
        "total_purchases": round2(data.income_tax.allowable_deductions),
        "gst_on_sales": zero,
        "gst_on_purchases": zero,
        "net_gst": zero,
    }


def _any_negative(*values: Any) -> bool:
    return any(to_decimal(v) < 0 for v in values)


class IRDReportingService:
    """Service for IRD GST and income tax returns.

    Responsibilities:
    - Period validation
    - GST return assembly from invoices and expenses
    - Income tax return from marginal brackets
    - Draft -> submitted state machine, guarded by optimistic concurrency
    """

    def __init__(
        self,
        store: TaxDataStore,
        gateway: Optional[SubmissionGateway] = None,
        bracket_tables: Sequence[IncomeTaxBracketTable] = DEFAULT_BRACKET_TABLES,
        country_code: Optional[str] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.store = store
        self.gateway = gateway or SimulatedIRDGateway()
        self.bracket_tables = tuple(bracket_tables)
        self.country_code = country_code or settings.DEFAULT_COUNTRY_CODE
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def _today(self) -> date:
        return self._clock().date()

    def validate_period(self, period_start: DateLike, period_end: DateLike) -> tuple[date, date]:
        return validate_period(period_start, period_end, today=self._today())

    async def _get_gst_configuration(self, user_id: int, as_of: date):
        config = await self.store.get_active_tax_configuration(user_id, self.country_code, as_of)
        if config is None or config.tax_type != TaxType.GST.value:
            raise MissingTaxConfigurationError("GST", user_id)
        return config

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------

    async def generate_gst_return(self, user_id: int, period_start: DateLike, period_end: DateLike) -> TaxReturn:
        """
        Generate a draft GST return for a period.

        Raises:
            InvalidPeriodError: period unusable
            MissingTaxConfigurationError: no active GST configuration at period end
        """
        start, end = self.validate_period(period_start, period_end)
        config = await self._get_gst_configuration(user_id, end)

        invoices, expenses = await asyncio.gather(
            self.store.get_invoices_by_period(user_id, start, end),
            self.store.get_expenses_by_period(user_id, start, end),
        )

        data = IRDReturnData(gst_return=build_gst_return(invoices, expenses, config))

        tax_return = await self.store.create_tax_return({
            "user_id": user_id,
            "period_start": start,
            "period_end": end,
            "return_type": ReturnType.GST.value,
            **_derived_totals(ReturnType.GST.value, data),
            "status": TaxReturnStatus.DRAFT.value,
            "return_data": data.model_dump(mode="json"),
            "version": 1,
        })
        metrics.tax_return_generated(ReturnType.GST.value)
        logger.info(
            "Generated GST return %s for user %s (%s to %s): net GST %s from %d invoices, %d expenses",
            tax_return.id, user_id, start, end, tax_return.net_gst, len(invoices), len(expenses),
            extra={"user_id": user_id, "tax_return_id": tax_return.id, "return_type": ReturnType.GST.value},
        )
        return tax_return

    async def generate_income_return(self, user_id: int, period_start: DateLike, period_end: DateLike) -> TaxReturn:
        """Generate a draft income tax return using the bracket table in force at period end."""
        start, end = self.validate_period(period_start, period_end)
        table = select_bracket_table(self.bracket_tables, end)

        invoices, expenses = await asyncio.gather(
            self.store.get_invoices_by_period(user_id, start, end),
            self.store.get_expenses_by_period(user_id, start, end),
        )
        income = compute_income_tax_return(invoices, expenses, table)
        data = IRDReturnData(income_tax=income)

        tax_return = await self.store.create_tax_return({
            "user_id": user_id,
            "period_start": start,
            "period_end": end,
            "return_type": ReturnType.INCOME_TAX.value,
            **_derived_totals(ReturnType.INCOME_TAX.value, data),
            "status": TaxReturnStatus.DRAFT.value,
            "return_data": data.model_dump(mode="json"),
            "version": 1,
        })
        metrics.tax_return_generated(ReturnType.INCOME_TAX.value)
        logger.info(
            "Generated income tax return %s for user %s (%s to %s) using %s: tax due %s",
            tax_return.id, user_id, start, end, table.name, income.tax_due,
            extra={"user_id": user_id, "tax_return_id": tax_return.id, "return_type": ReturnType.INCOME_TAX.value},
        )
        return tax_return

    # ------------------------------------------------------------------
    # Validation & submission
    # ------------------------------------------------------------------

    def validate_tax_return(self, tax_return: Any) -> ValidationResult:
        """Check a return is fit for submission. Never raises."""
        errors: list[str] = []
        data = tax_return.return_data or {}

        if tax_return.return_type == ReturnType.GST.value:
            gst = data.get("gst_return")
            if not gst:
                errors.append("GST return data is required")
            else:
                sales = gst.get("sales_details") or {}
                purchases = gst.get("purchase_details") or {}
                if _any_negative(sales.get("total_sales"), tax_return.total_sales):
                    errors.append("Total sales cannot be negative")
                if _any_negative(purchases.get("total_purchases"), tax_return.total_purchases):
                    errors.append("Total purchases cannot be negative")
                if _any_negative(sales.get("gst_on_sales"), tax_return.gst_on_sales):
                    errors.append("GST on sales cannot be negative")
            if tax_return.net_gst is None or round2(tax_return.net_gst) != calculate_net_gst(
                tax_return.gst_on_sales, tax_return.gst_on_purchases
            ):
                errors.append("Net GST does not match GST on sales less GST on purchases")

        if tax_return.return_type == ReturnType.INCOME_TAX.value:
            income = data.get("income_tax")
            if not income:
                errors.append("Income tax return data is required")
            else:
                if _any_negative(income.get("gross_income"), tax_return.total_sales):
                    errors.append("Gross income cannot be negative")
                if _any_negative(income.get("allowable_deductions"), tax_return.total_purchases):
                    errors.append("Allowable deductions cannot be negative")

        try:
            start = parse_period_date(tax_return.period_start)
            end = parse_period_date(tax_return.period_end)
        except (TypeError, ValueError):
            errors.append("Invalid period dates")
        else:
            if start >= end:
                errors.append("Period start must be before period end")

        return ValidationResult(is_valid=not errors, errors=errors)

    async def _get_draft(self, tax_return_id: int, action: str) -> TaxReturn:
        tax_return = await self.store.get_tax_return_by_id(tax_return_id)
        if tax_return is None:
            raise TaxReturnNotFoundError(tax_return_id)
        if tax_return.status != TaxReturnStatus.DRAFT.value:
            raise InvalidStateTransitionError(
                f"Only draft tax returns can be {action}",
                current_status=tax_return.status,
                action=action,
            )
        return tax_return

    async def submit_tax_return(self, tax_return_id: int) -> SubmissionResult:
        """
        Submit a draft return through the gateway.

        Validation failures come back as an unsuccessful result; the return
        stays a draft. A concurrent submitter that loses the version race
        gets ConcurrentModificationError.

        Raises:
            TaxReturnNotFoundError: no such return
            InvalidStateTransitionError: return is not a draft
            ConcurrentModificationError: return changed since it was read
        """
        tax_return = await self._get_draft(tax_return_id, "submitted")

        validation = self.validate_tax_return(tax_return)
        if not validation.is_valid:
            metrics.tax_return_submission("invalid")
            logger.info("Tax return %s failed validation: %s", tax_return_id, validation.errors)
            return SubmissionResult(success=False, errors=validation.errors)

        version = tax_return.version
        receipt = await self.gateway.submit(tax_return, f"{tax_return.id}:{version}")

        try:
            updated = await self.store.update_tax_return(
                tax_return_id,
                {
                    "status": TaxReturnStatus.SUBMITTED.value,
                    "ird_reference": receipt.ird_reference,
                    "submitted_at": receipt.submitted_at,
                },
                expected_version=version,
            )
        except ConcurrentModificationError:
            metrics.tax_return_submission("conflict")
            raise

        metrics.tax_return_submission("submitted")
        logger.info(
            "Tax return %s submitted to IRD with reference %s",
            tax_return_id, receipt.ird_reference,
            extra={"tax_return_id": tax_return_id, "user_id": updated.user_id},
        )
        return SubmissionResult(
            success=True,
            ird_reference=updated.ird_reference,
            submitted_at=updated.submitted_at,
        )

    # ------------------------------------------------------------------
    # Draft maintenance & queries
    # ------------------------------------------------------------------

    async def update_tax_return(self, tax_return_id: int, patch: dict[str, Any]) -> TaxReturn:
        """
        Patch a draft return.

        Only `return_data` is editable. The total columns are re-derived from
        it, so they always agree with the return document.
        """
        tax_return = await self._get_draft(tax_return_id, "updated")
        blocked = sorted(_PROTECTED_FIELDS.intersection(patch))
        if blocked:
            raise InvalidStateTransitionError(
                f"Fields cannot be updated directly: {', '.join(blocked)}",
                current_status=tax_return.status,
                action="updated",
            )
        derived = sorted(_DERIVED_FIELDS.intersection(patch))
        if derived:
            raise InvalidRequestError(
                [f"{name} is derived from return_data" for name in derived],
                message="Invalid tax return data",
            )

        values = dict(patch)
        if "return_data" in values:
            try:
                data = IRDReturnData.model_validate(values["return_data"])
            except ValidationError as exc:
                errors = []
                for err in exc.errors():
                    location = ".".join(str(part) for part in err["loc"]) or "return_data"
                    errors.append(f"{location}: {err['msg']}")
                raise InvalidRequestError(errors, message="Invalid tax return data") from exc
            values["return_data"] = data.model_dump(mode="json")
            values.update(_derived_totals(tax_return.return_type, data))

        updated = await self.store.update_tax_return(tax_return_id, values, expected_version=tax_return.version)
        logger.info("Tax return %s updated: %s", tax_return_id, sorted(patch))
        return updated

    async def delete_tax_return(self, tax_return_id: int) -> None:
        await self._get_draft(tax_return_id, "deleted")
        if not await self.store.delete_tax_return(tax_return_id):
            # Submitted between the read and the delete
            raise ConcurrentModificationError(tax_return_id)
        logger.info("Tax return %s deleted", tax_return_id, extra={"tax_return_id": tax_return_id})

    async def get_tax_return_by_id(self, tax_return_id: int) -> Optional[TaxReturn]:
        return await self.store.get_tax_return_by_id(tax_return_id)

    async def get_tax_returns(
        self,
        user_id: int,
        return_type: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> Sequence[TaxReturn]:
        return await self.store.get_tax_returns_by_user(user_id, return_type, limit, offset)

    async def calculate_gst_summary(self, user_id: int, period_start: DateLike, period_end: DateLike) -> GSTSummary:
        """
        Tax overview figures from the tax amounts stored on records.

        Invoices without a stored tax amount have GST estimated as if
        inclusive; only claimable expenses count toward GST on purchases.
        """
        start, end = self.validate_period(period_start, period_end)
        config = await self._get_gst_configuration(user_id, end)
        rate = to_decimal(config.tax_rate)

        invoices, expenses = await asyncio.gather(
            self.store.get_invoices_by_period(user_id, start, end),
            self.store.get_expenses_by_period(user_id, start, end),
        )

        total_sales = Decimal("0")
        gst_on_sales = Decimal("0")
        for inv in invoices:
            total_sales += to_decimal(inv.total)
            if inv.tax_amount is not None:
                gst_on_sales += to_decimal(inv.tax_amount)
            elif (inv.gst_category or GSTCategory.STANDARD.value) == GSTCategory.STANDARD.value:
                gst_on_sales += extract_inclusive_tax(inv.total, rate)[1]

        total_purchases = Decimal("0")
        gst_on_purchases = Decimal("0")
        for exp in expenses:
            total_purchases += to_decimal(exp.amount)
            if expense_to_purchase(exp).taxable:
                gst_on_purchases += to_decimal(exp.tax_amount)

        metrics.tax_calculation_record()
        return GSTSummary(
            total_sales=round2(total_sales),
            total_purchases=round2(total_purchases),
            gst_on_sales=round2(gst_on_sales),
            gst_on_purchases=round2(gst_on_purchases),
            net_gst_position=calculate_net_gst(gst_on_sales, gst_on_purchases),
        )
