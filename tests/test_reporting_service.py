"""Tests for IRD return generation, validation and the draft/submitted lifecycle."""
import asyncio
from datetime import date, datetime, timezone
from decimal import Decimal
from types import SimpleNamespace

import pytest

from kiwibooks.core.exceptions import (
    ConcurrentModificationError,
    InvalidPeriodError,
    InvalidRequestError,
    InvalidStateTransitionError,
    MissingTaxConfigurationError,
    TaxReturnNotFoundError,
)
from kiwibooks.models.tax_models import TaxConfiguration
from kiwibooks.services.tax_data_store import SQLAlchemyTaxDataStore
from kiwibooks.services.tax_reporting import IRDReportingService

Q1_START, Q1_END = "2024-01-01", "2024-03-31"


@pytest.fixture
def service(db_session, recording_gateway):
    return IRDReportingService(SQLAlchemyTaxDataStore(db_session), recording_gateway)


@pytest.fixture
def q1_records(invoice_factory, expense_factory):
    invoice_factory("115.00")                                      # inclusive by default
    invoice_factory("200.00", tax_inclusive=False)
    invoice_factory("50.00", gst_category="zero_rated")
    invoice_factory("80.00", gst_category="exempt")
    invoice_factory("23.00", payment_status="written_off", tax_amount=Decimal("3.00"))
    invoice_factory("999.00", on=date(2024, 4, 2))                  # outside the period
    invoice_factory("999.00", user_id=2)                            # someone else
    expense_factory("46.00", "OFFICE_SUPPLIES")
    expense_factory("1150.00", "EQUIPMENT")
    expense_factory("20.00", "BANK_FEES")
    expense_factory("100.00", "NON_DEDUCTIBLE")


@pytest.mark.asyncio
async def test_generate_gst_return(service, q1_records):
    tax_return = await service.generate_gst_return(1, Q1_START, Q1_END)

    assert tax_return.status == "draft"
    assert tax_return.version == 1
    assert tax_return.return_type == "GST"
    assert tax_return.total_sales == Decimal("418.00")
    assert tax_return.gst_on_sales == Decimal("48.00")
    assert tax_return.total_purchases == Decimal("1316.00")
    assert tax_return.gst_on_purchases == Decimal("156.00")
    assert tax_return.net_gst == Decimal("-108.00")

    gst = tax_return.return_data["gst_return"]
    assert Decimal(gst["sales_details"]["standard_rated"]) == Decimal("338.00")
    assert Decimal(gst["sales_details"]["zero_rated"]) == Decimal("50.00")
    assert Decimal(gst["sales_details"]["exempt"]) == Decimal("80.00")
    assert Decimal(gst["purchase_details"]["standard_rated"]) == Decimal("1196.00")
    assert Decimal(gst["purchase_details"]["capital_goods"]) == Decimal("1150.00")
    assert Decimal(gst["adjustments"]["bad_debts"]) == Decimal("3.00")


@pytest.mark.asyncio
async def test_capital_goods_includes_flagged_expenses(service, expense_factory):
    expense_factory("500.00", "OTHER", is_capital_expense=True)
    expense_factory("200.00", "VEHICLES")
    expense_factory("75.00", "TRAVEL")

    tax_return = await service.generate_gst_return(1, Q1_START, Q1_END)
    capital = tax_return.return_data["gst_return"]["purchase_details"]["capital_goods"]
    assert Decimal(capital) == Decimal("700.00")


@pytest.mark.asyncio
async def test_gst_return_requires_gst_configuration(service, db_session):
    db_session.add(TaxConfiguration(
        user_id=1,
        country_code="NZ",
        tax_type="VAT",
        tax_rate=Decimal("0.20"),
        tax_name="VAT",
        effective_from=date(2020, 1, 1),
        is_active=True,
    ))
    db_session.commit()

    with pytest.raises(MissingTaxConfigurationError) as exc_info:
        await service.generate_gst_return(1, Q1_START, Q1_END)
    assert exc_info.value.message == "GST configuration not found for user"


@pytest.mark.asyncio
async def test_gst_return_rejects_future_period(db_session, recording_gateway):
    clock = lambda: datetime(2024, 3, 15, tzinfo=timezone.utc)  # noqa: E731
    service = IRDReportingService(SQLAlchemyTaxDataStore(db_session), recording_gateway, clock=clock)
    with pytest.raises(InvalidPeriodError):
        await service.generate_gst_return(1, Q1_START, Q1_END)


@pytest.mark.asyncio
async def test_generate_income_return(service, invoice_factory, expense_factory):
    invoice_factory("50000")
    invoice_factory("30000")
    expense_factory("20000", "RENT")
    expense_factory("5000", "NON_DEDUCTIBLE")

    tax_return = await service.generate_income_return(1, "2023-04-01", "2024-03-31")

    assert tax_return.return_type == "Income_Tax"
    assert tax_return.total_sales == Decimal("80000.00")
    assert tax_return.total_purchases == Decimal("20000.00")
    assert tax_return.net_gst == Decimal("0")
    income = tax_return.return_data["income_tax"]
    assert Decimal(income["taxable_income"]) == Decimal("60000.00")
    assert Decimal(income["tax_due"]) == Decimal("11020.00")
    assert Decimal(income["provisional_tax"]) == Decimal("1157.10")


@pytest.mark.asyncio
async def test_submit_moves_draft_to_submitted(service, recording_gateway, q1_records):
    tax_return = await service.generate_gst_return(1, Q1_START, Q1_END)

    result = await service.submit_tax_return(tax_return.id)

    assert result.success is True
    assert result.ird_reference == "IRD-TEST-0001"
    assert recording_gateway.keys == [f"{tax_return.id}:1"]
    stored = await service.get_tax_return_by_id(tax_return.id)
    assert stored.status == "submitted"
    assert stored.ird_reference == "IRD-TEST-0001"
    assert stored.submitted_at is not None
    assert stored.version == 2


@pytest.mark.asyncio
async def test_submitted_return_is_terminal(service, q1_records):
    tax_return = await service.generate_gst_return(1, Q1_START, Q1_END)
    await service.submit_tax_return(tax_return.id)

    with pytest.raises(InvalidStateTransitionError) as exc_info:
        await service.submit_tax_return(tax_return.id)
    assert exc_info.value.message == "Only draft tax returns can be submitted"

    with pytest.raises(InvalidStateTransitionError):
        await service.delete_tax_return(tax_return.id)

    with pytest.raises(InvalidStateTransitionError):
        await service.update_tax_return(tax_return.id, {"net_gst": Decimal("1.00")})


@pytest.mark.asyncio
async def test_submit_unknown_return(service):
    with pytest.raises(TaxReturnNotFoundError):
        await service.submit_tax_return(4242)


@pytest.mark.asyncio
async def test_invalid_return_is_not_submitted(service, recording_gateway, q1_records):
    tax_return = await service.generate_gst_return(1, Q1_START, Q1_END)
    data = dict(tax_return.return_data)
    data["gst_return"] = {
        **data["gst_return"],
        "sales_details": {**data["gst_return"]["sales_details"], "total_sales": "-1.00"},
    }
    await service.update_tax_return(tax_return.id, {"return_data": data})

    result = await service.submit_tax_return(tax_return.id)

    assert result.success is False
    assert result.errors == ["Total sales cannot be negative"]
    assert recording_gateway.keys == []
    stored = await service.get_tax_return_by_id(tax_return.id)
    assert stored.status == "draft"
    assert stored.version == 2


@pytest.mark.asyncio
async def test_concurrent_submissions_have_one_winner(service, recording_gateway, q1_records):
    tax_return = await service.generate_gst_return(1, Q1_START, Q1_END)

    results = await asyncio.gather(
        service.submit_tax_return(tax_return.id),
        service.submit_tax_return(tax_return.id),
        return_exceptions=True,
    )

    successes = [r for r in results if not isinstance(r, Exception)]
    conflicts = [r for r in results if isinstance(r, ConcurrentModificationError)]
    assert len(successes) == 1 and successes[0].success is True
    assert len(conflicts) == 1
    assert conflicts[0].status_code == 409
    # Both submitters presented the same version key to the gateway
    assert recording_gateway.keys == [f"{tax_return.id}:1", f"{tax_return.id}:1"]
    stored = await service.get_tax_return_by_id(tax_return.id)
    assert stored.status == "submitted"
    assert stored.ird_reference == successes[0].ird_reference


@pytest.mark.asyncio
async def test_stale_version_update_conflicts(db_session, q1_records, service):
    store = SQLAlchemyTaxDataStore(db_session)
    tax_return = await service.generate_gst_return(1, Q1_START, Q1_END)
    await store.update_tax_return(tax_return.id, {"net_gst": Decimal("1.00")}, expected_version=1)

    with pytest.raises(ConcurrentModificationError):
        await store.update_tax_return(tax_return.id, {"net_gst": Decimal("2.00")}, expected_version=1)


@pytest.mark.asyncio
async def test_update_rejects_submission_fields(service, q1_records):
    tax_return = await service.generate_gst_return(1, Q1_START, Q1_END)
    with pytest.raises(InvalidStateTransitionError):
        await service.update_tax_return(tax_return.id, {"status": "submitted"})


@pytest.mark.asyncio
async def test_delete_draft(service, q1_records):
    tax_return = await service.generate_gst_return(1, Q1_START, Q1_END)
    await service.delete_tax_return(tax_return.id)
    assert await service.get_tax_return_by_id(tax_return.id) is None
    with pytest.raises(TaxReturnNotFoundError):
        await service.delete_tax_return(tax_return.id)


@pytest.mark.asyncio
async def test_list_returns_filters_by_type(service, q1_records):
    await service.generate_gst_return(1, Q1_START, Q1_END)
    await service.generate_income_return(1, Q1_START, Q1_END)

    assert len(await service.get_tax_returns(1)) == 2
    gst_only = await service.get_tax_returns(1, "GST")
    assert [r.return_type for r in gst_only] == ["GST"]
    assert await service.get_tax_returns(2) == []


def test_validate_tax_return_reports_missing_data(service):
    result = service.validate_tax_return(SimpleNamespace(
        return_type="GST",
        return_data=None,
        total_sales=Decimal("0.00"),
        total_purchases=Decimal("0.00"),
        gst_on_sales=Decimal("0.00"),
        gst_on_purchases=Decimal("0.00"),
        net_gst=Decimal("0.00"),
        period_start=date(2024, 3, 31),
        period_end=date(2024, 1, 1),
    ))
    assert result.is_valid is False
    assert result.errors == [
        "GST return data is required",
        "Period start must be before period end",
    ]


def test_validate_income_return(service):
    result = service.validate_tax_return(SimpleNamespace(
        return_type="Income_Tax",
        return_data={"income_tax": {"gross_income": "-5", "allowable_deductions": "-1"}},
        total_sales=Decimal("0.00"),
        total_purchases=Decimal("0.00"),
        period_start=date(2024, 1, 1),
        period_end=date(2024, 3, 31),
    ))
    assert result.errors == [
        "Gross income cannot be negative",
        "Allowable deductions cannot be negative",
    ]


@pytest.mark.asyncio
async def test_gst_summary_uses_stored_tax(service, invoice_factory, expense_factory):
    invoice_factory("115.00", tax_amount=Decimal("15.00"))
    invoice_factory("230.00")                                       # estimated: 30.00
    invoice_factory("50.00", gst_category="zero_rated")             # no GST
    expense_factory("46.00", "OFFICE_SUPPLIES", tax_amount=Decimal("6.00"))
    expense_factory("20.00", "BANK_FEES", tax_amount=Decimal("2.00"))
    expense_factory("69.00", "TRAVEL", tax_amount=Decimal("9.00"), is_claimable=False)

    summary = await service.calculate_gst_summary(1, Q1_START, Q1_END)

    assert summary.total_sales == Decimal("395.00")
    assert summary.gst_on_sales == Decimal("45.00")
    assert summary.total_purchases == Decimal("135.00")
    assert summary.gst_on_purchases == Decimal("6.00")
    assert summary.net_gst_position == Decimal("39.00")


@pytest.mark.asyncio
async def test_gst_summary_counts_unflagged_expenses_as_claimable(service, expense_factory):
    expense_factory("46.00", "OFFICE_SUPPLIES", tax_amount=Decimal("6.00"), is_claimable=None)

    summary = await service.calculate_gst_summary(1, Q1_START, Q1_END)
    tax_return = await service.generate_gst_return(1, Q1_START, Q1_END)

    assert summary.gst_on_purchases == Decimal("6.00")
    assert tax_return.gst_on_purchases == summary.gst_on_purchases


@pytest.mark.asyncio
async def test_update_rejects_total_columns(service, recording_gateway, q1_records):
    tax_return = await service.generate_gst_return(1, Q1_START, Q1_END)

    with pytest.raises(InvalidRequestError) as exc_info:
        await service.update_tax_return(
            tax_return.id, {"total_sales": Decimal("-500.00"), "gst_on_sales": Decimal("-9.00")}
        )

    assert exc_info.value.errors == [
        "gst_on_sales is derived from return_data",
        "total_sales is derived from return_data",
    ]
    stored = await service.get_tax_return_by_id(tax_return.id)
    assert stored.total_sales == Decimal("418.00")
    assert stored.version == 1


@pytest.mark.asyncio
async def test_update_rederives_totals_from_return_data(service, q1_records):
    tax_return = await service.generate_gst_return(1, Q1_START, Q1_END)
    data = dict(tax_return.return_data)
    data["gst_return"] = {
        **data["gst_return"],
        "sales_details": {**data["gst_return"]["sales_details"], "gst_on_sales": "60.00"},
    }

    updated = await service.update_tax_return(tax_return.id, {"return_data": data})

    assert updated.gst_on_sales == Decimal("60.00")
    assert updated.net_gst == Decimal("-96.00")
    assert updated.total_sales == Decimal("418.00")
    assert updated.version == 2


@pytest.mark.asyncio
async def test_update_rejects_malformed_return_data(service, q1_records):
    tax_return = await service.generate_gst_return(1, Q1_START, Q1_END)

    with pytest.raises(InvalidRequestError):
        await service.update_tax_return(tax_return.id, {"return_data": None})
    with pytest.raises(InvalidRequestError) as exc_info:
        await service.update_tax_return(tax_return.id, {"return_data": {"income_tax": None}})
    assert exc_info.value.errors == ["GST return data is required"]


@pytest.mark.asyncio
async def test_negative_total_columns_block_submission(db_session, service, recording_gateway, q1_records):
    tax_return = await service.generate_gst_return(1, Q1_START, Q1_END)
    store = SQLAlchemyTaxDataStore(db_session)
    await store.update_tax_return(
        tax_return.id,
        {"total_sales": Decimal("-500.00"), "gst_on_sales": Decimal("-9.00")},
        expected_version=1,
    )

    result = await service.submit_tax_return(tax_return.id)

    assert result.success is False
    assert result.errors == [
        "Total sales cannot be negative",
        "GST on sales cannot be negative",
        "Net GST does not match GST on sales less GST on purchases",
    ]
    assert recording_gateway.keys == []
    stored = await service.get_tax_return_by_id(tax_return.id)
    assert stored.status == "draft"
