"""Common dependencies for the tax routes."""
from functools import lru_cache
from typing import Annotated, TypeAlias

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from kiwibooks.db.session import get_db
from kiwibooks.services.ird_gateway import SubmissionGateway, get_ird_gateway
from kiwibooks.services.tax_config_service import TaxConfigurationService
from kiwibooks.services.tax_data_store import SQLAlchemyTaxDataStore
from kiwibooks.services.tax_reporting import ComplianceReporter, IRDReportingService


def get_current_user_id(x_user_id: Annotated[str | None, Header()] = None) -> int:
    """
    Caller identity, resolved upstream and forwarded as X-User-Id.

    Raises HTTPException 401 when the header is missing or not an integer.
    """
    if not x_user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing X-User-Id header")
    try:
        return int(x_user_id)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid X-User-Id header") from exc


CurrentUserDep: TypeAlias = Annotated[int, Depends(get_current_user_id)]
DbDep: TypeAlias = Annotated[Session, Depends(get_db)]


@lru_cache
def get_gateway() -> SubmissionGateway:
    # One gateway per process so idempotency keys are remembered across requests
    return get_ird_gateway()


def get_tax_data_store(db: DbDep) -> SQLAlchemyTaxDataStore:
    return SQLAlchemyTaxDataStore(db)


def get_config_service(db: DbDep) -> TaxConfigurationService:
    return TaxConfigurationService(db)


def get_reporting_service(
    store: Annotated[SQLAlchemyTaxDataStore, Depends(get_tax_data_store)],
    gateway: Annotated[SubmissionGateway, Depends(get_gateway)],
) -> IRDReportingService:
    return IRDReportingService(store, gateway)


def get_compliance_reporter(
    store: Annotated[SQLAlchemyTaxDataStore, Depends(get_tax_data_store)],
) -> ComplianceReporter:
    return ComplianceReporter(store)


ConfigServiceDep: TypeAlias = Annotated[TaxConfigurationService, Depends(get_config_service)]
ReportingServiceDep: TypeAlias = Annotated[IRDReportingService, Depends(get_reporting_service)]
ComplianceReporterDep: TypeAlias = Annotated[ComplianceReporter, Depends(get_compliance_reporter)]
