"""
Tax Configuration Service.

Handles default creation, effective-date lookup and rate supersession.
Following SRP: tax configuration records only.
"""
import logging
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy.orm import Session

from kiwibooks.core.config import settings
from kiwibooks.core.exceptions import InvalidConfigurationError
from kiwibooks.models.tax_models import TaxConfiguration, TaxType
from kiwibooks.services.tax_calculation.rounding import to_decimal

logger = logging.getLogger(__name__)


class TaxConfigurationService:
    """
    Manage tax configurations for users.

    Responsibilities:
    - Resolve the configuration in force on a date
    - Create the NZ default on first use
    - Supersede the current rate with a new one
    """

    def __init__(self, db: Session):
        self.db = db

    def _today(self) -> date:
        return datetime.now(timezone.utc).date()

    def get_active_configuration(
        self,
        user_id: int,
        country_code: Optional[str] = None,
        as_of: Optional[date] = None,
    ) -> Optional[TaxConfiguration]:
        """
        Configuration in force on `as_of` (default today).

        A user with no configuration rows at all gets the default created.
        A user whose configurations do not cover the date gets None.
        """
        country_code = country_code or settings.DEFAULT_COUNTRY_CODE
        on = as_of or self._today()
        configs = (
            self.db.query(TaxConfiguration)
            .filter(
                TaxConfiguration.user_id == user_id,
                TaxConfiguration.country_code == country_code,
            )
            .order_by(TaxConfiguration.effective_from.desc())
            .all()
        )
        if not configs:
            return self.create_default_configuration(user_id, country_code)

        for config in configs:
            if config.covers(on):
                return config
        logger.warning("No tax configuration covers %s for user %s (%s)", on, user_id, country_code)
        return None

    def create_default_configuration(self, user_id: int, country_code: Optional[str] = None) -> TaxConfiguration:
        """Create the default configuration from settings (NZ GST 15%)."""
        country_code = country_code or settings.DEFAULT_COUNTRY_CODE
        config = TaxConfiguration(
            user_id=user_id,
            country_code=country_code,
            tax_type=settings.DEFAULT_TAX_TYPE,
            tax_rate=Decimal(str(settings.DEFAULT_TAX_RATE)),
            tax_name=settings.DEFAULT_TAX_NAME,
            applies_to_services=True,
            applies_to_goods=True,
            effective_from=date.fromisoformat(settings.DEFAULT_TAX_EFFECTIVE_FROM),
            is_active=True,
        )
        self.db.add(config)
        self.db.commit()
        self.db.refresh(config)
        logger.info("Default tax configuration created for user %s (%s)", user_id, country_code)
        return config

    def supersede_configuration(
        self,
        user_id: int,
        tax_rate: Decimal | float | str,
        effective_from: date,
        tax_name: Optional[str] = None,
        tax_type: str = TaxType.GST.value,
        country_code: Optional[str] = None,
        applies_to_services: bool = True,
        applies_to_goods: bool = True,
    ) -> TaxConfiguration:
        """
        Start a new rate on `effective_from`.

        The configuration currently covering that date is closed the day
        before. Configurations starting on or after `effective_from` are
        deactivated since the new record replaces them.

        Raises:
            InvalidConfigurationError: rate outside [0, 1] or unknown tax type
        """
        country_code = country_code or settings.DEFAULT_COUNTRY_CODE
        rate = to_decimal(tax_rate)
        if rate < 0 or rate > 1:
            raise InvalidConfigurationError("Tax rate must be between 0 and 1", tax_rate=rate)
        try:
            tax_type = TaxType(tax_type).value
        except ValueError as exc:
            raise InvalidConfigurationError(f"Unsupported tax type: {tax_type}") from exc

        existing = (
            self.db.query(TaxConfiguration)
            .filter(
                TaxConfiguration.user_id == user_id,
                TaxConfiguration.country_code == country_code,
                TaxConfiguration.is_active.is_(True),
            )
            .all()
        )
        for config in existing:
            if config.effective_from >= effective_from:
                config.is_active = False
            elif config.effective_to is None or config.effective_to >= effective_from:
                config.effective_to = effective_from - timedelta(days=1)

        new_config = TaxConfiguration(
            user_id=user_id,
            country_code=country_code,
            tax_type=tax_type,
            tax_rate=rate,
            tax_name=tax_name or tax_type,
            applies_to_services=applies_to_services,
            applies_to_goods=applies_to_goods,
            effective_from=effective_from,
            is_active=True,
        )
        self.db.add(new_config)
        self.db.commit()
        self.db.refresh(new_config)
        logger.info(
            "Tax configuration superseded for user %s: %s %s from %s",
            user_id, tax_type, rate, effective_from,
        )
        return new_config
