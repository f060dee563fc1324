"""IRD submission gateway.

Returns are handed to IRD through a `SubmissionGateway`. Until gateway
services access is granted the only implementation is simulated: it issues
a reference locally and transmits nothing.

Gateways receive an idempotency key ("<tax_return_id>:<version>") so a
retried submission of the same draft version maps to the same reference.
"""
from __future__ import annotations

import logging
import secrets
import time
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Protocol

from kiwibooks.core.exceptions import SubmissionGatewayNotConfigured

logger = logging.getLogger(__name__)


@dataclass
class IRDGatewayConfig:
    base_url: str | None = None
    api_key: str | None = None
    timeout_seconds: int = 10
    enabled: bool = False  # Feature flag gating real transmissions


@dataclass(frozen=True)
class SubmissionReceipt:
    ird_reference: str
    submitted_at: datetime
    mode: str = "simulated"


class SubmissionGateway(Protocol):
    async def submit(self, tax_return: Any, idempotency_key: str) -> SubmissionReceipt:
        ...


@dataclass
class SimulatedIRDGateway:
    """Gateway that fabricates `IRD-<ms>-<hex>` references.

    Repeated keys return the receipt issued the first time. Only the most
    recent `max_tracked_keys` receipts are remembered; a key is only ever
    repeated by submitters racing on the same draft version.
    """
    config: IRDGatewayConfig = field(default_factory=IRDGatewayConfig)
    max_tracked_keys: int = 1024
    _issued: OrderedDict[str, SubmissionReceipt] = field(default_factory=OrderedDict, repr=False)

    async def submit(self, tax_return: Any, idempotency_key: str) -> SubmissionReceipt:
        if idempotency_key in self._issued:
            logger.info("Duplicate IRD submission key %s, returning original receipt", idempotency_key)
            self._issued.move_to_end(idempotency_key)
            return self._issued[idempotency_key]

        reference = f"IRD-{int(time.time() * 1000)}-{secrets.token_hex(4).upper()}"
        receipt = SubmissionReceipt(ird_reference=reference, submitted_at=datetime.now(timezone.utc))
        self._issued[idempotency_key] = receipt
        while len(self._issued) > self.max_tracked_keys:
            self._issued.popitem(last=False)
        logger.info(
            "Simulated IRD submission %s for %s return %s",
            reference,
            getattr(tax_return, "return_type", "?"),
            getattr(tax_return, "id", None),
        )
        return receipt


def get_ird_gateway() -> SubmissionGateway:
    """Build the gateway from runtime settings.

    Raises:
        SubmissionGatewayNotConfigured: submission enabled without URL or key
    """
    from kiwibooks.core.config import settings

    cfg = IRDGatewayConfig(
        base_url=settings.IRD_API_URL,
        api_key=settings.IRD_API_KEY,
        enabled=settings.IRD_SUBMISSION_ENABLED,
    )
    if cfg.enabled:
        if not cfg.base_url:
            raise SubmissionGatewayNotConfigured("IRD_API_URL")
        if not cfg.api_key:
            raise SubmissionGatewayNotConfigured("IRD_API_KEY")
        # Live transport is not available yet; enabled deployments still simulate
        logger.warning("IRD submission enabled but no live transport exists; using simulated gateway")
    return SimulatedIRDGateway(cfg)
