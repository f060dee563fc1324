"""Metrics facade.

Service code should ONLY call the semantic helpers here so the backend can
change without touching the tax services.

Metrics:
- tax_calculations_total                 Line-item tax calculations served
- tax_returns_generated_total            GST / income tax returns generated
- tax_return_submissions_total           Submission attempts by outcome
- tax_configuration_updates_total        Tax rate supersessions
- compliance_reports_total               Compliance reports generated
"""

from __future__ import annotations

import logging

from prometheus_client import Counter

logger = logging.getLogger("metrics")

_TAX_CALCULATIONS = Counter("tax_calculations_total", "Line-item tax calculations served")
_TAX_RETURNS_GENERATED = Counter(
    "tax_returns_generated_total", "Tax returns generated", ["return_type"]
)
_TAX_RETURN_SUBMISSIONS = Counter(
    "tax_return_submissions_total", "Tax return submission attempts", ["outcome"]
)
_TAX_CONFIGURATION_UPDATES = Counter(
    "tax_configuration_updates_total", "Tax configuration supersessions"
)
_COMPLIANCE_REPORTS = Counter("compliance_reports_total", "Compliance reports generated")


def tax_calculation_record():
    _TAX_CALCULATIONS.inc()


def tax_return_generated(return_type: str):
    _TAX_RETURNS_GENERATED.labels(return_type=return_type).inc()
    logger.debug("metric tax_returns_generated_total[return_type=%s] += 1", return_type)


def tax_return_submission(outcome: str):
    """outcome: submitted | invalid | conflict"""
    _TAX_RETURN_SUBMISSIONS.labels(outcome=outcome).inc()
    logger.debug("metric tax_return_submissions_total[outcome=%s] += 1", outcome)


def tax_configuration_updated():
    _TAX_CONFIGURATION_UPDATES.inc()


def compliance_report_record():
    _COMPLIANCE_REPORTS.inc()


__all__ = [
    "tax_calculation_record",
    "tax_return_generated",
    "tax_return_submission",
    "tax_configuration_updated",
    "compliance_report_record",
]
