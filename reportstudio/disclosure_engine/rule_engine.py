# -*- coding: utf-8 -*-
"""
Validation Rule Engine - Report Studio Disclosure Engine

Evaluates section-scoped validation rules against a *prospective* data
point, i.e. the state the data point would have after a pending write.
Evaluation walks the active rules of the section in insertion order and
stops at the first failing rule, whose configured error message is
returned verbatim. The engine never mutates anything; the entity store
rejects the whole write when a message comes back.

Zero-Hallucination Guarantees:
    - Rule kinds form a closed set, each with exactly one evaluator
    - Unknown rule kinds are rejected when a rule is defined
    - All evaluations are deterministic comparisons
    - No ML/LLM calls in the evaluation path

Rule Kinds:
    - non-negative: numeric Value must not be below zero
    - required-unit: a present Value needs a Unit
    - allowed-units: Unit must match a JSON list of allowed units
      (case-insensitive; malformed parameters fail open)
    - value-within-period: a date Value must fall inside the reporting
      period (skipped when either date cannot be parsed)

Example:
    >>> from reportstudio.disclosure_engine.rule_engine import ValidationRuleEngine
    >>> engine = ValidationRuleEngine()
    >>> engine.validate_definition("sec-1", "non-negative", "Negative!", "user-1")
    >>> engine.validate_definition("sec-1", "positive", "x", "user-1")
    'RuleType must be one of: non-negative, required-unit, allowed-units, value-within-period.'

Author: Report Studio Platform Team
Date: October 2026
Status: Production Ready
"""

from __future__ import annotations

import json
import logging
import math
from datetime import date, datetime
from typing import Callable, Dict, List, Optional, Sequence

from reportstudio.disclosure_engine.metrics import record_rule_evaluation
from reportstudio.disclosure_engine.models import (
    DataPoint,
    ReportingPeriod,
    RuleKind,
    ValidationRule,
    enum_values,
    is_blank,
)

logger = logging.getLogger(__name__)

__all__ = [
    "ValidationRuleEngine",
    "parse_number",
    "parse_date_text",
    "RESULT_PASS",
    "RESULT_FAIL",
    "RESULT_SKIP",
]


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

RESULT_PASS = "pass"
RESULT_FAIL = "fail"
RESULT_SKIP = "skip"

_DATE_FORMATS = (
    "%Y-%m-%d",
    "%Y/%m/%d",
    "%m/%d/%Y",
    "%d.%m.%Y",
    "%d %B %Y",
    "%d %b %Y",
    "%B %d, %Y",
    "%b %d, %Y",
    "%Y-%m-%d %H:%M:%S",
    "%m/%d/%Y %H:%M:%S",
)


# ---------------------------------------------------------------------------
# Permissive parsing helpers
# ---------------------------------------------------------------------------


def parse_number(value: Optional[str]) -> Optional[float]:
    """Parse free text as a finite number, or return None."""
    if is_blank(value) or "_" in str(value):
        return None
    try:
        number = float(str(value).strip())
    except ValueError:
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def parse_date_text(value: Optional[str]) -> Optional[date]:
    """Parse free text as a calendar date, or return None.

    Accepts ISO-8601 dates and timestamps (including a ``Z`` suffix)
    plus a handful of common written formats. Anything else is treated
    as "not a date" rather than an error.

    Args:
        value: Text to parse.

    Returns:
        Parsed date, or None if unparseable.
    """
    if is_blank(value):
        return None
    s = str(value).strip()
    try:
        return date.fromisoformat(s)
    except ValueError:
        pass
    try:
        iso_s = s.replace("Z", "+00:00") if s.endswith("Z") else s
        return datetime.fromisoformat(iso_s).date()
    except ValueError:
        pass
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(s, fmt).date()
        except ValueError:
            continue
    return None


# ---------------------------------------------------------------------------
# ValidationRuleEngine
# ---------------------------------------------------------------------------


class ValidationRuleEngine:
    """Stateless evaluator for section validation rules.

    Each rule kind maps to exactly one evaluator method. Evaluators
    return ``RESULT_PASS``, ``RESULT_FAIL`` or ``RESULT_SKIP`` (the rule
    did not apply to the prospective values).
    """

    def __init__(self) -> None:
        self._evaluators: Dict[
            str,
            Callable[[ValidationRule, DataPoint, Optional[ReportingPeriod]], str],
        ] = {
            RuleKind.NON_NEGATIVE.value: self._evaluate_non_negative,
            RuleKind.REQUIRED_UNIT.value: self._evaluate_required_unit,
            RuleKind.ALLOWED_UNITS.value: self._evaluate_allowed_units,
            RuleKind.VALUE_WITHIN_PERIOD.value: self._evaluate_value_within_period,
        }

    # ------------------------------------------------------------------
    # Rule definition checks
    # ------------------------------------------------------------------

    @staticmethod
    def normalize_rule_type(rule_type: Optional[str]) -> str:
        return (rule_type or "").strip().lower()

    def validate_definition(
        self,
        section_id: Optional[str],
        rule_type: Optional[str],
        error_message: Optional[str],
        author: Optional[str],
        author_field: str = "CreatedBy",
    ) -> Optional[str]:
        """Check the required parts of a rule definition.

        Args:
            section_id: Owning section id; pass ``None`` to skip the
                check (updates cannot move a rule between sections).
            rule_type: Requested rule kind (case-insensitive).
            error_message: Message returned when the rule fails.
            author: Acting user id.
            author_field: Name used for the author in the message.

        Returns:
            Failure message, or None if the definition is acceptable.
        """
        if section_id is not None and is_blank(section_id):
            return "SectionId is required."
        if is_blank(rule_type):
            return "RuleType is required."
        if is_blank(error_message):
            return "ErrorMessage is required."
        if is_blank(author):
            return f"{author_field} is required."
        if self.normalize_rule_type(rule_type) not in self._evaluators:
            return f"RuleType must be one of: {', '.join(enum_values(RuleKind))}."
        return None

    # ------------------------------------------------------------------
    # Evaluation
    # ------------------------------------------------------------------

    def evaluate(
        self,
        rules: Sequence[ValidationRule],
        data_point: DataPoint,
        period: Optional[ReportingPeriod] = None,
    ) -> Optional[str]:
        """Evaluate the active rules of a section against a prospective data point.

        Args:
            rules: Rules of the data point's section, in insertion order.
            data_point: Prospective data point.
            period: Reporting period owning the section, if known.

        Returns:
            The error message of the first failing rule, or None when
            every rule passes or is skipped.
        """
        for rule in rules:
            if not rule.is_active or rule.section_id != data_point.section_id:
                continue
            result = self.evaluate_rule(rule, data_point, period)
            if result == RESULT_FAIL:
                logger.debug(
                    "Rule %s (%s) rejected data point %s",
                    rule.id, rule.rule_type, data_point.id,
                )
                return rule.error_message
        return None

    def evaluate_rule(
        self,
        rule: ValidationRule,
        data_point: DataPoint,
        period: Optional[ReportingPeriod] = None,
    ) -> str:
        """Evaluate a single rule and record the outcome."""
        kind = self.normalize_rule_type(rule.rule_type)
        evaluator = self._evaluators[kind]
        result = evaluator(rule, data_point, period)
        record_rule_evaluation(kind, result)
        return result

    def _evaluate_non_negative(
        self,
        rule: ValidationRule,
        data_point: DataPoint,
        period: Optional[ReportingPeriod],
    ) -> str:
        number = parse_number(data_point.value)
        if number is None:
            return RESULT_SKIP
        return RESULT_FAIL if number < 0 else RESULT_PASS

    def _evaluate_required_unit(
        self,
        rule: ValidationRule,
        data_point: DataPoint,
        period: Optional[ReportingPeriod],
    ) -> str:
        if is_blank(data_point.value):
            return RESULT_SKIP
        return RESULT_FAIL if is_blank(data_point.unit) else RESULT_PASS

    def _evaluate_allowed_units(
        self,
        rule: ValidationRule,
        data_point: DataPoint,
        period: Optional[ReportingPeriod],
    ) -> str:
        """Check the unit against a JSON list of allowed units.

        Absent unit, absent or empty parameters, and parameters that are
        not a JSON list of strings all skip the rule.
        """
        if is_blank(data_point.unit) or is_blank(rule.parameters):
            return RESULT_SKIP
        try:
            allowed = json.loads(rule.parameters)
        except ValueError:
            logger.debug("Rule %s has malformed allowed-units parameters", rule.id)
            return RESULT_SKIP
        if not isinstance(allowed, list) or not allowed:
            return RESULT_SKIP
        if not all(isinstance(unit, str) for unit in allowed):
            return RESULT_SKIP

        unit = data_point.unit.strip().lower()
        if any(unit == candidate.strip().lower() for candidate in allowed):
            return RESULT_PASS
        return RESULT_FAIL

    def _evaluate_value_within_period(
        self,
        rule: ValidationRule,
        data_point: DataPoint,
        period: Optional[ReportingPeriod],
    ) -> str:
        value_date = parse_date_text(data_point.value)
        if value_date is None or period is None:
            return RESULT_SKIP
        if period.start_date is None or period.end_date is None:
            return RESULT_SKIP
        if value_date < period.start_date or value_date > period.end_date:
            return RESULT_FAIL
        return RESULT_PASS

    @property
    def supported_rule_types(self) -> List[str]:
        return list(self._evaluators)
