"""Coercion helpers shared by the enrichment, aggregation and report modules.

None of these functions raise on malformed input: a value that cannot be read as a number becomes 0, a scope that
cannot be classified becomes 0 (unclassified).
"""

from __future__ import annotations

import logging
import math
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Iterable, Mapping, Optional

import pandas as pd

from .configs import LoggingConfig, ReportConfig, ScopesConfig
from .data.osc_units import kg_to_t

logger = logging.getLogger(__name__)
LoggingConfig.add_config_to_logger(logger)


def is_falsy(value: Any) -> bool:
    """True for None, 0, empty strings/containers and NaN (which Python otherwise treats as truthy)"""
    if isinstance(value, float) and math.isnan(value):
        return True
    try:
        return not value
    except (TypeError, ValueError):
        # pd.NA and friends refuse to be truth-tested
        return pd.isna(value) is True


def first_non_falsy(record: Mapping[str, Any], keys: Iterable[str], default: Any = None) -> Any:
    """Return the value of the first key in KEYS whose value in RECORD is not falsy.

    :param record: Anything with a mapping-style `get`
    :param keys: Accessor keys, in order of precedence
    :param default: Returned when no key yields a usable value
    """
    for key in keys:
        value = record.get(key)
        if not is_falsy(value):
            return value
    return default


def as_number(value: Any) -> float:
    """Coerce VALUE to a finite float. None, NaN, infinities and anything unparseable give 0."""
    if value is None:
        return 0.0
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError):
        logger.debug(f"Could not read {value!r} as a number; using 0")
        return 0.0
    if not math.isfinite(number):
        return 0.0
    return number


def normalize_scope_number(value: Any) -> int:
    """Map a scope representation (2, "2", "Scope 2", "scope2") to its scope number.

    The digits "1", "2" and "3" are looked for as substrings, in that order, so "Scope 12" classifies as scope 1.
    Failing that, the whole input is parsed as a number. Anything else is 0 (unclassified).
    """
    if value is None or isinstance(value, bool):
        return ScopesConfig.UNCLASSIFIED
    text = str(value)
    for scope in ScopesConfig.get_scopes():
        if str(scope) in text:
            return scope
    try:
        number = float(text.strip())
    except ValueError:
        return ScopesConfig.UNCLASSIFIED
    if not math.isfinite(number) or number != int(number):
        return ScopesConfig.UNCLASSIFIED
    return int(number)


def normalize_scope_label(value: Any) -> str:
    """Display label for a scope: "Scope 2" stays as it is, 2 or "2" become "Scope 2"."""
    if value is None:
        return ScopesConfig.UNKNOWN_LABEL
    text = str(value).strip()
    if not text:
        return ScopesConfig.UNKNOWN_LABEL
    if "scope" in text.lower():
        return text
    return f"{ScopesConfig.SCOPE_LABEL_PREFIX}{text}"


def round_to(value: Any, places: int = ReportConfig.ROUNDING_PLACES) -> float:
    """Round half away from zero to PLACES decimals.

    Goes through the decimal representation of the float so that 1.005 rounds to 1.01.
    """
    number = as_number(value)
    try:
        quantized = Decimal(repr(number)).quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP)
    except InvalidOperation:
        return number
    return float(quantized)


def round2(value: Any) -> float:
    return round_to(value, 2)


def to_metric_tons(kilograms: Any) -> float:
    """kg CO2e -> t CO2e"""
    return kg_to_t(as_number(kilograms))


def parse_timestamp(value: Any) -> Optional[pd.Timestamp]:
    """Parse a record date into a UTC Timestamp, or None if it is missing or unreadable."""
    if is_falsy(value):
        return None
    timestamp = pd.to_datetime(value, errors="coerce", utc=True)
    if pd.isna(timestamp):
        logger.debug(f"Could not read {value!r} as a date")
        return None
    return timestamp


def format_timestamp(value: Any) -> str:
    """ISO-8601 date (YYYY-MM-DD) of VALUE, or the raw text if it cannot be parsed"""
    timestamp = parse_timestamp(value)
    if timestamp is None:
        return "" if is_falsy(value) else str(value)
    return timestamp.date().isoformat()


def format_emissions(kilograms: Any) -> str:
    """Human-readable emissions: kg CO2e below a metric ton, t CO2e from there on."""
    value = as_number(kilograms)
    if value >= ReportConfig.TONNES_THRESHOLD:
        return f"{to_metric_tons(value):.2f} t CO₂e"
    return f"{value:.2f} kg CO₂e"


def calculate_percentage(value: Any, total: Any) -> str:
    total = as_number(total)
    if total == 0:
        return "0.0%"
    return f"{as_number(value) / total * 100:.1f}%"
