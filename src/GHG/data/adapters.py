"""Adapters from each record source (record store, bulk upload, document extraction) to IEmissionRecord.

Every source gets converted here, before any enrichment or aggregation happens; nothing downstream needs to know
where a record came from.
"""

from __future__ import annotations

import io
import json
import logging
import re
from datetime import date
from typing import Any, Dict, List, Mapping, Optional, Type, Union

import pandas as pd
from pydantic import ValidationError

from ..configs import ColumnsConfig, LoggingConfig, ScopesConfig
from ..interfaces import IEmissionRecord, IExtractionResult, IFactorTable
from ..utils import first_non_falsy, is_falsy, normalize_scope_label, normalize_scope_number

logger = logging.getLogger(__name__)
LoggingConfig.add_config_to_logger(logger)

# Column headers of bulk uploads and of the rows the extraction model is asked to return
EXTRACTION_ACTIVITY_TYPE = "Activity Type"
EXTRACTION_SCOPE = "Scope"
EXTRACTION_QUANTITY = "Quantity"
EXTRACTION_UNIT = "Unit"
UNKNOWN = "Unknown"

# What a scanned bill or receipt stands for: (activity type, scope, category)
DATA_TYPE_ACTIVITIES: Dict[str, tuple] = {
    "Electricity": ("Electricity", ScopesConfig.SCOPE_2, "Energy"),
    "Fuel (Diesel)": ("Diesel", ScopesConfig.SCOPE_1, "Fuel"),
    "Fuel (Petrol)": ("Gasoline", ScopesConfig.SCOPE_1, "Fuel"),
    "Transport": ("Business Travel - Car", ScopesConfig.SCOPE_3, "Transportation"),
}


def store_record_adapter(raw: Mapping[str, Any], column_config: Type[ColumnsConfig] = ColumnsConfig) -> IEmissionRecord:
    """Convert a row of the record store into an IEmissionRecord.

    The scope is normalized to its number; field-name variants of activity type, quantity, unit and date are folded
    into the canonical fields. Other fields, total aliases included, are carried along untouched.
    """
    values = dict(raw)
    scope = first_non_falsy(values, column_config.SCOPE_ALIASES)
    values[column_config.SCOPE] = normalize_scope_number(scope)
    for field, aliases in [
        (column_config.ACTIVITY_TYPE, column_config.ACTIVITY_TYPE_ALIASES),
        (column_config.QUANTITY, column_config.QUANTITY_ALIASES),
        (column_config.UNIT, column_config.UNIT_ALIASES),
        (column_config.EMISSION_FACTOR, column_config.EMISSION_FACTOR_ALIASES),
    ]:
        value = first_non_falsy(values, aliases)
        if value is not None:
            values[field] = value
    try:
        return IEmissionRecord.model_validate(values)
    except ValidationError as e:
        # One unreadable field must not lose the record: keep what the core reads, as text
        logger.warning(f"Record {values.get(column_config.ID)!r} does not validate ({e.error_count()} errors); "
                       f"keeping its core fields only")
        core = {
            key: (None if is_falsy(values.get(key)) else str(values.get(key)))
            for key in [
                column_config.ID,
                column_config.USER_ID,
                column_config.ACTIVITY_TYPE,
                column_config.CATEGORY,
                column_config.QUANTITY,
                column_config.UNIT,
                column_config.EMISSION_FACTOR,
                column_config.TOTAL_EMISSIONS,
                column_config.CO2_EQUIVALENT,
                column_config.DATE,
                column_config.CREATED_AT,
                column_config.DESCRIPTION,
            ]
        }
        return IEmissionRecord(scope=values[column_config.SCOPE], **core)


def extraction_row_adapter(
    row: Mapping[str, Any],
    factor_table: Optional[IFactorTable] = None,
    source_name: Optional[str] = None,
) -> IEmissionRecord:
    """Convert an {"Activity Type", "Scope", "Quantity", "Unit"} row from a bulk upload or an extraction model.

    Category and unit are taken from the matching factor table entry when there is one.
    """
    activity_type = first_non_falsy(row, [EXTRACTION_ACTIVITY_TYPE, ColumnsConfig.ACTIVITY_TYPE], UNKNOWN)
    raw_scope = first_non_falsy(row, [EXTRACTION_SCOPE, ColumnsConfig.SCOPE])
    factor = factor_table.lookup(str(activity_type)) if factor_table is not None else None
    return IEmissionRecord(
        activity_type=activity_type,
        category=factor.category if factor is not None and factor.category else UNKNOWN,
        scope=normalize_scope_number(raw_scope),
        scope_label=normalize_scope_label(raw_scope),
        quantity=first_non_falsy(row, [EXTRACTION_QUANTITY, ColumnsConfig.QUANTITY]),
        unit=factor.unit if factor is not None and factor.unit else first_non_falsy(
            row, [EXTRACTION_UNIT, ColumnsConfig.UNIT], UNKNOWN.lower()
        ),
        date=date.today().isoformat(),
        description=f"Bulk uploaded from {source_name}" if source_name else None,
    )


def ocr_record_adapter(result: Union[IExtractionResult, Mapping[str, Any]]) -> List[IEmissionRecord]:
    """Convert a document extraction result into records: one for the primary reading and, for multi-fuel documents,
    one for the secondary reading.
    """
    if not isinstance(result, IExtractionResult):
        result = IExtractionResult.model_validate(_snake_case_keys(result))

    readings = [(result.value, result.detected_data_type)]
    if not is_falsy(result.secondary_value):
        readings.append((result.secondary_value, result.secondary_data_type or result.detected_data_type))

    records = []
    for value, data_type in readings:
        activity_type, scope, category = DATA_TYPE_ACTIVITIES.get(
            data_type or "", (data_type or UNKNOWN, ScopesConfig.UNCLASSIFIED, UNKNOWN)
        )
        if scope == ScopesConfig.UNCLASSIFIED:
            logger.warning(f"Extracted data type {data_type!r} has no known scope")
        records.append(
            IEmissionRecord(
                activity_type=activity_type,
                category=category,
                scope=scope,
                quantity=value,
                unit=result.unit,
                date=result.date,
                description=f"Extracted from {result.supplier_name}" if result.supplier_name else None,
                confidence=result.confidence,
            )
        )
    return records


def _snake_case_keys(values: Mapping[str, Any]) -> Dict[str, Any]:
    return {re.sub(r"(?<!^)(?=[A-Z])", "_", key).lower(): value for key, value in values.items()}


def parse_csv_content(text: str) -> List[Dict[str, str]]:
    """Read a comma- or tab-separated upload into extraction rows.

    The activity column is the first header mentioning "activity" or "type", the quantity column the first mentioning
    "quantity" or "amount"; "scope" and "unit" must match exactly. Without activity and quantity columns nothing is
    returned. Rows missing either value are skipped.
    """
    lines = [line.strip() for line in text.splitlines() if line.strip()]
    if len(lines) < 2:
        logger.info(f"CSV has insufficient lines: {len(lines)}")
        return []

    separator = "\t" if "\t" in lines[0] else ","
    try:
        df = pd.read_csv(io.StringIO("\n".join(lines)), sep=separator, dtype=str, skipinitialspace=True)
    except (pd.errors.ParserError, pd.errors.EmptyDataError) as e:
        logger.error(f"Error parsing CSV: {e}")
        return []
    df.columns = [str(c).strip().lower() for c in df.columns]

    def find_column(predicate) -> Optional[str]:
        return next((c for c in df.columns if predicate(c)), None)

    activity_column = find_column(lambda c: "activity" in c or "type" in c)
    quantity_column = find_column(lambda c: "quantity" in c or "amount" in c)
    scope_column = find_column(lambda c: c == "scope")
    unit_column = find_column(lambda c: c == "unit")
    if activity_column is None or quantity_column is None:
        logger.info(f"Could not find activity and quantity columns in {list(df.columns)}")
        return []

    df = df.apply(lambda column: column.map(lambda value: value.strip() if isinstance(value, str) else value))
    results = []
    for _, row in df.iterrows():
        activity_type = row[activity_column]
        quantity = row[quantity_column]
        if is_falsy(activity_type) or is_falsy(quantity):
            continue
        scope = row[scope_column] if scope_column is not None else None
        unit = row[unit_column] if unit_column is not None else None
        results.append(
            {
                EXTRACTION_ACTIVITY_TYPE: activity_type,
                EXTRACTION_SCOPE: UNKNOWN if is_falsy(scope) else normalize_scope_label(scope),
                EXTRACTION_QUANTITY: quantity,
                EXTRACTION_UNIT: UNKNOWN.lower() if is_falsy(unit) else unit,
            }
        )
    logger.info(f"Parsed {len(results)} rows from CSV")
    return results


def parse_llm_response(response: str) -> List[Dict[str, str]]:
    """Pull the JSON array of extraction rows out of a model reply (which may wrap it in markdown fences)."""
    cleaned = re.sub(r"```(?:json)?\s*", "", response or "").strip()
    match = re.search(r"\[[\s\S]*\]", cleaned)
    if not match:
        logger.warning("No JSON array found in response")
        return []
    try:
        items = json.loads(match.group(0))
    except json.JSONDecodeError as e:
        logger.error(f"Error parsing model response: {e}")
        return []
    if not isinstance(items, list):
        logger.warning("Parsed data is not an array")
        return []

    return [
        {
            EXTRACTION_ACTIVITY_TYPE: first_non_falsy(item, [EXTRACTION_ACTIVITY_TYPE, ColumnsConfig.ACTIVITY_TYPE], UNKNOWN),
            EXTRACTION_SCOPE: normalize_scope_label(first_non_falsy(item, [EXTRACTION_SCOPE, ColumnsConfig.SCOPE])),
            EXTRACTION_QUANTITY: str(first_non_falsy(item, [EXTRACTION_QUANTITY, ColumnsConfig.QUANTITY], "1")),
            EXTRACTION_UNIT: first_non_falsy(item, [EXTRACTION_UNIT, ColumnsConfig.UNIT], UNKNOWN.lower()),
        }
        for item in items
        if isinstance(item, dict)
    ]
