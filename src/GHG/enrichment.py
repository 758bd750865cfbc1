import logging
from typing import Callable, Iterable, List, Optional, Type

import pandas as pd

from .configs import ColumnsConfig, LoggingConfig, ReportConfig
from .factor_resolution import resolve_factor
from .interfaces import IEmissionRecord, IEnrichedRecord, IFactorTable
from .utils import as_number, first_non_falsy, is_falsy, normalize_scope_number, parse_timestamp

logger = logging.getLogger(__name__)
LoggingConfig.add_config_to_logger(logger)

Resolver = Callable[[IEmissionRecord, Optional[IFactorTable]], float]


def enrich(
    record: IEmissionRecord,
    factor_table: Optional[IFactorTable] = None,
    resolver: Resolver = resolve_factor,
    column_config: Type[ColumnsConfig] = ColumnsConfig,
) -> IEnrichedRecord:
    """Return a copy of RECORD with a numeric total_emissions and a display activity_description.

    A precomputed total is taken from the first non-falsy of the total aliases. Without one, and given both a
    quantity and an activity type, the total is quantity x resolved factor. The result is never NaN and never
    negative.

    :param record: The record to enrich. It is not modified.
    :param factor_table: Reference factors handed to RESOLVER
    :param resolver: Factor resolution strategy, resolve_factor by default
    :return: An IEnrichedRecord
    """
    total = first_non_falsy(record, column_config.TOTAL_EMISSIONS_ALIASES)
    if is_falsy(total):
        quantity = record.get(column_config.QUANTITY)
        activity_type = record.get(column_config.ACTIVITY_TYPE)
        if not is_falsy(quantity) and not is_falsy(activity_type):
            total = as_number(quantity) * resolver(record, factor_table)

    total_emissions = as_number(total)
    if total_emissions < 0:
        logger.warning(f"Negative emissions {total_emissions} on record {record.get(column_config.ID)!r}; using 0")
        total_emissions = 0.0

    activity_description = first_non_falsy(
        record, [column_config.DESCRIPTION, column_config.ACTIVITY_TYPE], ReportConfig.NO_DESCRIPTION
    )
    values = record.model_dump()
    values.update(
        {
            column_config.TOTAL_EMISSIONS: total_emissions,
            column_config.ACTIVITY_DESCRIPTION: str(activity_description),
        }
    )
    return IEnrichedRecord.model_validate(values)


def enrich_records(
    records: Iterable[IEmissionRecord],
    factor_table: Optional[IFactorTable] = None,
    resolver: Resolver = resolve_factor,
) -> List[IEnrichedRecord]:
    return [enrich(record, factor_table, resolver) for record in records]


def enriched_records_to_frame(
    records: Iterable[IEnrichedRecord], column_config: Type[ColumnsConfig] = ColumnsConfig
) -> pd.DataFrame:
    """Tabulate enriched records for aggregation: one row per record with its canonical scope, category, total and
    timestamp.
    """
    columns = [
        column_config.ID,
        column_config.SCOPE,
        column_config.CATEGORY,
        column_config.TOTAL_EMISSIONS,
        column_config.DATE,
    ]
    rows = [
        {
            column_config.ID: record.id,
            column_config.SCOPE: normalize_scope_number(record.scope),
            column_config.CATEGORY: record.category if record.category is not None else "",
            column_config.TOTAL_EMISSIONS: as_number(record.total_emissions),
            column_config.DATE: parse_timestamp(first_non_falsy(record, column_config.DATE_ALIASES)),
        }
        for record in records
    ]
    if not rows:
        return pd.DataFrame(columns=columns).astype({column_config.TOTAL_EMISSIONS: float, column_config.SCOPE: int})
    return pd.DataFrame.from_records(rows, columns=columns)
