import logging
from typing import Any, Callable, Optional, Type, Union

from .configs import ColumnsConfig, FactorConfig, LoggingConfig
from .interfaces import IEmissionRecord, IFactorTable, emptyFactorTable
from .utils import as_number, first_non_falsy

logger = logging.getLogger(__name__)
LoggingConfig.add_config_to_logger(logger)

FactorSource = Union[IFactorTable, Callable[[], IFactorTable], None]


def resolve_factor(
    record: IEmissionRecord,
    factor_table: Optional[IFactorTable] = None,
    fallback: float = FactorConfig.FALLBACK_FACTOR,
    column_config: Type[ColumnsConfig] = ColumnsConfig,
) -> float:
    """Find the multiplier (kg CO2e per unit of quantity) for RECORD.

    Precedence, first match wins:
    1. the record's own emission factor, if it is a non-zero number
    2. the factor table entry for the record's activity type (case-insensitive)
    3. the factor table entry for the record's category (case-insensitive)
    4. FALLBACK, i.e. the quantity is taken to be emissions already

    :param record: The record to resolve a factor for
    :param factor_table: Reference factors; may be None or empty
    :param fallback: The multiplier to use when nothing else resolves
    :return: The factor as a float
    """
    own_factor = as_number(first_non_falsy(record, column_config.EMISSION_FACTOR_ALIASES))
    if own_factor != 0:
        return own_factor

    table = factor_table if factor_table is not None else emptyFactorTable
    activity_type = record.get(column_config.ACTIVITY_TYPE)
    category = record.get(column_config.CATEGORY)
    for key in (activity_type, category):
        entry = table.lookup(key)
        if entry is not None:
            return entry.factor

    # Not an error: the record still gets a total, only a less accurate one
    logger.debug(
        f"No emission factor for activity type {activity_type!r} / category {category!r} "
        f"(record {record.get(column_config.ID)!r}); using {fallback}"
    )
    return fallback


class EmissionFactorResolver:
    """Resolves factors against a factor table obtained from FACTOR_SOURCE at call time.

    :param factor_source: An IFactorTable, or a zero-argument callable returning one (e.g. FactorTableCache.get_table)
    :param config: A class defining the fallback factor. Extend FactorConfig to change it.
    """

    def __init__(self, factor_source: FactorSource = None, config: Type[FactorConfig] = FactorConfig):
        self.factor_source = factor_source
        self.c = config

    @property
    def factor_table(self) -> IFactorTable:
        if self.factor_source is None:
            return emptyFactorTable
        if callable(self.factor_source):
            return self.factor_source()
        return self.factor_source

    def resolve(self, record: IEmissionRecord, factor_table: Optional[IFactorTable] = None) -> float:
        table = factor_table if factor_table is not None else self.factor_table
        return resolve_factor(record, table, fallback=self.c.FALLBACK_FACTOR)

    def __call__(self, record: IEmissionRecord, factor_table: Optional[IFactorTable] = None) -> float:
        return self.resolve(record, factor_table)

    def get_factor(self, activity_type: str, region: Any = FactorConfig.DEFAULT_REGION):
        return self.factor_table.get_factor(activity_type, region)

    def get_factors_by_scope(self, scope: int):
        return self.factor_table.get_factors_by_scope(scope)

    def get_factors_by_category(self, category: str):
        return self.factor_table.get_factors_by_category(category)
