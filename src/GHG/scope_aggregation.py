import logging
from enum import Enum
from typing import Dict, Iterable, List, Optional, Type

import numpy as np
import pandas as pd

from .configs import ColumnsConfig, LoggingConfig, ReportConfig, ScopesConfig
from .enrichment import enriched_records_to_frame
from .interfaces import EScope, IEnrichedRecord, IGasBreakdown, IScopeGasBreakdown, IScopeTotals
from .utils import calculate_percentage, round2, round_to, to_metric_tons

logger = logging.getLogger(__name__)
LoggingConfig.add_config_to_logger(logger)


class EAggregationMode(Enum):
    """How the grand total relates to the scope buckets.

    SIMPLE: total is the sum over all records, so emissions with no usable scope still show in the headline number.
    STRICT: total is scope1 + scope2 + scope3; unclassified records are left out, as GHG Protocol reports require.
    """

    SIMPLE = "simple"
    STRICT = "strict"

    def __str__(self):
        return self.value

    @staticmethod
    def includes_unclassified(mode: "EAggregationMode") -> bool:
        return mode == EAggregationMode.SIMPLE


class ScopeAggregation:
    """Buckets enriched records by canonical scope and sums their kg CO2e.

    :param mode: The aggregation mode, which decides what the grand total counts
    :param by_category: Whether to add a per-category breakdown
    :param gas_breakdown: Whether to add the per-scope gas species breakdown (metric tons)
    :param config: A class defining the record field names. This parameter is only required if you'd like to
                    overwrite a constant. This can be done by extending the ColumnsConfig class.
    """

    def __init__(
        self,
        mode: EAggregationMode = EAggregationMode.STRICT,
        by_category: bool = False,
        gas_breakdown: bool = False,
        config: Type[ColumnsConfig] = ColumnsConfig,
    ):
        self.mode = mode
        self.by_category = by_category
        self.gas_breakdown = gas_breakdown
        self.c = config

    def _scope_sums(self, data: pd.DataFrame) -> Dict[int, float]:
        sums = data.groupby(self.c.SCOPE)[self.c.TOTAL_EMISSIONS].sum()
        return {scope: float(sums.get(scope, 0.0)) for scope in ScopesConfig.get_scopes()}

    def _category_sums(self, data: pd.DataFrame) -> Dict[str, float]:
        if data.empty:
            return {}
        sums = data.groupby(self.c.CATEGORY, sort=False)[self.c.TOTAL_EMISSIONS].sum()
        return {str(category): float(value) for category, value in sums.items()}

    @staticmethod
    def _gas_breakdown(scope_sums: Dict[int, float]) -> IScopeGasBreakdown:
        # Records carry CO2e only, so the per-gas species stay at zero
        return IScopeGasBreakdown(
            **{
                scope.field_name: IGasBreakdown(mtco2e=round2(to_metric_tons(scope_sums[scope.value])))
                for scope in EScope.get_scopes()
            }
        )

    def calculate(self, data: pd.DataFrame) -> IScopeTotals:
        """Aggregate a frame as produced by enrichment.enriched_records_to_frame.

        :param data: One row per record with (normalized) scope, category and total emissions
        :return: The scope totals, in kg CO2e and unrounded
        """
        scope_sums = self._scope_sums(data)
        classified = sum(scope_sums.values())
        is_unclassified = ~data[self.c.SCOPE].isin(ScopesConfig.get_scopes())
        unclassified = float(data.loc[is_unclassified, self.c.TOTAL_EMISSIONS].sum())
        if is_unclassified.any():
            unclassified_ids = data.loc[is_unclassified, self.c.ID].tolist()
            logger.warning(
                f"{len(unclassified_ids)} record(s) have no usable scope and are left out of the scope buckets: "
                f"{unclassified_ids}"
            )

        # Plain addition, no intermediate rounding
        total = classified + unclassified if EAggregationMode.includes_unclassified(self.mode) else classified
        return IScopeTotals(
            mode=str(self.mode),
            scope1=scope_sums[ScopesConfig.SCOPE_1],
            scope2=scope_sums[ScopesConfig.SCOPE_2],
            scope3=scope_sums[ScopesConfig.SCOPE_3],
            total=total,
            unclassified=unclassified,
            record_count=len(data),
            by_category=self._category_sums(data) if self.by_category else None,
            gas_breakdown=self._gas_breakdown(scope_sums) if self.gas_breakdown else None,
        )

    def aggregate(self, records: Iterable[IEnrichedRecord]) -> IScopeTotals:
        return self.calculate(enriched_records_to_frame(records, self.c))


def aggregate(
    records: Iterable[IEnrichedRecord],
    mode: EAggregationMode = EAggregationMode.STRICT,
    by_category: bool = False,
    gas_breakdown: bool = False,
) -> IScopeTotals:
    return ScopeAggregation(mode, by_category=by_category, gas_breakdown=gas_breakdown).aggregate(records)


def round_totals(totals: IScopeTotals, places: int = ReportConfig.ROUNDING_PLACES) -> IScopeTotals:
    """Presentation copy of TOTALS with every kg figure rounded. Gas breakdowns are already rounded."""
    update = {
        field: round_to(totals[field], places)
        for field in ["scope1", "scope2", "scope3", "total", "unclassified"]
    }
    if totals.by_category is not None:
        update["by_category"] = {category: round_to(value, places) for category, value in totals.by_category.items()}
    return totals.model_copy(update=update)


def rank_categories(totals: IScopeTotals, limit: Optional[int] = ReportConfig.TOP_CATEGORIES) -> List[Dict]:
    """Categories by descending emissions, each with its share of the total.

    :param totals: Scope totals computed with a category breakdown
    :param limit: Keep only this many categories (None for all)
    :return: A list of {category, total, percentage} dicts
    """
    if not totals.by_category:
        return []
    ranked = sorted(totals.by_category.items(), key=lambda item: item[1], reverse=True)
    if limit is not None:
        ranked = ranked[:limit]
    return [
        {
            ColumnsConfig.CATEGORY: category,
            ColumnsConfig.TOTAL: round2(value),
            ColumnsConfig.PERCENTAGE: calculate_percentage(value, totals.total),
        }
        for category, value in ranked
    ]


def monthly_trend(records: Iterable[IEnrichedRecord], config: Type[ColumnsConfig] = ColumnsConfig) -> pd.DataFrame:
    """Per-month scope sums of RECORDS, oldest month first.

    Records without a readable date are left out. Unlike the report totals, a record whose scope is neither 1 nor 2
    is counted under scope 3 here, which is how the dashboard trend has always bucketed them.

    :return: A DataFrame indexed by month (Period) with total, scope1..3, count and average columns
    """
    data = enriched_records_to_frame(records, config)
    columns = [config.TOTAL, "scope1", "scope2", "scope3", config.COUNT, config.AVERAGE]
    data = data[data[config.DATE].notna()]
    if data.empty:
        return pd.DataFrame(columns=columns)

    months = pd.to_datetime(data[config.DATE], utc=True).dt.tz_convert(None).dt.to_period("M")
    data = data.assign(**{config.MONTH: months})
    bucket = np.where(
        data[config.SCOPE].isin([ScopesConfig.SCOPE_1, ScopesConfig.SCOPE_2]), data[config.SCOPE], ScopesConfig.SCOPE_3
    )
    for scope in ScopesConfig.get_scopes():
        data[f"scope{scope}"] = data[config.TOTAL_EMISSIONS].where(bucket == scope, 0.0)

    grouped = data.groupby(config.MONTH).agg(
        **{
            config.TOTAL: (config.TOTAL_EMISSIONS, "sum"),
            "scope1": ("scope1", "sum"),
            "scope2": ("scope2", "sum"),
            "scope3": ("scope3", "sum"),
            config.COUNT: (config.TOTAL_EMISSIONS, "size"),
        }
    )
    grouped[config.AVERAGE] = grouped[config.TOTAL] / grouped[config.COUNT]
    return grouped.sort_index()[columns]
