from __future__ import annotations

import logging
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    PrivateAttr,
    field_validator,
)

from .configs import LoggingConfig, ReportConfig, ScopesConfig
from .data.osc_units import EMISSIONS_UNIT, EmissionsMetric

logger = logging.getLogger(__name__)
LoggingConfig.add_config_to_logger(logger)

RawNumber = Optional[Union[float, int, str]]
RawTimestamp = Optional[Union[datetime, date, str]]


class EScope(Enum):
    S1 = 1
    S2 = 2
    S3 = 3

    def __str__(self):
        return self.name

    def __repr__(self):
        return self.__str__()

    @property
    def label(self) -> str:
        return f"{ScopesConfig.SCOPE_LABEL_PREFIX}{self.value}"

    @property
    def field_name(self) -> str:
        """Name of the matching field on IScopeTotals (scope1, scope2, scope3)"""
        return f"scope{self.value}"

    @classmethod
    def get_scopes(cls) -> List[EScope]:
        """Get a list of all scopes.
        :return: A list of EScope objects
        """
        return [cls.S1, cls.S2, cls.S3]


def _to_str(value: Any) -> Any:
    if value is None or isinstance(value, str):
        return value
    return str(value)


class IEmissionRecord(BaseModel):
    """One logged activity, as delivered by a record adapter.

    Numeric fields keep the raw value they arrived with (strings included); coercion happens during enrichment.
    Unknown keys (camelCase aliases and the like) are kept as extras so that alias lookups can see them.
    """

    model_config = ConfigDict(extra="allow", arbitrary_types_allowed=True)

    id: Optional[str] = None
    user_id: Optional[str] = None
    activity_type: Optional[str] = None
    category: Optional[str] = None
    scope: Optional[Union[int, float, str]] = None
    quantity: RawNumber = None
    unit: Optional[str] = None
    emission_factor: RawNumber = None
    total_emissions: RawNumber = None
    co2_equivalent: RawNumber = None
    date: RawTimestamp = None
    created_at: RawTimestamp = None
    description: Optional[str] = None

    @field_validator("id", "user_id", "activity_type", "category", "unit", "description", mode="before")
    @classmethod
    def coerce_str(cls, value):
        return _to_str(value)

    def __getitem__(self, item):
        return getattr(self, item)

    def get(self, key: str, default: Any = None) -> Any:
        """Mapping-style access that also sees extra (non-declared) fields"""
        value = getattr(self, key, None)
        if value is None and self.model_extra:
            value = self.model_extra.get(key)
        return default if value is None else value


class IEnrichedRecord(IEmissionRecord):
    total_emissions: float = 0.0
    activity_description: str = ReportConfig.NO_DESCRIPTION


class IEmissionFactor(BaseModel):
    activity_type: str
    category: str = ""
    unit: str = ""
    factor: float
    scope: int = ScopesConfig.UNCLASSIFIED
    scope_name: str = ""
    source: str = ""
    region: str = ""

    def __getitem__(self, item):
        return getattr(self, item)


class IFactorTable(BaseModel):
    """Emission factors keyed case-insensitively by activity type.

    When several entries share an activity type (e.g. one per region), the first one is what a plain lookup returns.
    """

    entries: List[IEmissionFactor] = []
    _index: Dict[str, IEmissionFactor] = PrivateAttr(default_factory=dict)

    def model_post_init(self, __context: Any) -> None:
        for entry in self.entries:
            self._index.setdefault(entry.activity_type.strip().lower(), entry)

    def __len__(self):
        return len(self.entries)

    def __contains__(self, key) -> bool:
        return self.lookup(key) is not None

    def lookup(self, key: Optional[str]) -> Optional[IEmissionFactor]:
        if not key or not isinstance(key, str):
            return None
        return self._index.get(key.strip().lower())

    def get_factor(self, activity_type: str, region: Optional[str] = None) -> Optional[IEmissionFactor]:
        """Find the factor for ACTIVITY_TYPE (case-insensitive), restricted to REGION if given."""
        if region is None:
            return self.lookup(activity_type)
        wanted = activity_type.strip().lower()
        for entry in self.entries:
            if entry.activity_type.strip().lower() == wanted and entry.region == region:
                return entry
        return None

    def get_factors_by_scope(self, scope: int) -> List[IEmissionFactor]:
        return [entry for entry in self.entries if entry.scope == scope]

    def get_factors_by_category(self, category: str) -> List[IEmissionFactor]:
        wanted = category.strip().lower()
        return [entry for entry in self.entries if entry.category.strip().lower() == wanted]

    @classmethod
    def from_mapping(cls, mapping: Optional[Dict[str, Any]]) -> IFactorTable:
        """Build a table from {activity_type: factor} or {activity_type: {category, unit, factor}}.

        Entries whose factor is missing are skipped.
        """
        entries = []
        for activity_type, value in (mapping or {}).items():
            if isinstance(value, dict):
                if value.get("factor") is None:
                    logger.warning(f"Factor entry for '{activity_type}' has no factor; skipping")
                    continue
                entries.append(IEmissionFactor(**{**value, "activity_type": activity_type}))
            elif value is not None:
                entries.append(IEmissionFactor(activity_type=activity_type, factor=value))
        return cls(entries=entries)


emptyFactorTable = IFactorTable()


class IGasBreakdown(BaseModel):
    """Metric tons per gas species. Only mtco2e is computed; species detail is not carried by the records."""

    co2: float = 0.0
    ch4: float = 0.0
    n2o: float = 0.0
    hfcs: float = 0.0
    pfcs: float = 0.0
    sf6: float = 0.0
    mtco2e: float = 0.0

    def __getitem__(self, item):
        return getattr(self, item)


class IScopeGasBreakdown(BaseModel):
    scope1: IGasBreakdown = IGasBreakdown()
    scope2: IGasBreakdown = IGasBreakdown()
    scope3: IGasBreakdown = IGasBreakdown()

    def __getitem__(self, item):
        return getattr(self, item)


class IScopeTotals(BaseModel):
    """Scope-bucketed totals in kg CO2e. `unclassified` holds the sum of records with no usable scope."""

    mode: str
    scope1: float = 0.0
    scope2: float = 0.0
    scope3: float = 0.0
    total: float = 0.0
    unclassified: float = 0.0
    record_count: int = 0
    emissions_metric: EmissionsMetric = EMISSIONS_UNIT
    by_category: Optional[Dict[str, float]] = None
    gas_breakdown: Optional[IScopeGasBreakdown] = None

    def __getitem__(self, item):
        return getattr(self, item)

    @property
    def empty(self) -> bool:
        return self.record_count == 0


class ICompanyInfo(BaseModel):
    name: str = ReportConfig.NOT_AVAILABLE
    description: str = ""
    consolidation_approach: str = ""
    business_description: str = ""
    reporting_period: str = ""
    base_year: int = Field(default_factory=lambda: datetime.now().year)
    base_year_rationale: str = ""
    base_year_recalculation_policy: str = ""
    scope3_activities: List[str] = []
    excluded_activities: Dict[str, str] = {}
    equity_share: bool = False
    financial_control: bool = False
    operational_control: bool = False

    def __getitem__(self, item):
        return getattr(self, item)


class IProfile(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = None
    full_name: Optional[str] = None
    email: Optional[str] = None
    company_name: Optional[str] = None
    industry: Optional[str] = None

    @field_validator("id", mode="before")
    @classmethod
    def coerce_str(cls, value):
        return _to_str(value)


class IUserIdentity(BaseModel):
    id: Optional[str] = None
    email: Optional[str] = None

    @field_validator("id", mode="before")
    @classmethod
    def coerce_str(cls, value):
        return _to_str(value)


class IExtractionResult(BaseModel):
    """Best-effort reading of one uploaded document (utility bill, fuel receipt, ...)"""

    value: RawNumber = None
    unit: Optional[str] = None
    detected_data_type: Optional[str] = None
    supplier_name: Optional[str] = None
    confidence: float = 0.0
    reasoning: Optional[str] = None
    secondary_value: RawNumber = None
    secondary_data_type: Optional[str] = None
    date: RawTimestamp = None


class IReportMetadata(BaseModel):
    generated_at: str
    user_id: str = ReportConfig.NOT_AVAILABLE
    user_name: str = ReportConfig.DEFAULT_USER_NAME
    user_email: str = ReportConfig.NOT_AVAILABLE


class IReportLineItem(BaseModel):
    id: Optional[str] = None
    date: str = ""
    activity: str = ReportConfig.NO_DESCRIPTION
    category: str = ""
    scope: int = ScopesConfig.UNCLASSIFIED
    quantity: float = 0.0
    unit: str = ""
    total_emissions: float = 0.0


class IReport(BaseModel):
    metadata: IReportMetadata
    company_info: ICompanyInfo
    emissions: IScopeTotals
    line_items: Optional[List[IReportLineItem]] = None

    def __getitem__(self, item):
        return getattr(self, item)

    @property
    def is_empty(self) -> bool:
        """True when the report was built from no records at all (the "no data yet" state)"""
        return self.emissions.empty

    def to_legacy_dict(self) -> Dict[str, Any]:
        """Flat shape served to older dashboard clients"""
        company = self.company_info
        return {
            "generated_at": self.metadata.generated_at,
            "company_info": {
                "name": company.name,
                "description": company.description,
                "consolidation_approach": company.consolidation_approach,
                "business_description": company.business_description,
                "reporting_period": company.reporting_period,
                "base_year": company.base_year,
                "base_year_rationale": company.base_year_rationale,
            },
            "user_name": self.metadata.user_name,
            "user_email": self.metadata.user_email,
            "scope_1_total": self.emissions.scope1,
            "scope_2_total": self.emissions.scope2,
            "scope_3_total": self.emissions.scope3,
            "total_emissions": self.emissions.total,
        }
