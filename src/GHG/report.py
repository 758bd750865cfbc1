import json
import logging
from datetime import datetime, timezone
from typing import Any, Iterable, List, Mapping, Optional, Type, Union

from .configs import (
    AggregationControls,
    ColumnsConfig,
    CompanyInfoConfig,
    LoggingConfig,
    ReportConfig,
    ReportControlsConfig,
)
from .data.adapters import store_record_adapter
from .enrichment import enrich_records
from .factor_resolution import resolve_factor
from .interfaces import (
    ICompanyInfo,
    IEmissionRecord,
    IEnrichedRecord,
    IFactorTable,
    IProfile,
    IReport,
    IReportLineItem,
    IReportMetadata,
    IUserIdentity,
)
from .scope_aggregation import EAggregationMode, ScopeAggregation, round_totals
from .utils import (
    as_number,
    first_non_falsy,
    format_timestamp,
    is_falsy,
    normalize_scope_number,
    round_to,
)

logger = logging.getLogger(__name__)
LoggingConfig.add_config_to_logger(logger)

RecordLike = Union[IEmissionRecord, Mapping[str, Any]]


def _text(value: Any) -> str:
    return "" if is_falsy(value) else str(value)


def _parse_base_year(value: Any) -> int:
    try:
        return int(float(str(value).strip()))
    except (TypeError, ValueError, OverflowError):
        if not is_falsy(value):
            logger.warning(f"Base year {value!r} is not a year; using the current year")
        return datetime.now().year


def _parse_activities(value: Any) -> List[str]:
    """Scope 3 activities are stored as a JSON list; older entries are a comma-separated string"""
    if is_falsy(value):
        return []
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except json.JSONDecodeError:
            return [item.strip() for item in value.split(",") if item.strip()]
    if isinstance(value, str):
        return [value]
    if isinstance(value, (list, tuple)):
        return [str(item) for item in value if not is_falsy(item)]
    return []


def _parse_exclusions(value: Any) -> dict:
    if is_falsy(value):
        return {}
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except json.JSONDecodeError:
            logger.warning("Excluded activities are not valid JSON; ignoring them")
            return {}
    if not isinstance(value, Mapping):
        return {}
    return {str(key): _text(reason) for key, reason in value.items()}


def default_company_info(
    raw: Union[ICompanyInfo, Mapping[str, Any], None], config: Type[CompanyInfoConfig] = CompanyInfoConfig
) -> ICompanyInfo:
    """Company block of a report: every field present, with "N/A", "" or the current year where RAW has nothing.

    :param raw: Company information as stored (company_name, company_description, ...) or None
    """
    if raw is None:
        return ICompanyInfo()
    if isinstance(raw, ICompanyInfo):
        return raw

    approach = _text(raw.get(config.CONSOLIDATION_APPROACH))
    name = first_non_falsy(raw, [config.COMPANY_NAME, "name"])
    return ICompanyInfo(
        name=_text(name) or ReportConfig.NOT_AVAILABLE,
        description=_text(first_non_falsy(raw, [config.COMPANY_DESCRIPTION, "description"])),
        consolidation_approach=approach,
        business_description=_text(raw.get(config.BUSINESS_DESCRIPTION)),
        reporting_period=_text(raw.get(config.REPORTING_PERIOD)),
        base_year=_parse_base_year(raw.get(config.BASE_YEAR)),
        base_year_rationale=_text(raw.get(config.BASE_YEAR_RATIONALE)),
        base_year_recalculation_policy=_text(raw.get(config.BASE_YEAR_RECALCULATION_POLICY)),
        scope3_activities=_parse_activities(raw.get(config.SCOPE3_ACTIVITIES)),
        excluded_activities=_parse_exclusions(raw.get(config.EXCLUDED_ACTIVITIES)),
        equity_share=approach == config.EQUITY_SHARE,
        financial_control=approach == config.FINANCIAL_CONTROL,
        operational_control=approach == config.OPERATIONAL_CONTROL,
    )


class ReportAssembler:
    """Turns one batch of records and the user's metadata into an IReport.

    :param controls: Mode and breakdown switches; ReportControlsConfig.CONTROLS_CONFIG by default
    :param config: A class defining the placeholders and rounding. This parameter is only required if you'd like to
                    overwrite a constant. This can be done by extending the ReportControlsConfig class.
    """

    def __init__(
        self,
        controls: Optional[AggregationControls] = None,
        config: Type[ReportControlsConfig] = ReportControlsConfig,
        column_config: Type[ColumnsConfig] = ColumnsConfig,
    ):
        self.c = config
        self.column_config = column_config
        self.controls = controls if controls is not None else config.CONTROLS_CONFIG

    @property
    def mode(self) -> EAggregationMode:
        return EAggregationMode(self.controls.mode)

    def _metadata(
        self, profile: Optional[IProfile], identity: Optional[IUserIdentity], now: Optional[datetime]
    ) -> IReportMetadata:
        now = now if now is not None else datetime.now(timezone.utc)
        user_id = identity.id if identity is not None else None
        user_email = (profile.email if profile is not None else None) or (identity.email if identity is not None else None)
        return IReportMetadata(
            generated_at=now.isoformat(),
            user_id=user_id or self.c.NOT_AVAILABLE,
            user_name=(profile.full_name if profile is not None else None) or self.c.DEFAULT_USER_NAME,
            user_email=user_email or self.c.NOT_AVAILABLE,
        )

    def _line_item(self, record: IEnrichedRecord) -> IReportLineItem:
        c = self.column_config
        return IReportLineItem(
            id=record.id,
            date=format_timestamp(first_non_falsy(record, c.DATE_ALIASES)),
            activity=record.activity_description,
            category=_text(record.category),
            scope=normalize_scope_number(record.scope),
            quantity=as_number(record.quantity),
            unit=_text(record.unit),
            total_emissions=round_to(record.total_emissions, self.c.ROUNDING_PLACES),
        )

    def assemble(
        self,
        records: Iterable[IEmissionRecord],
        company_info: Union[ICompanyInfo, Mapping[str, Any], None] = None,
        profile: Optional[IProfile] = None,
        identity: Optional[IUserIdentity] = None,
        factor_table: Optional[IFactorTable] = None,
        resolver=resolve_factor,
        now: Optional[datetime] = None,
    ) -> IReport:
        """Enrich and aggregate RECORDS and compose the report. Missing company info, profile or identity give
        placeholders; an empty batch gives zero totals.
        """
        enriched = enrich_records(records, factor_table, resolver)
        totals = ScopeAggregation(
            self.mode,
            by_category=self.controls.by_category,
            gas_breakdown=self.controls.gas_breakdown,
            config=self.column_config,
        ).aggregate(enriched)
        if totals.empty:
            logger.info("No emission records; the report shows zero totals")

        return IReport(
            metadata=self._metadata(profile, identity, now),
            company_info=default_company_info(company_info),
            emissions=round_totals(totals, self.c.ROUNDING_PLACES),
            line_items=[self._line_item(record) for record in enriched] if self.controls.line_items else None,
        )


def assemble_report(
    records: Iterable[IEmissionRecord],
    company_info: Union[ICompanyInfo, Mapping[str, Any], None] = None,
    profile: Optional[IProfile] = None,
    identity: Optional[IUserIdentity] = None,
    factor_table: Optional[IFactorTable] = None,
    mode: EAggregationMode = EAggregationMode.STRICT,
    include_gas_breakdown: bool = False,
    include_category_breakdown: bool = True,
    include_line_items: bool = True,
    now: Optional[datetime] = None,
) -> IReport:
    controls = AggregationControls(
        mode=mode.value,
        by_category=include_category_breakdown,
        gas_breakdown=include_gas_breakdown,
        line_items=include_line_items,
    )
    return ReportAssembler(controls).assemble(records, company_info, profile, identity, factor_table, now=now)


def compute_report(
    records: Iterable[RecordLike],
    company_info: Union[ICompanyInfo, Mapping[str, Any], None] = None,
    profile: Union[IProfile, Mapping[str, Any], None] = None,
    identity: Union[IUserIdentity, Mapping[str, Any], None] = None,
    **kwargs,
) -> IReport:
    """Build the report for one user from records as they come out of the record store.

    Records, profile, identity and factor_table may be given as plain mappings; they are validated here. Keyword
    arguments are those of assemble_report (factor_table, mode, include_gas_breakdown, ...).
    """
    records = [record if isinstance(record, IEmissionRecord) else store_record_adapter(record) for record in records]
    if profile is not None and not isinstance(profile, IProfile):
        profile = IProfile.model_validate(profile)
    if identity is not None and not isinstance(identity, IUserIdentity):
        identity = IUserIdentity.model_validate(identity)
    factor_table = kwargs.get("factor_table")
    if isinstance(factor_table, Mapping):
        kwargs["factor_table"] = IFactorTable.from_mapping(factor_table)
    return assemble_report(records, company_info, profile, identity, **kwargs)
