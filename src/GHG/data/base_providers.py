import logging
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

from ..configs import ColumnsConfig, LoggingConfig, ScopesConfig
from ..data.adapters import EXTRACTION_SCOPE, parse_csv_content, parse_llm_response, store_record_adapter
from ..data.data_providers import (
    CompanyDataProvider,
    EmissionFactorProvider,
    EmissionRecordProvider,
    ExtractionProvider,
)
from ..interfaces import IEmissionFactor, IEmissionRecord, IFactorTable, IProfile
from ..utils import first_non_falsy, parse_timestamp

logger = logging.getLogger(__name__)
LoggingConfig.add_config_to_logger(logger)


# kg CO2e per unit of activity
BUILTIN_EMISSION_FACTORS: List[IEmissionFactor] = [
    IEmissionFactor(activity_type="Electricity", category="Energy", unit="kWh", factor=0.5, scope=2),
    IEmissionFactor(activity_type="Natural Gas", category="Energy", unit="m³", factor=2.0, scope=1),
    IEmissionFactor(activity_type="Diesel", category="Fuel", unit="L", factor=2.68, scope=1),
    IEmissionFactor(activity_type="Gasoline", category="Fuel", unit="L", factor=2.31, scope=1),
    IEmissionFactor(activity_type="Business Travel - Air", category="Transportation", unit="km", factor=0.255, scope=3),
    IEmissionFactor(activity_type="Business Travel - Car", category="Transportation", unit="km", factor=0.21, scope=3),
    IEmissionFactor(activity_type="Business Travel - Rail", category="Transportation", unit="km", factor=0.041, scope=3),
    IEmissionFactor(activity_type="Paper", category="Materials", unit="kg", factor=1.5, scope=3),
    IEmissionFactor(activity_type="Water Supply", category="Water", unit="m³", factor=0.5, scope=3),
]


class BaseFactorProvider(EmissionFactorProvider):
    """Factor table held in memory; the built-in table unless other entries are given.

    :param entries: Factor entries, or None for BUILTIN_EMISSION_FACTORS
    """

    def __init__(self, entries: Optional[Iterable[IEmissionFactor]] = None, **kwargs):
        super().__init__(**kwargs)
        self._table = IFactorTable(entries=list(BUILTIN_EMISSION_FACTORS if entries is None else entries))

    def fetch_factor_table(self) -> IFactorTable:
        return self._table


class BaseRecordProvider(EmissionRecordProvider):
    """Record store held in memory, as raw rows keyed by user. Rows go through store_record_adapter on the way out.

    :param rows: The raw record rows; each must carry a user_id
    """

    def __init__(self, rows: Iterable[Mapping[str, Any]] = (), **kwargs):
        super().__init__(**kwargs)
        self._rows: List[Dict[str, Any]] = [dict(row) for row in rows]

    def add_record(self, row: Mapping[str, Any]) -> None:
        self._rows.append(dict(row))

    def delete_record(self, record_id: str) -> None:
        self._rows = [row for row in self._rows if str(row.get(ColumnsConfig.ID)) != str(record_id)]

    def fetch_records(self, user_id: str) -> List[IEmissionRecord]:
        records = [
            store_record_adapter(row)
            for row in self._rows
            if str(row.get(ColumnsConfig.USER_ID)) == str(user_id)
        ]
        return sort_by_recency(records)


def sort_by_recency(records: List[IEmissionRecord]) -> List[IEmissionRecord]:
    """Most recent first; records without a readable date go last, in their original order."""

    def key(record: IEmissionRecord):
        timestamp = parse_timestamp(first_non_falsy(record, ColumnsConfig.DATE_ALIASES))
        return (timestamp is None, -timestamp.value if timestamp is not None else 0)

    return sorted(records, key=key)


class BaseCompanyProvider(CompanyDataProvider):
    """Company information and profiles held in memory, keyed by user id"""

    def __init__(
        self,
        company_info: Optional[Dict[str, Dict[str, Any]]] = None,
        profiles: Optional[Dict[str, Mapping[str, Any]]] = None,
        **kwargs,
    ):
        super().__init__(**kwargs)
        self._company_info = dict(company_info or {})
        self._profiles = dict(profiles or {})

    def fetch_company_info(self, user_id: str) -> Optional[Dict[str, Any]]:
        return self._company_info.get(user_id)

    def fetch_profile(self, user_id: str) -> Optional[IProfile]:
        profile = self._profiles.get(user_id)
        if profile is None:
            return None
        return IProfile.model_validate({"id": user_id, **profile})


class CSVExtractionProvider(ExtractionProvider):
    """Reads bulk uploads that are already tabular (CSV or tab separated)"""

    MIME_TYPES = ("text/csv", "text/plain", "text/tab-separated-values")

    def extract(self, document: bytes, mime_type: str = "text/csv") -> List[Dict[str, Any]]:
        if mime_type not in self.MIME_TYPES:
            logger.warning(f"{mime_type} is not a tabular document type")
            return []
        return parse_csv_content(document.decode("utf-8-sig", errors="replace"))


class ModelExtractionProvider(ExtractionProvider):
    """Hands documents to a generative model and reads the rows out of its reply.

    :param generate: Callable taking (prompt, document, mime_type) and returning the model's text reply
    """

    PROMPT = (
        "You are a carbon accounting expert. Extract carbon emission data from this document.\n"
        "For each emission entry return Activity Type, Scope (1, 2 or 3), Quantity and Unit.\n"
        "Valid activity types:\n"
        "Scope 1: Natural Gas, Diesel, Gasoline, Petrol, Propane, Coal, Heating Oil\n"
        "Scope 2: Electricity, Steam\n"
        "Scope 3: Business Travel - Air, Business Travel - Car, Business Travel - Rail, Paper, Water Supply\n"
        'Return a JSON array like [{"Activity Type": "Electricity", "Scope": "2", "Quantity": "12500", "Unit": "kWh"}]'
    )

    def __init__(self, generate: Callable[[str, bytes, str], str], **kwargs):
        super().__init__(**kwargs)
        self.generate = generate

    def extract(self, document: bytes, mime_type: str) -> List[Dict[str, Any]]:
        # A model failure yields no rows; it does not fail the upload
        try:
            response = self.generate(self.PROMPT, document, mime_type)
        except (OSError, RuntimeError, ValueError) as e:
            logger.error(f"Extraction model error: {e}")
            return []
        rows = parse_llm_response(response)
        unclassified = [row for row in rows if row.get(EXTRACTION_SCOPE) == ScopesConfig.UNKNOWN_LABEL]
        if unclassified:
            logger.info(f"{len(unclassified)} extracted row(s) came back without a scope")
        return rows
