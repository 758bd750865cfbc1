import logging
from typing import Any, Dict, List, Mapping, Optional, Union

from ..configs import LoggingConfig
from ..data.adapters import extraction_row_adapter
from ..data.data_providers import (
    CompanyDataProvider,
    CompanyFetchFailure,
    EmissionFactorProvider,
    EmissionRecordProvider,
    ExtractionProvider,
    FetchFailure,
    RecordFetchFailure,
)
from ..data.factor_cache import FactorTableCache
from ..interfaces import IEmissionRecord, IFactorTable, IProfile, IReport, IUserIdentity, emptyFactorTable
from ..report import assemble_report

logger = logging.getLogger(__name__)
LoggingConfig.add_config_to_logger(logger)

FactorSource = Union[EmissionFactorProvider, FactorTableCache, IFactorTable, None]


class DataWarehouse:
    """Fetches what a report needs from the stores and hands it to the report assembler.

    A store that cannot be reached raises a FetchFailure and no report is produced. A store that is reachable but has
    nothing for the user gives an empty (zero) report.
    """

    def __init__(
        self,
        record_provider: EmissionRecordProvider,
        company_provider: Optional[CompanyDataProvider] = None,
        factor_source: FactorSource = None,
        extraction_provider: Optional[ExtractionProvider] = None,
    ):
        """Create a new data warehouse instance.

        :param record_provider: EmissionRecordProvider
        :param company_provider: CompanyDataProvider, or None if company info and profiles are not kept
        :param factor_source: A factor table, an EmissionFactorProvider or a FactorTableCache
        :param extraction_provider: ExtractionProvider for document uploads
        """
        self.record_provider = record_provider
        self.company_provider = company_provider
        self.factor_source = factor_source
        self.extraction_provider = extraction_provider

    @property
    def factor_table(self) -> IFactorTable:
        """The factor table for one request; it is not re-read while the request runs"""
        if self.factor_source is None:
            return emptyFactorTable
        if isinstance(self.factor_source, FactorTableCache):
            return self.factor_source.get_table()
        if isinstance(self.factor_source, EmissionFactorProvider):
            try:
                return self.factor_source.fetch_factor_table()
            except (FetchFailure, OSError, ValueError) as e:
                # Factors fall back to 1; only the record and company stores abort a report
                logger.error(f"Could not fetch emission factors, using an empty table: {e}")
                return emptyFactorTable
        return self.factor_source

    def get_records(self, user_id: str) -> List[IEmissionRecord]:
        try:
            return self.record_provider.fetch_records(user_id)
        except FetchFailure as e:
            logger.error(f"Could not fetch emission records of user {user_id}: {e}")
            raise
        except (OSError, RuntimeError) as e:
            logger.error(f"Could not fetch emission records of user {user_id}: {e}")
            raise RecordFetchFailure(f"Could not fetch emission records: {e}", user_id) from e

    def get_company_info(self, user_id: str) -> Optional[Dict[str, Any]]:
        if self.company_provider is None:
            return None
        try:
            return self.company_provider.fetch_company_info(user_id)
        except FetchFailure as e:
            logger.error(f"Could not fetch company information of user {user_id}: {e}")
            raise
        except (OSError, RuntimeError) as e:
            logger.error(f"Could not fetch company information of user {user_id}: {e}")
            raise CompanyFetchFailure(f"Could not fetch company information: {e}", user_id) from e

    def get_profile(self, user_id: str) -> Optional[IProfile]:
        if self.company_provider is None:
            return None
        try:
            return self.company_provider.fetch_profile(user_id)
        except FetchFailure as e:
            logger.error(f"Could not fetch profile of user {user_id}: {e}")
            raise
        except (OSError, RuntimeError) as e:
            logger.error(f"Could not fetch profile of user {user_id}: {e}")
            raise CompanyFetchFailure(f"Could not fetch profile: {e}", user_id) from e

    def get_report(self, identity: Union[IUserIdentity, Mapping[str, Any], None], **kwargs) -> IReport:
        """Report of the user IDENTITY. Without an identity (demo use) the report is empty.

        :param kwargs: Passed on to assemble_report (mode, include_gas_breakdown, ...)
        :raises FetchFailure: if records, company info or profile cannot be fetched
        """
        if identity is not None and not isinstance(identity, IUserIdentity):
            identity = IUserIdentity.model_validate(identity)
        if identity is None or not identity.id:
            logger.info("No user identity; producing an empty report")
            return assemble_report([], identity=identity, **kwargs)

        records = self.get_records(identity.id)
        company_info = self.get_company_info(identity.id)
        profile = self.get_profile(identity.id)
        return assemble_report(
            records,
            company_info=company_info,
            profile=profile,
            identity=identity,
            factor_table=self.factor_table,
            **kwargs,
        )

    def extract_records(
        self, document: bytes, mime_type: str, source_name: Optional[str] = None, user_id: Optional[str] = None
    ) -> List[IEmissionRecord]:
        """Records read from an uploaded document, with category and unit taken from the factor table"""
        if self.extraction_provider is None:
            raise ValueError("No extraction provider configured")
        rows = self.extraction_provider.extract(document, mime_type)
        table = self.factor_table
        records = [extraction_row_adapter(row, table, source_name) for row in rows]
        if user_id is not None:
            records = [record.model_copy(update={"user_id": user_id}) for record in records]
        logger.info(f"Extracted {len(records)} record(s) from {source_name or 'upload'}")
        return records
