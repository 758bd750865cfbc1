from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from ..interfaces import IEmissionRecord, IFactorTable, IProfile


class FetchFailure(Exception):
    """An upstream store (records, company info, profiles, factor tables) could not be reached or refused the
    request. No report is produced when this happens.
    """

    def __init__(self, message: str, user_id: Optional[str] = None):
        super().__init__(message)
        self.user_id = user_id


class AuthenticationFailure(FetchFailure):
    """The store rejected the identity the request was made with"""

    pass


class RecordFetchFailure(FetchFailure):
    pass


class CompanyFetchFailure(FetchFailure):
    pass


class FactorFetchFailure(FetchFailure):
    pass


class EmissionRecordProvider(ABC):
    """Emission record store.

    Initialized EmissionRecordProvider is required when setting up a data warehouse instance.
    """

    def __init__(self, **kwargs):
        """Create a new data provider instance.

        :param config: A dictionary containing the configuration parameters for this data provider.
        """
        pass

    @abstractmethod
    def fetch_records(self, user_id: str) -> List[IEmissionRecord]:
        """Get all emission records of a user, most recent first.

        :param user_id: The user whose records to fetch
        :return: A list of records, already converted by a record adapter
        :raises FetchFailure: if the store cannot be queried
        """
        raise NotImplementedError


class CompanyDataProvider(ABC):
    """Company information and user profile store. Either may be absent for a user."""

    def __init__(self, **kwargs):
        pass

    @abstractmethod
    def fetch_company_info(self, user_id: str) -> Optional[Dict[str, Any]]:
        """Get the raw company information a user entered, or None if there is none.

        :raises FetchFailure: if the store cannot be queried
        """
        raise NotImplementedError

    @abstractmethod
    def fetch_profile(self, user_id: str) -> Optional[IProfile]:
        """Get the profile of a user, or None if there is none.

        :raises FetchFailure: if the store cannot be queried
        """
        raise NotImplementedError


class EmissionFactorProvider(ABC):
    """Emission factor reference data. May be a static table, a file or a remote source."""

    def __init__(self, **kwargs):
        pass

    @abstractmethod
    def fetch_factor_table(self) -> IFactorTable:
        """Get the full factor table.

        :raises FetchFailure: if the source cannot be read
        """
        raise NotImplementedError


class ExtractionProvider(ABC):
    """Document extraction (OCR / LLM). Its output is untrusted and goes through the record adapters like any other
    input.
    """

    def __init__(self, **kwargs):
        pass

    @abstractmethod
    def extract(self, document: bytes, mime_type: str) -> List[Dict[str, Any]]:
        """Best-effort {activity_type, scope, quantity, unit} rows read from DOCUMENT"""
        raise NotImplementedError
