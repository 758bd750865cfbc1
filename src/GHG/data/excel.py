import logging
from typing import List, Optional, Type
from urllib.error import URLError

import pandas as pd
from pydantic import ValidationError

from ..configs import FactorConfig, LoggingConfig
from ..data.data_providers import EmissionFactorProvider, FactorFetchFailure
from ..interfaces import IEmissionFactor, IFactorTable
from ..utils import as_number, is_falsy, normalize_scope_number

logger = logging.getLogger(__name__)
LoggingConfig.add_config_to_logger(logger)


def _cell(value) -> str:
    return "" if is_falsy(value) else str(value).strip()


def convert_factor_frame_to_model(df: pd.DataFrame, config: Type[FactorConfig] = FactorConfig) -> IFactorTable:
    """Converts a factor sheet into an IFactorTable
    :param df: One row per factor with at least activity_type and factor columns (headers are case-insensitive)
    :return: IFactorTable instance
    """
    df = df.rename(columns=lambda c: str(c).strip().lower())
    missing = {config.ACTIVITY_TYPE, config.FACTOR} - set(df.columns)
    if missing:
        raise ValueError(f"Emission factor data lacks required columns {sorted(missing)}")

    entries: List[IEmissionFactor] = []
    for index, row in df.iterrows():
        factor = pd.to_numeric(row[config.FACTOR], errors="coerce")
        if is_falsy(_cell(row[config.ACTIVITY_TYPE])) or pd.isna(factor):
            logger.warning(f"Row {index} of emission factor data has no activity type or factor; skipping")
            continue
        try:
            entries.append(
                IEmissionFactor(
                    activity_type=_cell(row[config.ACTIVITY_TYPE]),
                    category=_cell(row.get(config.CATEGORY)),
                    unit=_cell(row.get(config.UNIT)),
                    factor=float(factor),
                    scope=normalize_scope_number(row.get(config.SCOPE)),
                    scope_name=_cell(row.get(config.SCOPE_NAME)),
                    source=_cell(row.get(config.SOURCE)),
                    region=_cell(row.get(config.REGION)),
                )
            )
        except ValidationError as e:
            logger.warning(f"Row {index} of emission factor data does not validate: {e}")
    logger.info(f"Read {len(entries)} emission factors")
    return IFactorTable(entries=entries)


class ExcelFactorProvider(EmissionFactorProvider):
    """Emission factors from a sheet of an Excel workbook.

    :param excel_path: A string with the path to the Excel file
    :param sheet_name: The sheet holding the factors (the first sheet by default)
    """

    def __init__(self, excel_path: str, sheet_name: Optional[str] = None, config: Type[FactorConfig] = FactorConfig):
        super().__init__()
        self.excel_path = excel_path
        self.sheet_name = sheet_name if sheet_name is not None else 0
        self.c = config

    def fetch_factor_table(self) -> IFactorTable:
        try:
            df = pd.read_excel(self.excel_path, sheet_name=self.sheet_name)
        except (OSError, ValueError) as e:
            logger.error(f"Could not read emission factors from {self.excel_path}: {e}")
            raise FactorFetchFailure(f"Could not read emission factors from {self.excel_path}: {e}") from e
        try:
            return convert_factor_frame_to_model(df, self.c)
        except ValueError as e:
            logger.error(str(e))
            raise FactorFetchFailure(str(e)) from e


class CSVFactorProvider(EmissionFactorProvider):
    """Emission factors from a CSV file or URL (by default the published factor repository).

    :param csv_path: Path or URL of the CSV data
    """

    def __init__(self, csv_path: str = FactorConfig.REMOTE_FACTORS_URL, config: Type[FactorConfig] = FactorConfig):
        super().__init__()
        self.csv_path = csv_path
        self.c = config

    def fetch_factor_table(self) -> IFactorTable:
        logger.info(f"Fetching emission factors from {self.csv_path}")
        try:
            df = pd.read_csv(self.csv_path, skipinitialspace=True)
        except (OSError, URLError, pd.errors.ParserError, pd.errors.EmptyDataError) as e:
            logger.error(f"Error fetching emission factors from {self.csv_path}: {e}")
            raise FactorFetchFailure(f"Failed to fetch emission factors: {e}") from e
        try:
            return convert_factor_frame_to_model(df, self.c)
        except ValueError as e:
            logger.error(str(e))
            raise FactorFetchFailure(str(e)) from e


def factor_table_to_frame(table: IFactorTable) -> pd.DataFrame:
    """Inverse of convert_factor_frame_to_model, for exporting a table to CSV or Excel"""
    return pd.DataFrame.from_records(
        [
            {
                FactorConfig.SCOPE: entry.scope,
                FactorConfig.SCOPE_NAME: entry.scope_name,
                FactorConfig.CATEGORY: entry.category,
                FactorConfig.ACTIVITY_TYPE: entry.activity_type,
                FactorConfig.UNIT: entry.unit,
                FactorConfig.FACTOR: as_number(entry.factor),
                FactorConfig.SOURCE: entry.source,
                FactorConfig.REGION: entry.region,
            }
            for entry in table.entries
        ],
        columns=[
            FactorConfig.SCOPE,
            FactorConfig.SCOPE_NAME,
            FactorConfig.CATEGORY,
            FactorConfig.ACTIVITY_TYPE,
            FactorConfig.UNIT,
            FactorConfig.FACTOR,
            FactorConfig.SOURCE,
            FactorConfig.REGION,
        ],
    )
