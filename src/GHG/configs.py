"""This file defines the constants used throughout the different classes. In order to redefine these settings whilst using
the module, extend the respective config class and pass it to the class as the "config" parameter.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Dict, List, Tuple

from pydantic import BaseModel


class ColumnsConfig:
    # Define a constant for each field of an emission record
    ID = "id"
    USER_ID = "user_id"
    ACTIVITY_TYPE = "activity_type"
    CATEGORY = "category"
    SCOPE = "scope"
    QUANTITY = "quantity"
    UNIT = "unit"
    EMISSION_FACTOR = "emission_factor"
    TOTAL_EMISSIONS = "total_emissions"
    CO2_EQUIVALENT = "co2_equivalent"
    DATE = "date"
    CREATED_AT = "created_at"
    DESCRIPTION = "description"

    # Derived fields
    ACTIVITY_DESCRIPTION = "activity_description"
    MONTH = "month"
    COUNT = "count"
    AVERAGE = "average"
    TOTAL = "total"
    PERCENTAGE = "percentage"

    # Accessor keys tried in order, first non-falsy value wins
    TOTAL_EMISSIONS_ALIASES: Tuple[str, ...] = (
        "total_emissions",
        "co2_equivalent",
        "co2Equivalent",
        "totalEmissions",
    )
    EMISSION_FACTOR_ALIASES: Tuple[str, ...] = ("emission_factor", "emissionFactor")
    DATE_ALIASES: Tuple[str, ...] = ("date", "created_at", "createdAt")
    ACTIVITY_TYPE_ALIASES: Tuple[str, ...] = ("activity_type", "activityType", "Activity Type")
    SCOPE_ALIASES: Tuple[str, ...] = ("scope", "Scope", "scope_id")
    QUANTITY_ALIASES: Tuple[str, ...] = ("quantity", "Quantity", "amount", "value")
    UNIT_ALIASES: Tuple[str, ...] = ("unit", "Unit")


class ScopesConfig:
    SCOPE_1 = 1
    SCOPE_2 = 2
    SCOPE_3 = 3
    UNCLASSIFIED = 0

    SCOPE_LABEL_PREFIX = "Scope "
    UNKNOWN_LABEL = "Unknown"

    NAMES: Dict[int, str] = {
        1: "Scope 1 (Direct)",
        2: "Scope 2 (Indirect Energy)",
        3: "Scope 3 (Other Indirect)",
    }
    DESCRIPTIONS: Dict[int, str] = {
        1: "Direct GHG emissions from sources owned or controlled by the organization",
        2: "Indirect GHG emissions from purchased electricity, steam, heating and cooling",
        3: "All other indirect GHG emissions in the value chain",
    }

    @classmethod
    def get_scopes(cls) -> List[int]:
        """Get the canonical scope numbers, in reporting order.
        :return: A list of scope numbers
        """
        return [cls.SCOPE_1, cls.SCOPE_2, cls.SCOPE_3]


class CompanyInfoConfig:
    COMPANY_NAME = "company_name"
    COMPANY_DESCRIPTION = "company_description"
    CONSOLIDATION_APPROACH = "consolidation_approach"
    BUSINESS_DESCRIPTION = "business_description"
    REPORTING_PERIOD = "reporting_period"
    BASE_YEAR = "base_year"
    BASE_YEAR_RATIONALE = "base_year_rationale"
    BASE_YEAR_RECALCULATION_POLICY = "base_year_recalculation_policy"
    SCOPE3_ACTIVITIES = "scope3_activities"
    EXCLUDED_ACTIVITIES = "excluded_activities"

    # Values of CONSOLIDATION_APPROACH
    EQUITY_SHARE = "equity-share"
    FINANCIAL_CONTROL = "financial-control"
    OPERATIONAL_CONTROL = "operational-control"


class ReportConfig:
    NOT_AVAILABLE = "N/A"
    DEFAULT_USER_NAME = "User"
    NO_DESCRIPTION = "-"
    ROUNDING_PLACES = 2
    # Display helpers switch from kg to t at this many kilograms
    TONNES_THRESHOLD = 1000.0
    TOP_CATEGORIES = 6


class FactorConfig:
    # Unresolved factors are logged at DEBUG on GHG.factor_resolution, below the INFO level LoggingConfig sets
    # Multiplier used when no factor can be resolved: quantity is taken as already-computed kg CO2e
    FALLBACK_FACTOR = 1.0
    CACHE_TTL = timedelta(hours=1)
    DEFAULT_REGION = "US"
    REMOTE_FACTORS_URL = (
        "https://raw.githubusercontent.com/Azhnfikry/aethera-emission-factors/main/data/emission_factors.csv"
    )

    ACTIVITY_TYPE = "activity_type"
    CATEGORY = "category"
    UNIT = "unit"
    FACTOR = "factor"
    SCOPE = "scope_id"
    SCOPE_NAME = "scope_name"
    SOURCE = "source"
    REGION = "region"


class AggregationControls(BaseModel):
    """Switches of a report computation. MODE is the value of an EAggregationMode."""

    mode: str = "strict"
    by_category: bool = True
    gas_breakdown: bool = False
    line_items: bool = True

    def __getitem__(self, item):
        return getattr(self, item)


class ReportControlsConfig(ReportConfig):
    # Shared default; derive variants with model_copy(update=...)
    CONTROLS_CONFIG = AggregationControls()


class LoggingConfig:
    FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    @classmethod
    def add_config_to_logger(cls, logger: logging.Logger):
        logger.setLevel(logging.INFO)
        formatter = logging.Formatter(cls.FORMAT)
        stream_handler = logging.StreamHandler()
        stream_handler.setFormatter(formatter)
        logger.addHandler(stream_handler)


# Add these lines to any file that uses logging
# from GHG.configs import LoggingConfig
# import logging
# logger = logging.getLogger(__name__)
# LoggingConfig.add_config_to_logger(logger)
