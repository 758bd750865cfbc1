"""This package turns logged greenhouse gas activity records into Scope 1, 2 and 3 totals and assembles them, together
with company and user metadata, into a GHG Protocol style report.
"""

import pandas as pd
import pint

from . import utils  # noqa F401
from .interfaces import EScope
from .report import assemble_report, compute_report  # noqa F401
from .scope_aggregation import EAggregationMode, aggregate  # noqa F401


def JSONEncoder(q):
    """`default=` hook for json.dumps of report parts that pydantic does not serialize itself"""
    if isinstance(q, pint.Quantity):
        return f"{q:.5f}"
    elif isinstance(q, EScope):
        return q.name
    elif isinstance(q, EAggregationMode):
        return q.value
    elif isinstance(q, pd.Timestamp):
        return q.isoformat()
    elif isinstance(q, pd.Period):
        return str(q)
    else:
        return str(q)
