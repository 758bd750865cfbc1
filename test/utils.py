import json
import unittest
from typing import Any, Dict, List, Optional

from pint import Quantity

from GHG.interfaces import EScope, IEmissionRecord, IScopeTotals


class GHG_Encoder(json.JSONEncoder):
    def default(self, q):
        if isinstance(q, Quantity):
            return f"{q:.5f}"
        elif isinstance(q, EScope):
            return q.value
        else:
            return super().default(q)


def make_record(scope: Any = None, total: Any = None, **kwargs) -> IEmissionRecord:
    """Build a record the way a record adapter would, with the given scope and precomputed total"""
    values: Dict[str, Any] = dict(kwargs)
    if scope is not None:
        values["scope"] = scope
    if total is not None:
        values["total_emissions"] = total
    return IEmissionRecord.model_validate(values)


def make_records(rows: List[Dict[str, Any]]) -> List[IEmissionRecord]:
    return [IEmissionRecord.model_validate({"id": str(i), **row}) for i, row in enumerate(rows)]


def assert_totals_equal(case: unittest.TestCase, totals: IScopeTotals, scope1: float, scope2: float, scope3: float,
                        total: Optional[float] = None, places=7, msg=None):
    # Helper to compare the scope buckets (and the grand total, if given) in one go
    case.assertAlmostEqual(totals.scope1, scope1, places, msg)
    case.assertAlmostEqual(totals.scope2, scope2, places, msg)
    case.assertAlmostEqual(totals.scope3, scope3, places, msg)
    if total is not None:
        case.assertAlmostEqual(totals.total, total, places, msg)
