import logging
import unittest

from GHG.configs import FactorConfig
from GHG.data.base_providers import BUILTIN_EMISSION_FACTORS, BaseFactorProvider
from GHG.factor_resolution import EmissionFactorResolver, resolve_factor
from GHG.interfaces import IEmissionFactor, IFactorTable

from utils import make_record


class TestResolveFactor(unittest.TestCase):
    """
    Test the precedence of factor resolution
    """

    def setUp(self) -> None:
        self.table = IFactorTable(
            entries=[
                IEmissionFactor(activity_type="Electricity", category="Energy", unit="kWh", factor=0.5, scope=2),
                IEmissionFactor(activity_type="Energy", category="Energy", unit="kWh", factor=0.7, scope=2),
            ]
        )

    def test_own_factor_wins(self):
        record = make_record(activity_type="Electricity", emission_factor="0.42")
        self.assertEqual(resolve_factor(record, self.table), 0.42)

    def test_zero_own_factor_is_ignored(self):
        record = make_record(activity_type="Electricity", emission_factor=0)
        self.assertEqual(resolve_factor(record, self.table), 0.5)

    def test_camel_case_factor(self):
        record = make_record(activity_type="Electricity", emissionFactor=3.0)
        self.assertEqual(resolve_factor(record, self.table), 3.0)

    def test_activity_type_case_insensitive(self):
        record = make_record(activity_type="  ELECTRICITY ")
        self.assertEqual(resolve_factor(record, self.table), 0.5)

    def test_category_fallback(self):
        record = make_record(activity_type="Solar Lease", category="energy")
        self.assertEqual(resolve_factor(record, self.table), 0.7)

    def test_constant_fallback(self):
        record = make_record(activity_type="Unobtainium", category="Mystery")
        self.assertEqual(resolve_factor(record, self.table), FactorConfig.FALLBACK_FACTOR)
        self.assertEqual(resolve_factor(record, None), 1.0)
        self.assertEqual(resolve_factor(record, IFactorTable()), 1.0)

    def test_unresolved_is_logged_at_debug(self):
        record = make_record(id="r1", activity_type="Unobtainium")
        with self.assertLogs("GHG.factor_resolution", level="DEBUG") as logs:
            resolve_factor(record, self.table)
        self.assertIn("Unobtainium", logs.output[0])

    def test_debug_messages_need_a_lower_level(self):
        logger = logging.getLogger("GHG.factor_resolution")
        self.assertEqual(logger.level, logging.INFO)
        self.assertFalse(logger.isEnabledFor(logging.DEBUG))
        logger.setLevel(logging.DEBUG)
        try:
            self.assertTrue(logger.isEnabledFor(logging.DEBUG))
        finally:
            logger.setLevel(logging.INFO)


class TestFactorTable(unittest.TestCase):
    def test_builtin_table(self):
        table = BaseFactorProvider().fetch_factor_table()
        self.assertEqual(len(table), len(BUILTIN_EMISSION_FACTORS))
        self.assertEqual(table.lookup("diesel").factor, 2.68)
        self.assertEqual(table.lookup("Business Travel - Air").factor, 0.255)
        self.assertIn("water supply", table)
        self.assertIsNone(table.lookup(None))

    def test_from_mapping(self):
        table = IFactorTable.from_mapping(
            {"Steam": 0.3, "Propane": {"factor": 1.51, "unit": "L", "category": "Fuel"}, "Broken": {"unit": "kg"}}
        )
        self.assertEqual(table.lookup("steam").factor, 0.3)
        self.assertEqual(table.lookup("propane").unit, "L")
        self.assertNotIn("Broken", table)

    def test_first_entry_wins(self):
        table = IFactorTable(
            entries=[
                IEmissionFactor(activity_type="Electricity", factor=0.5, region="US"),
                IEmissionFactor(activity_type="Electricity", factor=0.2, region="FR"),
            ]
        )
        self.assertEqual(table.lookup("electricity").factor, 0.5)
        self.assertEqual(table.get_factor("Electricity", "FR").factor, 0.2)


class TestEmissionFactorResolver(unittest.TestCase):
    def test_resolver_reads_source_on_each_call(self):
        tables = [IFactorTable.from_mapping({"Paper": 1.5}), IFactorTable.from_mapping({"Paper": 2.0})]
        resolver = EmissionFactorResolver(lambda: tables[0])
        record = make_record(activity_type="Paper")
        self.assertEqual(resolver(record), 1.5)
        tables.reverse()
        self.assertEqual(resolver(record), 2.0)

    def test_explicit_table_overrides_source(self):
        resolver = EmissionFactorResolver(BaseFactorProvider().fetch_factor_table())
        record = make_record(activity_type="Paper")
        self.assertEqual(resolver(record, IFactorTable.from_mapping({"Paper": 9.0})), 9.0)

    def test_custom_fallback(self):
        class ZeroFallback(FactorConfig):
            FALLBACK_FACTOR = 0.0

        resolver = EmissionFactorResolver(None, config=ZeroFallback)
        self.assertEqual(resolver(make_record(activity_type="Nothing")), 0.0)

    def test_lookups(self):
        resolver = EmissionFactorResolver(BaseFactorProvider().fetch_factor_table())
        scope1 = {entry.activity_type for entry in resolver.get_factors_by_scope(1)}
        self.assertEqual(scope1, {"Natural Gas", "Diesel", "Gasoline"})
        transport = resolver.get_factors_by_category("transportation")
        self.assertEqual(len(transport), 3)
        self.assertEqual(resolver.get_factor("Electricity", None).factor, 0.5)
        # Built-in entries carry no region, so the default region finds nothing
        self.assertIsNone(resolver.get_factor("Electricity"))
        self.assertIsNone(resolver.get_factor("Nothing", None))


if __name__ == "__main__":
    unittest.main()
