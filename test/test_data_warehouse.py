import unittest
from datetime import datetime, timedelta, timezone

from GHG.data.base_providers import (
    BaseCompanyProvider,
    BaseFactorProvider,
    BaseRecordProvider,
    CSVExtractionProvider,
    ModelExtractionProvider,
)
from GHG.data.data_providers import (
    AuthenticationFailure,
    CompanyDataProvider,
    CompanyFetchFailure,
    EmissionFactorProvider,
    EmissionRecordProvider,
    FactorFetchFailure,
    FetchFailure,
    RecordFetchFailure,
)
from GHG.data.data_warehouse import DataWarehouse
from GHG.data.factor_cache import FactorTableCache
from GHG.interfaces import IUserIdentity
from GHG.scope_aggregation import EAggregationMode

from utils import assert_totals_equal


class UnreachableRecords(EmissionRecordProvider):
    def __init__(self, error: Exception):
        super().__init__()
        self.error = error

    def fetch_records(self, user_id):
        raise self.error


class UnreachableCompany(CompanyDataProvider):
    def fetch_company_info(self, user_id):
        raise TimeoutError("company store timed out")

    def fetch_profile(self, user_id):
        return None


class UnreachableFactors(EmissionFactorProvider):
    def fetch_factor_table(self):
        raise FactorFetchFailure("remote factor csv unreachable")


class TestBaseProviders(unittest.TestCase):
    def test_records_are_user_scoped_and_recent_first(self):
        provider = BaseRecordProvider(
            [
                {"id": 1, "user_id": "u1", "scope": "Scope 1", "date": "2024-01-01"},
                {"id": 2, "user_id": "u2", "scope": 2, "date": "2024-03-01"},
                {"id": 3, "user_id": "u1", "scope": 3, "created_at": "2024-02-01"},
                {"id": 4, "user_id": "u1", "scope": 2},
            ]
        )
        records = provider.fetch_records("u1")
        self.assertEqual([r.id for r in records], ["3", "1", "4"])
        self.assertEqual([r.scope for r in records], [3, 1, 2])

    def test_add_and_delete(self):
        provider = BaseRecordProvider()
        provider.add_record({"id": "a", "user_id": "u1", "scope": 1, "total_emissions": 1})
        provider.add_record({"id": "b", "user_id": "u1", "scope": 1, "total_emissions": 2})
        provider.delete_record("a")
        self.assertEqual([r.id for r in provider.fetch_records("u1")], ["b"])

    def test_company_provider(self):
        provider = BaseCompanyProvider({"u1": {"company_name": "Acme"}}, {"u1": {"full_name": "Jane Doe"}})
        self.assertEqual(provider.fetch_company_info("u1")["company_name"], "Acme")
        self.assertEqual(provider.fetch_profile("u1").full_name, "Jane Doe")
        self.assertEqual(provider.fetch_profile("u1").id, "u1")
        self.assertIsNone(provider.fetch_company_info("u2"))
        self.assertIsNone(provider.fetch_profile("u2"))


class TestDataWarehouse(unittest.TestCase):
    """
    Test that an empty store and an unreachable store give different outcomes
    """

    def setUp(self) -> None:
        self.records = BaseRecordProvider(
            [
                {"id": 1, "user_id": "u1", "activity_type": "Electricity", "scope": "Scope 2", "quantity": "1000"},
                {"id": 2, "user_id": "u1", "activity_type": "Diesel", "scope": 1, "quantity": 100},
                {"id": 3, "user_id": "u1", "activity_type": "Mystery", "scope": "?", "quantity": 7},
            ]
        )
        self.company = BaseCompanyProvider(
            {"u1": {"company_name": "Acme", "base_year": "2022"}},
            {"u1": {"full_name": "Jane Doe", "email": "jane@acme.example"}},
        )
        self.warehouse = DataWarehouse(self.records, self.company, BaseFactorProvider())

    def test_report(self):
        report = self.warehouse.get_report(IUserIdentity(id="u1"))
        assert_totals_equal(self, report.emissions, 268, 500, 0, 768)
        self.assertEqual(report.emissions.unclassified, 7)
        self.assertEqual(report.company_info.name, "Acme")
        self.assertEqual(report.company_info.base_year, 2022)
        self.assertEqual(report.metadata.user_email, "jane@acme.example")
        self.assertEqual(len(report.line_items), 3)

    def test_report_options(self):
        report = self.warehouse.get_report({"id": "u1"}, mode=EAggregationMode.SIMPLE, include_line_items=False)
        self.assertEqual(report.emissions.total, 775)
        self.assertIsNone(report.line_items)

    def test_no_records_is_an_empty_report(self):
        report = self.warehouse.get_report(IUserIdentity(id="newcomer", email="new@acme.example"))
        self.assertTrue(report.is_empty)
        assert_totals_equal(self, report.emissions, 0, 0, 0, 0)
        self.assertEqual(report.company_info.name, "N/A")
        self.assertEqual(report.metadata.user_name, "User")
        self.assertEqual(report.metadata.user_email, "new@acme.example")

    def test_no_identity_is_an_empty_report(self):
        warehouse = DataWarehouse(UnreachableRecords(ConnectionError("down")))
        report = warehouse.get_report(None)
        self.assertTrue(report.is_empty)
        self.assertEqual(warehouse.get_report(IUserIdentity()).metadata.user_id, "N/A")

    def test_unreachable_store_raises(self):
        warehouse = DataWarehouse(UnreachableRecords(ConnectionError("down")), self.company)
        with self.assertLogs("GHG.data.data_warehouse", level="ERROR"):
            with self.assertRaises(RecordFetchFailure) as cm:
                warehouse.get_report(IUserIdentity(id="u1"))
        self.assertEqual(cm.exception.user_id, "u1")
        self.assertIsInstance(cm.exception.__cause__, ConnectionError)

    def test_rejected_identity_raises(self):
        warehouse = DataWarehouse(UnreachableRecords(AuthenticationFailure("token expired")))
        with self.assertRaises(FetchFailure):
            warehouse.get_report(IUserIdentity(id="u1"))

    def test_company_store_failure_raises(self):
        warehouse = DataWarehouse(self.records, UnreachableCompany())
        with self.assertRaises(CompanyFetchFailure):
            warehouse.get_report(IUserIdentity(id="u1"))

    def test_without_company_provider(self):
        report = DataWarehouse(self.records).get_report(IUserIdentity(id="u1"))
        self.assertEqual(report.company_info.name, "N/A")
        # Without factors every quantity is taken as kg CO2e
        assert_totals_equal(self, report.emissions, 100, 1000, 0, 1100)

    def test_unreachable_factors_fall_back(self):
        warehouse = DataWarehouse(self.records, self.company, UnreachableFactors())
        with self.assertLogs("GHG.data.data_warehouse", level="ERROR"):
            report = warehouse.get_report(IUserIdentity(id="u1"))
        assert_totals_equal(self, report.emissions, 100, 1000, 0, 1100)
        self.assertEqual(report.company_info.name, "Acme")

    def test_factor_cache_source(self):
        now = datetime(2024, 1, 1, tzinfo=timezone.utc)
        cache = FactorTableCache(BaseFactorProvider(), ttl=timedelta(days=1), now=lambda: now)
        report = DataWarehouse(self.records, factor_source=cache).get_report(IUserIdentity(id="u1"))
        self.assertEqual(report.emissions.scope2, 500)


class TestUploads(unittest.TestCase):
    def setUp(self) -> None:
        self.records = BaseRecordProvider()

    def test_csv_upload(self):
        warehouse = DataWarehouse(self.records, factor_source=BaseFactorProvider(),
                                  extraction_provider=CSVExtractionProvider())
        document = b"Activity Type,Scope,Quantity,Unit\nElectricity,2,1000,kWh\nPaper,3,10,kg\n"
        records = warehouse.extract_records(document, "text/csv", "march.csv", user_id="u1")
        self.assertEqual(len(records), 2)
        self.assertEqual(records[0].user_id, "u1")
        self.assertEqual(records[1].category, "Materials")
        self.assertEqual(records[1].description, "Bulk uploaded from march.csv")
        for record in records:
            self.records.add_record(record.model_dump())
        report = warehouse.get_report(IUserIdentity(id="u1"))
        assert_totals_equal(self, report.emissions, 0, 500, 15, 515)

    def test_model_upload(self):
        def generate(prompt, document, mime_type):
            return '```json\n[{"Activity Type": "Diesel", "Scope": "1", "Quantity": "40", "Unit": "L"}]\n```'

        warehouse = DataWarehouse(self.records, extraction_provider=ModelExtractionProvider(generate))
        records = warehouse.extract_records(b"%PDF", "application/pdf")
        self.assertEqual(records[0].activity_type, "Diesel")
        self.assertEqual(records[0].scope, 1)

    def test_model_failure_gives_no_rows(self):
        def generate(prompt, document, mime_type):
            raise RuntimeError("quota exceeded")

        warehouse = DataWarehouse(self.records, extraction_provider=ModelExtractionProvider(generate))
        with self.assertLogs("GHG.data.base_providers", level="ERROR"):
            self.assertEqual(warehouse.extract_records(b"%PDF", "application/pdf"), [])

    def test_csv_provider_rejects_other_documents(self):
        self.assertEqual(CSVExtractionProvider().extract(b"%PDF", "application/pdf"), [])


if __name__ == "__main__":
    unittest.main()
