import datetime
import unittest

from GHG.data.adapters import (
    extraction_row_adapter,
    ocr_record_adapter,
    parse_csv_content,
    parse_llm_response,
    store_record_adapter,
)
from GHG.data.base_providers import BaseFactorProvider
from GHG.enrichment import enrich_records
from GHG.interfaces import IExtractionResult
from GHG.scope_aggregation import aggregate

from utils import assert_totals_equal


class TestStoreRecordAdapter(unittest.TestCase):
    def test_scope_is_normalized(self):
        self.assertEqual(store_record_adapter({"id": 1, "scope": "Scope 3"}).scope, 3)
        self.assertEqual(store_record_adapter({"id": 2, "Scope": "2"}).scope, 2)
        self.assertEqual(store_record_adapter({"id": 3}).scope, 0)

    def test_aliases_are_folded(self):
        record = store_record_adapter(
            {"id": 7, "activityType": "Diesel", "amount": "12", "Unit": "L", "emissionFactor": 2.5, "co2Equivalent": 30}
        )
        self.assertEqual(record.id, "7")
        self.assertEqual(record.activity_type, "Diesel")
        self.assertEqual(record.quantity, "12")
        self.assertEqual(record.unit, "L")
        self.assertEqual(record.emission_factor, 2.5)
        self.assertEqual(record.get("co2Equivalent"), 30)

    def test_unreadable_fields_keep_the_record(self):
        with self.assertLogs("GHG.data.adapters", level="WARNING"):
            record = store_record_adapter({"id": "x", "scope": 1, "quantity": {"value": 3}, "total_emissions": "9"})
        self.assertEqual(record.scope, 1)
        self.assertEqual(record.total_emissions, "9")


class TestExtractionAdapters(unittest.TestCase):
    def setUp(self) -> None:
        self.table = BaseFactorProvider().fetch_factor_table()

    def test_extraction_row(self):
        record = extraction_row_adapter(
            {"Activity Type": "Electricity", "Scope": "Scope 2", "Quantity": "1200", "Unit": "MWh"},
            self.table,
            "bills.csv",
        )
        self.assertEqual(record.scope, 2)
        self.assertEqual(record.category, "Energy")
        self.assertEqual(record.unit, "kWh")
        self.assertEqual(record.description, "Bulk uploaded from bills.csv")
        self.assertEqual(record.get("scope_label"), "Scope 2")
        self.assertEqual(record.date, datetime.date.today().isoformat())

    def test_unknown_activity(self):
        record = extraction_row_adapter({"Activity Type": "Llama rides", "Scope": "Unknown", "Quantity": "3"})
        self.assertEqual(record.category, "Unknown")
        self.assertEqual(record.unit, "unknown")
        self.assertEqual(record.scope, 0)
        self.assertIsNone(record.description)

    def test_ocr_result(self):
        records = ocr_record_adapter(
            IExtractionResult(value="350.5", unit="kWh", detected_data_type="Electricity", supplier_name="PowerCo",
                              confidence=0.9, date="2024-04-01")
        )
        self.assertEqual(len(records), 1)
        self.assertEqual(records[0].activity_type, "Electricity")
        self.assertEqual(records[0].scope, 2)
        self.assertEqual(records[0].description, "Extracted from PowerCo")
        self.assertEqual(records[0].get("confidence"), 0.9)

    def test_ocr_secondary_reading(self):
        records = ocr_record_adapter(
            {"value": 40, "unit": "L", "detectedDataType": "Fuel (Diesel)", "secondaryValue": 25,
             "secondaryDataType": "Fuel (Petrol)"}
        )
        self.assertEqual([r.activity_type for r in records], ["Diesel", "Gasoline"])
        self.assertEqual([r.scope for r in records], [1, 1])
        self.assertEqual(records[1].quantity, 25)

    def test_ocr_unknown_type(self):
        with self.assertLogs("GHG.data.adapters", level="WARNING"):
            records = ocr_record_adapter({"value": 1, "detectedDataType": "Groceries"})
        self.assertEqual(records[0].scope, 0)
        self.assertEqual(records[0].activity_type, "Groceries")

    def test_extracted_records_converge(self):
        # Extracted records go through the same enrichment and aggregation as stored ones
        rows = parse_llm_response('[{"Activity Type": "Electricity", "Scope": "2", "Quantity": "1000", "Unit": "kWh"}]')
        records = [extraction_row_adapter(row, self.table) for row in rows]
        records += ocr_record_adapter({"value": 100, "unit": "L", "detectedDataType": "Fuel (Diesel)"})
        totals = aggregate(enrich_records(records, self.table))
        assert_totals_equal(self, totals, 268, 500, 0, 768)


class TestParsers(unittest.TestCase):
    def test_csv(self):
        text = "Activity Type,Scope,Quantity,Unit\nElectricity,2,1000,kWh\nDiesel,Scope 1,50,L\n,,,\nPaper,,3,\n"
        rows = parse_csv_content(text)
        self.assertEqual(len(rows), 3)
        self.assertEqual(rows[0], {"Activity Type": "Electricity", "Scope": "Scope 2", "Quantity": "1000",
                                   "Unit": "kWh"})
        self.assertEqual(rows[1]["Scope"], "Scope 1")
        self.assertEqual(rows[2]["Scope"], "Unknown")
        self.assertEqual(rows[2]["Unit"], "unknown")

    def test_tab_separated(self):
        rows = parse_csv_content("type\tamount\nGasoline\t20\n")
        self.assertEqual(rows, [{"Activity Type": "Gasoline", "Scope": "Unknown", "Quantity": "20",
                                 "Unit": "unknown"}])

    def test_csv_without_required_columns(self):
        self.assertEqual(parse_csv_content("name,value\nfoo,1\n"), [])
        self.assertEqual(parse_csv_content("Activity Type,Quantity\n"), [])

    def test_llm_response(self):
        response = '```json\n[{"Activity Type": "Diesel", "Scope": 1, "Quantity": 40, "Unit": "L"}, ' \
                   '{"Activity Type": "Paper"}, "junk"]\n```'
        rows = parse_llm_response(response)
        self.assertEqual(len(rows), 2)
        self.assertEqual(rows[0], {"Activity Type": "Diesel", "Scope": "Scope 1", "Quantity": "40", "Unit": "L"})
        self.assertEqual(rows[1]["Quantity"], "1")
        self.assertEqual(rows[1]["Scope"], "Unknown")

    def test_llm_garbage(self):
        self.assertEqual(parse_llm_response("I could not find anything"), [])
        self.assertEqual(parse_llm_response("[not json]"), [])
        self.assertEqual(parse_llm_response(None), [])


if __name__ == "__main__":
    unittest.main()
