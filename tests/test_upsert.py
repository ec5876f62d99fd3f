"""Unit tests for row matching and the push (update-or-append) path."""

import os
import sys
import unittest
from datetime import date

sys.path.insert(0, os.path.dirname(__file__))
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from fakes import FakeWorkbook
from prf_sync.errors import GraphApiError, ResolutionError
from prf_sync.matcher import find_row, read_sheet
from prf_sync.models import PRFRecord
from prf_sync.upsert import UpsertEngine, build_row
from prf_sync.workbook import contiguous_runs, write_row_cells
from prf_sync.worksheets import SCAN

HEADER = ["No", "PRF No", "Date Submit", "Amount", "Notes", "Status"]


def _detail_sheet():
    # Banner at B3, header at B4, one data row at B5.
    return ("B3", [
        ["PRF Register"],
        HEADER,
        [1, "PRF-001", "2024-01-05", 100, "keep me", "Open"],
    ])


def _record(prf_no="PRF-001", **kwargs):
    values = dict(prf_id=1, prf_no=prf_no, date_submit=date(2024, 1, 5),
                  requested_amount=250.0, status="Approved")
    values.update(kwargs)
    return PRFRecord(**values)


class TestContiguousRuns(unittest.TestCase):
    def test_runs(self):
        self.assertEqual(contiguous_runs({3: "d", 0: "a", 1: "b"}), [[0, 1], [3]])
        self.assertEqual(contiguous_runs({}), [])

    def test_write_row_cells(self):
        book = FakeWorkbook({"S": ("A1", [["x"]])})
        addresses = write_row_cells(book, "S", 7, 1, {0: "a", 1: "b", 4: "e"})
        self.assertEqual(addresses, ["B7:C7", "F7:F7"])
        self.assertEqual(book.cell("S", "C7"), "b")


class TestFindRow(unittest.TestCase):
    def test_trimmed_match_after_header(self):
        values = [["PRF No"], ["PRF-1 "], [" PRF-2"]]
        self.assertEqual(find_row(values, 0, 0, "PRF-2"), 2)

    def test_numeric_cell(self):
        values = [["PRF No"], [1001.0]]
        self.assertEqual(find_row(values, 0, 0, "1001"), 1)

    def test_header_row_never_matches(self):
        values = [["PRF No"], ["x"]]
        self.assertIsNone(find_row(values, 0, 0, "PRF No"))

    def test_blank_key(self):
        self.assertIsNone(find_row([["PRF No"], [""]], 0, 0, "  "))


class TestReadSheet(unittest.TestCase):
    def test_row_number_includes_origin(self):
        book = FakeWorkbook({"PRF Detail": _detail_sheet()})
        match = read_sheet(book, "PRF Detail", "PRF-001")
        self.assertTrue(match.found)
        self.assertEqual(match.header_index, 1)
        self.assertEqual(match.row_number, 5)

    def test_empty_sheet_strict(self):
        book = FakeWorkbook({"PRF Detail": ("A1", [])})
        with self.assertRaises(ResolutionError) as ctx:
            read_sheet(book, "PRF Detail", "PRF-001")
        self.assertIn("no data", str(ctx.exception))
        self.assertEqual(ctx.exception.sheet, "PRF Detail")

    def test_missing_key_column_lenient(self):
        book = FakeWorkbook({"Lookups": ("A1", [["Code", "Amount"], ["x", 1]])})
        self.assertIsNone(read_sheet(book, "Lookups", "PRF-001", strict=False))
        with self.assertRaises(ResolutionError):
            read_sheet(book, "Lookups", "PRF-001", strict=True)


class TestUpsertSingle(unittest.TestCase):
    def setUp(self):
        self.book = FakeWorkbook({"PRF Detail": _detail_sheet()})
        self.engine = UpsertEngine(self.book, "PRF Detail", "PRF Detail")

    def test_update_touches_only_mapped_cells(self):
        outcome = self.engine.upsert(_record())

        self.assertTrue(outcome.updated)
        self.assertFalse(outcome.appended)
        self.assertEqual(outcome.sheet_name, "PRF Detail")
        self.assertEqual(outcome.row_number, 5)
        self.assertEqual([w[1] for w in self.book.writes], ["D5:E5", "G5:G5"])
        self.assertEqual(self.book.cell("PRF Detail", "C5"), "PRF-001")
        self.assertEqual(self.book.cell("PRF Detail", "E5"), 250)
        self.assertEqual(self.book.cell("PRF Detail", "G5"), "Approved")
        self.assertEqual(self.book.cell("PRF Detail", "F5"), "keep me")
        self.assertEqual(self.book.cell("PRF Detail", "B5"), 1)

    def test_append_below_used_range(self):
        outcome = self.engine.upsert(_record("PRF-002", prf_id=2))

        self.assertTrue(outcome.appended)
        self.assertFalse(outcome.updated)
        # used range starts at row 3 and has 3 rows
        self.assertEqual(outcome.row_number, 6)
        sheet, address, values = self.book.writes[-1]
        self.assertEqual(address, "B6:G6")
        self.assertEqual(values, [["", "PRF-002", "2024-01-05", 250, "", "Approved"]])

    def test_idempotent(self):
        first = self.engine.upsert(_record("PRF-003", prf_id=3))
        second = self.engine.upsert(_record("PRF-003", prf_id=3, status="Closed"))

        self.assertTrue(first.appended)
        self.assertTrue(second.updated)
        self.assertEqual(second.row_number, first.row_number)
        self.assertEqual(self.book.rows_with("PRF Detail", "PRF-003"), [first.row_number])
        self.assertEqual(self.book.cell("PRF Detail", f"G{first.row_number}"), "Closed")

    def test_blank_values_clear_mapped_cells(self):
        self.engine.upsert(_record(requested_amount=None))
        self.assertEqual(self.book.cell("PRF Detail", "E5"), "")

    def test_empty_sheet(self):
        book = FakeWorkbook({"PRF Detail": ("A1", [])})
        engine = UpsertEngine(book, "PRF Detail", "PRF Detail")
        with self.assertRaises(ResolutionError):
            engine.upsert(_record())
        self.assertEqual(book.writes, [])

    def test_missing_worksheet(self):
        engine = UpsertEngine(FakeWorkbook({}), "PRF Detail", "PRF Detail")
        with self.assertRaises(GraphApiError):
            engine.upsert(_record())


class TestUpsertScan(unittest.TestCase):
    def setUp(self):
        self.book = FakeWorkbook({
            "PRF Detail 2023": ("A1", [["PRF No", "Status"], ["PRF-100", "Open"]]),
            "Lookups": ("A1", [["Code"], ["X"]]),
            "PRF Detail 2024": ("A1", [["PRF No", "Status"], ["PRF-200", "Open"]]),
            "PRF Detail Notes": ("A1", [["Free text only"]]),
        })
        self.engine = UpsertEngine(self.book, "PRF Detail", "PRF Detail")

    def test_update_found_in_older_sheet(self):
        outcome = self.engine.upsert(_record("PRF-100"), mode=SCAN, year=2024)
        self.assertTrue(outcome.updated)
        self.assertEqual(outcome.sheet_name, "PRF Detail 2023")
        self.assertEqual(self.book.cell("PRF Detail 2023", "B2"), "Approved")

    def test_append_to_year_sheet(self):
        outcome = self.engine.upsert(_record("PRF-300"), mode=SCAN, year=2024)
        self.assertTrue(outcome.appended)
        self.assertEqual(outcome.sheet_name, "PRF Detail 2024")
        self.assertEqual(outcome.row_number, 3)
        self.assertEqual(self.book.cell("PRF Detail 2024", "A3"), "PRF-300")

    def test_append_without_year_goes_to_first_candidate(self):
        outcome = self.engine.upsert(_record("PRF-300"), mode=SCAN)
        self.assertEqual(outcome.sheet_name, "PRF Detail 2023")


class TestBuildRow(unittest.TestCase):
    def test_unmapped_columns_blank(self):
        row = build_row(_record(), {"PRFNo": 0, "Status": 2}, 4)
        self.assertEqual(row, ["PRF-001", "", "Approved", ""])


if __name__ == "__main__":
    unittest.main()
