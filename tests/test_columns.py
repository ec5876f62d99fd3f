"""Unit tests for header aliases and the header-row locator."""

import os
import sys
import unittest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from prf_sync.columns import (
    FIELD_ALIASES,
    FIELD_KINDS,
    KEY_FIELD,
    build_header_map,
    is_key_header,
    locate_header,
    resolve_header,
)


class TestResolveHeader(unittest.TestCase):
    def test_key_aliases(self):
        for text in ["PRF No", "PRF No.", "prf_no", "PRFNo", "PRF Number", "PR/PO No", "PR No"]:
            self.assertEqual(resolve_header(text), "PRFNo", text)

    def test_other_fields(self):
        self.assertEqual(resolve_header("Budget"), "BudgetYear")
        self.assertEqual(resolve_header("Date Submitted"), "DateSubmit")
        self.assertEqual(resolve_header("requestor"), "SubmitBy")
        self.assertEqual(resolve_header("Total Amount"), "RequestedAmount")
        self.assertEqual(resolve_header("Status in Pronto"), "Status")
        self.assertEqual(resolve_header("COA"), "PurchaseCostCode")

    def test_unknown(self):
        self.assertIsNone(resolve_header("Notes"))
        self.assertIsNone(resolve_header("No"))
        self.assertIsNone(resolve_header(""))
        self.assertIsNone(resolve_header(None))

    def test_is_key_header(self):
        self.assertTrue(is_key_header("PRF No."))
        self.assertFalse(is_key_header("Amount"))

    def test_every_field_has_a_kind(self):
        for field, _ in FIELD_ALIASES:
            self.assertIn(field, FIELD_KINDS)


class TestAliasCollision(unittest.TestCase):
    TABLE = (
        ("First", ("Code", "First Code")),
        ("Second", ("Code", "Second Code")),
    )

    def test_first_declared_field_wins(self):
        self.assertEqual(resolve_header("Code", self.TABLE), "First")
        self.assertEqual(build_header_map(["Code"], self.TABLE), {"First": 0})

    def test_other_aliases_still_resolve(self):
        self.assertEqual(resolve_header("Second Code", self.TABLE), "Second")


class TestBuildHeaderMap(unittest.TestCase):
    def test_basic(self):
        hmap = build_header_map(["No", "PRF No", "Date Submit", "Amount", "Notes", "Status"])
        self.assertEqual(hmap, {"PRFNo": 1, "DateSubmit": 2, "RequestedAmount": 3, "Status": 5})

    def test_leftmost_duplicate_wins(self):
        hmap = build_header_map(["Status", "Amount", "Status in Pronto"])
        self.assertEqual(hmap["Status"], 0)

    def test_blank_cells_skipped(self):
        hmap = build_header_map(["", None, "PRF No"])
        self.assertEqual(hmap, {KEY_FIELD: 2})


class TestLocateHeader(unittest.TestCase):
    def test_banner_above_header(self):
        values = [["Notes"], ["No", "Budget", "PRF No", "Amount"], [1, 2024, "PRF-1", 100]]
        self.assertEqual(locate_header(values), 1)

    def test_key_row_beats_earlier_alias_row(self):
        values = [
            ["Summary", "Status"],
            ["PRF No", "Amount"],
        ]
        self.assertEqual(locate_header(values), 1)

    def test_alias_count_fallback(self):
        values = [["Register"], ["Description", "Amount", "Status"], ["x", 1, "Open"]]
        self.assertEqual(locate_header(values), 1)

    def test_single_alias_is_not_enough(self):
        values = [["Register"], ["Amount"], ["x"]]
        self.assertEqual(locate_header(values), 0)

    def test_window_limit(self):
        values = [["filler"]] * 5 + [["PRF No"]]
        self.assertEqual(locate_header(values, max_rows=5), 0)
        self.assertEqual(locate_header(values, max_rows=6), 5)

    def test_empty(self):
        self.assertEqual(locate_header([]), 0)


if __name__ == "__main__":
    unittest.main()
