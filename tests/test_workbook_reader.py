from __future__ import annotations

import io
import unittest
from datetime import datetime

import openpyxl

from actualization.errors import ParseError
from actualization.normalizers import Sheet, normalize, read_workbook


def _xlsx_bytes(sheets: dict[str, list[list[object]]]) -> bytes:
    workbook = openpyxl.Workbook()
    for index, (name, rows) in enumerate(sheets.items()):
        sheet = workbook.active if index == 0 else workbook.create_sheet()
        sheet.title = name
        for row in rows:
            sheet.append(row)
    buffer = io.BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


class TestReadWorkbook(unittest.TestCase):
    def test_reads_every_sheet_in_order(self) -> None:
        payload = _xlsx_bytes(
            {
                "First": [["Sell Line", "Clicks"], ["Line A", 4]],
                "Second": [["SF_CAMPAIGN_ID"], ["C-1"]],
            }
        )

        workbook = read_workbook("actuals.xlsx", payload)

        self.assertEqual(workbook.sheet_names, ["First", "Second"])
        self.assertEqual(workbook.sheets[0].rows[1], ["Line A", 4])

    def test_date_header_renders_as_month_and_year(self) -> None:
        payload = _xlsx_bytes(
            {
                "Sheet1": [
                    ["Sell Line", "Clicks", datetime(2024, 3, 1)],
                    ["Line A", 10, 100],
                ]
            }
        )

        result = normalize("APAC", read_workbook("actuals.xlsx", payload))

        self.assertEqual(result.schedule_date, "3/2024")
        self.assertEqual(result.rows[0].impressions, 100.0)

    def test_blank_cells_become_none(self) -> None:
        payload = _xlsx_bytes({"Sheet1": [["Sell Line", "Clicks", "Views"], ["Line A", None, 3]]})

        workbook = read_workbook("actuals.xlsx", payload)

        self.assertEqual(workbook.sheets[0].rows[1], ["Line A", None, 3])

    def test_unsupported_extension_is_rejected(self) -> None:
        with self.assertRaisesRegex(ParseError, "Unsupported workbook extension"):
            read_workbook("actuals.csv", b"a,b\n1,2\n")

    def test_empty_payload_is_rejected(self) -> None:
        with self.assertRaisesRegex(ParseError, "empty"):
            read_workbook("actuals.xlsx", b"")

    def test_corrupt_payload_raises_parse_error(self) -> None:
        with self.assertRaisesRegex(ParseError, "Error reading the file"):
            read_workbook("actuals.xlsx", b"definitely not a zip archive")


class TestSheetRecords(unittest.TestCase):
    def test_blank_and_duplicate_headers_get_placeholder_names(self) -> None:
        sheet = Sheet(
            name="Sheet1",
            rows=[
                ["Name", None, "Name", None],
                ["a", 1, "b", 2],
            ],
        )

        self.assertEqual(sheet.headers(), ["Name", "__EMPTY", "Name_1", "__EMPTY_1"])
        self.assertEqual(sheet.records(), [{"Name": "a", "__EMPTY": 1, "Name_1": "b", "__EMPTY_1": 2}])

    def test_blank_rows_and_cells_are_left_out(self) -> None:
        sheet = Sheet(name="Sheet1", rows=[["A", "B"], [None, "  "], ["x", None]])

        self.assertEqual(sheet.records(), [{"A": "x"}])

    def test_header_row_offset(self) -> None:
        sheet = Sheet(name="Sheet1", rows=[["title"], ["A", "B"], [1, 2]])

        self.assertEqual(sheet.records(header_row=1), [{"A": 1, "B": 2}])


if __name__ == "__main__":
    unittest.main()
