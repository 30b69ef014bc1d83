import unittest

from quotation_generator.pagination import LayoutBudget
from quotation_generator.preview import build_preview


def payload(item_count: int, **extra: object) -> dict:
    data = {
        "client": {"name": "Wang"},
        "details": {"number": "Q-202410001", "date": "2024-10-24", "tax_rate": 5},
        "items": [{"id": i, "name": f"Item {i}", "quantity": 1, "unit_price": 100} for i in range(1, item_count + 1)],
    }
    data.update(extra)
    return data


class BuildPreviewTests(unittest.TestCase):
    def test_single_page_preview(self) -> None:
        preview = build_preview(payload(3), company_tag="ACME")

        self.assertEqual(preview["page_count"], 1)
        page = preview["pages"][0]
        self.assertTrue(page["is_first_page"])
        self.assertTrue(page["is_last_page"])
        self.assertTrue(page["has_footer"])
        self.assertEqual([row["row_number"] for row in page["rows"]], [1, 2, 3])
        self.assertEqual(page["rows"][0]["row_height"], 45)
        self.assertEqual(preview["summary"]["total"], 315)
        self.assertEqual(preview["export_file_name"], "1131024_ACME_Wang")

    def test_row_numbers_continue_across_pages(self) -> None:
        preview = build_preview(payload(20), LayoutBudget())

        self.assertEqual(preview["page_count"], 2)
        first, second = preview["pages"]
        self.assertFalse(first["has_footer"])
        self.assertEqual(second["rows"][0]["row_number"], 16)
        self.assertEqual(second["rows"][-1]["row_number"], 20)

    def test_inclusive_prices_in_rows(self) -> None:
        preview = build_preview(payload(1, is_tax_inclusive=True))
        row = preview["pages"][0]["rows"][0]

        self.assertEqual(row["effective_unit_price"], 95)
        self.assertEqual(row["row_amount"], 95)
        self.assertTrue(preview["summary"]["is_tax_inclusive"])


if __name__ == "__main__":
    unittest.main()
