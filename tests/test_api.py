import json
import os
import tempfile
import unittest
from unittest.mock import patch

from quotation_generator.models import Quotation
from quotation_generator.server import (
    handle_record_request,
    split_record_path,
    update_preferences,
    validate_quotation_payload,
)
from quotation_generator.storage import QuotationStore


def json_bytes(payload: object) -> bytes:
    return json.dumps(payload).encode("utf-8")


class ApiValidationTests(unittest.TestCase):
    def test_accepts_valid_payload(self) -> None:
        payload, error = validate_quotation_payload(
            json_bytes({"items": [{"name": "Work", "quantity": 1, "unit_price": 20}]}),
            max_pages=100,
        )

        self.assertIsNone(error)
        assert payload is not None
        self.assertIn("items", payload)

    def test_rejects_invalid_utf8(self) -> None:
        _, error = validate_quotation_payload(b"\xff", max_pages=100)

        self.assertIsNotNone(error)
        assert error is not None
        self.assertEqual(error[0], 400)
        self.assertEqual(error[1]["error"], "invalid_encoding")

    def test_rejects_invalid_json(self) -> None:
        _, error = validate_quotation_payload(b'{"items":', max_pages=100)

        assert error is not None
        self.assertEqual(error[0], 400)
        self.assertEqual(error[1]["error"], "invalid_json")

    def test_rejects_non_object_root(self) -> None:
        _, error = validate_quotation_payload(json_bytes(["bad-root"]), max_pages=100)

        assert error is not None
        self.assertEqual(error[0], 400)
        self.assertEqual(error[1]["error"], "invalid_payload")

    def test_rejects_non_array_items(self) -> None:
        _, error = validate_quotation_payload(json_bytes({"items": "bad"}), max_pages=100)

        assert error is not None
        self.assertEqual(error[0], 400)
        self.assertEqual(error[1]["error"], "invalid_payload")

    def test_rejects_payload_exceeding_max_pages(self) -> None:
        with patch("quotation_generator.server.estimate_page_count", return_value=11):
            _, error = validate_quotation_payload(json_bytes({"items": []}), max_pages=10)

        assert error is not None
        self.assertEqual(error[0], 413)
        self.assertEqual(error[1]["error"], "quotation_too_large")
        self.assertEqual(error[1]["page_count"], 11)

    def test_page_limit_uses_planned_layout(self) -> None:
        items = [{"id": i, "name": "x"} for i in range(1, 41)]

        _, error = validate_quotation_payload(json_bytes({"items": items}), max_pages=2)

        assert error is not None
        self.assertEqual(error[1]["page_count"], 3)


class RecordRequestTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        self.store = QuotationStore(self._tmp.name)

    def test_save_list_load_delete(self) -> None:
        body = json_bytes(Quotation(file_name="acme").to_dict())

        status, saved = handle_record_request("POST", None, body, self.store)
        self.assertEqual(status, 200)
        self.assertEqual(saved["file_name"], "acme")
        self.assertIsNotNone(saved["updated_at"])

        status, listing = handle_record_request("GET", None, None, self.store)
        self.assertEqual(status, 200)
        self.assertEqual([record["file_name"] for record in listing["quotations"]], ["acme"])

        status, record = handle_record_request("GET", "acme", None, self.store, theme_color="#000000")
        self.assertEqual(status, 200)
        self.assertEqual(record["theme_color"], "#000000")

        status, deleted = handle_record_request("DELETE", "acme", None, self.store)
        self.assertEqual((status, deleted), (200, {"deleted": "acme"}))

    def test_missing_record_is_404(self) -> None:
        status, body = handle_record_request("GET", "nope", None, self.store)

        self.assertEqual(status, 404)
        self.assertEqual(body["error"], "quotation_not_found")

    def test_blank_file_name_is_400(self) -> None:
        status, body = handle_record_request("POST", None, json_bytes({"file_name": " "}), self.store)

        self.assertEqual(status, 400)
        self.assertEqual(body["error"], "invalid_file_name")

    def test_overlong_file_name_is_400(self) -> None:
        body = json.dumps({"file_name": "報價" * 50}, ensure_ascii=False).encode("utf-8")

        status, payload = handle_record_request("POST", None, body, self.store)

        self.assertEqual(status, 400)
        self.assertEqual(payload["error"], "invalid_file_name")

    def test_write_failure_is_500(self) -> None:
        root = os.path.join(self._tmp.name, "occupied")
        with open(root, "w", encoding="utf-8") as handle:
            handle.write("not a directory")

        with self.assertLogs("quotation_generator.server", level="ERROR"):
            status, payload = handle_record_request(
                "POST", None, json_bytes({"file_name": "acme"}), QuotationStore(root)
            )

        self.assertEqual(status, 500)
        self.assertEqual(payload["error"], "storage_error")

    def test_invalid_json_body_is_400(self) -> None:
        status, body = handle_record_request("POST", None, b"{", self.store)

        self.assertEqual(status, 400)
        self.assertEqual(body["error"], "invalid_json")

    def test_corrupt_record_is_500(self) -> None:
        with open(os.path.join(self._tmp.name, "broken.json"), "w", encoding="utf-8") as handle:
            handle.write("{")

        with self.assertLogs("quotation_generator.server", level="ERROR"):
            status, body = handle_record_request("GET", "broken", None, self.store)

        self.assertEqual(status, 500)
        self.assertEqual(body["error"], "storage_error")

    def test_unsupported_method_is_405(self) -> None:
        status, _ = handle_record_request("DELETE", None, None, self.store)

        self.assertEqual(status, 405)


class RoutingTests(unittest.TestCase):
    def test_split_record_path(self) -> None:
        self.assertEqual(split_record_path("/quotations"), (True, None))
        self.assertEqual(split_record_path("/quotations/"), (True, None))
        self.assertEqual(split_record_path("/quotations/Acme%20Kitchen"), (True, "Acme Kitchen"))
        self.assertEqual(split_record_path("/layout"), (False, None))


class PreferencesEndpointTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        self.path = os.path.join(self._tmp.name, "preferences.json")

    def test_valid_theme_is_saved(self) -> None:
        status, body = update_preferences(json_bytes({"theme_color": "#336699"}), path=self.path)

        self.assertEqual((status, body), (200, {"theme_color": "#336699"}))
        with open(self.path, "r", encoding="utf-8") as handle:
            self.assertEqual(json.load(handle), {"theme_color": "#336699"})

    def test_unwritable_path_is_500(self) -> None:
        with open(self.path, "w", encoding="utf-8") as handle:
            handle.write("{}")
        blocked = os.path.join(self.path, "preferences.json")

        with self.assertLogs("quotation_generator.server", level="ERROR"):
            status, body = update_preferences(json_bytes({"theme_color": "#336699"}), path=blocked)

        self.assertEqual(status, 500)
        self.assertEqual(body["error"], "storage_error")

    def test_invalid_theme_is_rejected(self) -> None:
        status, body = update_preferences(json_bytes({"theme_color": "blue"}), path=self.path)

        self.assertEqual(status, 400)
        self.assertEqual(body["error"], "invalid_payload")
        self.assertFalse(os.path.exists(self.path))


if __name__ == "__main__":
    unittest.main()
