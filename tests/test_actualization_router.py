from __future__ import annotations

import io
import json
import unittest
from unittest.mock import MagicMock

import openpyxl
from fastapi import FastAPI
from fastapi.testclient import TestClient

from actualization.api.routers import actualization_router
from actualization.config import PollingSettings
from actualization.domain.jobs import JobStatus
from actualization.errors import ExecutorRequestError
from actualization.services.session_registry import SessionRegistry
from tests.fakes import FakeExecutor, snapshot

HEADERS = {"X-User-Id": "user-1"}


def _workbook_bytes() -> bytes:
    workbook = openpyxl.Workbook()
    sheet = workbook.active
    sheet.append(["Sell Line", "Clicks", "Views", "3/2024", "Budget", "Cost"])
    sheet.append(["Line A", 10, 5, 100, 500, 50])
    sheet.append(["Line B", 1, 1, 10, 50, 5])
    buffer = io.BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


class TestActualizationRouter(unittest.TestCase):
    def setUp(self) -> None:
        self.executor = FakeExecutor()
        self.scheduler = MagicMock()
        self.registry = SessionRegistry(
            executor=self.executor,
            scheduler=self.scheduler,
            polling=PollingSettings(),
        )
        app = FastAPI()
        app.include_router(actualization_router)
        app.state.session_registry = self.registry
        self.client = TestClient(app)

    def _open(self, **body: str) -> dict:
        response = self.client.post("/actualization/session", json=body or {"user_region": "APAC"}, headers=HEADERS)
        self.assertEqual(response.status_code, 200, response.text)
        return response.json()

    def test_regions_are_listed(self) -> None:
        response = self.client.get("/actualization/regions")

        self.assertEqual(response.status_code, 200)
        self.assertEqual([item["value"] for item in response.json()["regions"]], ["APAC", "NTAM", "EMEA"])

    def test_session_requires_user_header(self) -> None:
        response = self.client.get("/actualization/session")

        self.assertEqual(response.status_code, 422)

    def test_unknown_session_is_not_found(self) -> None:
        response = self.client.get("/actualization/session", headers=HEADERS)

        self.assertEqual(response.status_code, 404)

    def test_open_session_loads_template(self) -> None:
        body = self._open(user_region="Global", region="NTAM")

        self.assertEqual(body["region"], "NTAM")
        self.assertEqual(body["process_state"], "pending")
        self.assertEqual(body["template_label"], "Download Sample File")
        self.assertEqual(body["default_template"]["id"], "tmpl-1")
        self.assertTrue(body["can_upload"])
        self.assertFalse(body["can_start"])

    def test_upload_then_start_job(self) -> None:
        self._open()
        self.executor.statuses.append(snapshot(JobStatus.RUNNING, 1, total=2))

        upload = self.client.post(
            "/actualization/upload",
            files={"file": ("actuals.xlsx", _workbook_bytes(), "application/octet-stream")},
            headers=HEADERS,
        )
        self.assertEqual(upload.status_code, 200, upload.text)
        self.assertEqual(upload.json()["record_count"], 2)
        self.assertEqual(upload.json()["schedule_date"], "3/2024")

        start = self.client.post("/actualization/start", headers=HEADERS)
        self.assertEqual(start.status_code, 202, start.text)
        self.assertEqual(start.json()["job_id"], "job-1")
        self.assertEqual(start.json()["process_state"], "in_progress")

        session = self.client.get("/actualization/session", headers=HEADERS).json()
        self.assertEqual(session["progress"]["percentage"], 50.0)
        self.assertEqual(session["columns"][0]["field_name"], "SellLineId")
        self.assertTrue(self.scheduler.add_job.called)

        duplicate = self.client.post("/actualization/start", headers=HEADERS)
        self.assertEqual(duplicate.status_code, 409)

    def test_upload_rejects_non_excel_files(self) -> None:
        self._open()

        response = self.client.post(
            "/actualization/upload",
            files={"file": ("actuals.csv", b"a,b", "text/csv")},
            headers=HEADERS,
        )

        self.assertEqual(response.status_code, 400)

    def test_start_without_rows_conflicts(self) -> None:
        self._open()

        response = self.client.post("/actualization/start", headers=HEADERS)

        self.assertEqual(response.status_code, 409)

    def test_rejected_submission_is_bad_gateway(self) -> None:
        self._open()
        self.executor.submit_error = ExecutorRequestError("executor down")
        self.client.post(
            "/actualization/file-uploaded",
            json={"file_ref": "file-7", "file_data": json.dumps([{"SellLine": "Line A"}]), "record_count": 1},
            headers=HEADERS,
        )

        response = self.client.post("/actualization/start", headers=HEADERS)

        self.assertEqual(response.status_code, 502)
        session = self.client.get("/actualization/session", headers=HEADERS).json()
        self.assertEqual(session["process_state"], "preview")

    def test_completed_results_can_be_filtered(self) -> None:
        self._open()
        self.executor.statuses.append(snapshot(JobStatus.COMPLETED, 2, total=2, succeeded_records=1, failed_records=1))
        self.executor.entries = [
            {"payload": json.dumps({"SellLine": "Line A", "IsSuccess": True})},
            {"payload": json.dumps({"SellLine": "Line B", "IsSuccess": False, "ErrorMessage": "Locked"})},
        ]
        self.client.post(
            "/actualization/file-uploaded",
            json={
                "file_ref": "file-7",
                "file_data": json.dumps([{"SellLine": "Line A"}, {"SellLine": "Line B"}]),
                "record_count": 2,
            },
            headers=HEADERS,
        )
        self.client.post("/actualization/start", headers=HEADERS)

        failed = self.client.get("/actualization/results", params={"success": "false"}, headers=HEADERS).json()
        self.assertEqual(failed["total"], 1)
        self.assertEqual(failed["entries"][0]["error_message"], "Locked")
        self.assertEqual(failed["failed_records"], 1)

        everything = self.client.get("/actualization/results", params={"success": "all"}, headers=HEADERS).json()
        self.assertEqual(everything["total"], 2)

        result_file = self.client.get("/actualization/results/file", headers=HEADERS)
        self.assertEqual(result_file.json(), {"file_id": "job-1"})

    def test_result_queries_do_not_inherit_earlier_filters(self) -> None:
        self._open()
        self.executor.statuses.append(snapshot(JobStatus.COMPLETED, 2, total=2, succeeded_records=1, failed_records=1))
        self.executor.entries = [
            {"payload": json.dumps({"SellLine": "Line A", "IsSuccess": True})},
            {"payload": json.dumps({"SellLine": "Line B", "IsSuccess": False, "ErrorMessage": "Locked"})},
        ]
        self.client.post(
            "/actualization/file-uploaded",
            json={"file_ref": "file-7", "file_data": json.dumps([{"SellLine": "Line A"}]), "record_count": 1},
            headers=HEADERS,
        )
        self.client.post("/actualization/start", headers=HEADERS)

        narrowed = self.client.get("/actualization/results", params={"key": "zzz"}, headers=HEADERS).json()
        self.assertEqual(narrowed["total"], 0)

        succeeded = self.client.get("/actualization/results", params={"success": "true"}, headers=HEADERS).json()
        self.assertEqual(succeeded["total"], 1)
        self.assertEqual(succeeded["entries"][0]["is_success"], True)

        unfiltered = self.client.get("/actualization/results", headers=HEADERS).json()
        self.assertEqual(unfiltered["total"], 2)

    def test_unlisted_profile_region_opens_with_apac(self) -> None:
        body = self._open(user_region="LATAM")

        self.assertEqual(body["region"], "APAC")
        self.assertFalse(body["region_selection_required"])

    def test_notify_without_job_conflicts(self) -> None:
        self._open()

        response = self.client.post("/actualization/notify", headers=HEADERS)

        self.assertEqual(response.status_code, 409)

    def test_reset_returns_pending_session(self) -> None:
        self._open()

        first = self.client.post("/actualization/reset", headers=HEADERS)
        second = self.client.post("/actualization/reset", headers=HEADERS)

        self.assertEqual(first.json()["process_state"], "pending")
        self.assertEqual(second.json()["process_state"], "pending")

    def test_delete_session_closes_it(self) -> None:
        self._open()

        response = self.client.delete("/actualization/session", headers=HEADERS)

        self.assertEqual(response.status_code, 204)
        self.assertIsNone(self.registry.get("user-1"))


if __name__ == "__main__":
    unittest.main()
