from __future__ import annotations

import json
import unittest
from typing import Any
from unittest.mock import MagicMock, patch

import requests

from actualization.config import ExecutorSettings
from actualization.connectors.executor import HTTPJobExecutorClient
from actualization.domain.jobs import FileRef
from actualization.errors import ExecutorRequestError, SubmissionError


def _response(status_code: int, payload: Any = None) -> requests.Response:
    response = requests.Response()
    response.status_code = status_code
    response._content = json.dumps(payload).encode("utf-8") if payload is not None else b""
    return response


class ExecutorClientTestCase(unittest.IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        self.session = MagicMock(spec=requests.Session)
        self.settings = ExecutorSettings(
            base_url="https://executor.test/api/",
            api_token="secret",
            timeout_seconds=3.0,
            max_retries=2,
            backoff_initial_seconds=0.5,
            backoff_multiplier=2.0,
        )
        self.client = HTTPJobExecutorClient(settings=self.settings, session=self.session)
        sleep_patcher = patch("actualization.connectors.executor.time.sleep")
        self.sleep = sleep_patcher.start()
        self.addCleanup(sleep_patcher.stop)

    def _last_call(self) -> dict[str, Any]:
        return self.session.request.call_args.kwargs


class TestSubmit(ExecutorClientTestCase):
    async def test_submit_posts_batch_and_returns_job_id(self) -> None:
        self.session.request.return_value = _response(201, {"job_id": "job-1"})

        job_id = await self.client.submit(
            rows=[{"SellLine": "Line A"}],
            schedule_date="3/2024",
            region="APAC",
            file_ref="file-1",
        )

        self.assertEqual(job_id, "job-1")
        call = self._last_call()
        self.assertEqual(call["method"], "POST")
        self.assertEqual(call["url"], "https://executor.test/api/jobs")
        self.assertEqual(call["json"]["data"], [{"SellLine": "Line A"}])
        self.assertEqual(call["json"]["schedule_date"], "3/2024")
        self.assertEqual(call["headers"]["Authorization"], "Bearer secret")
        self.assertEqual(call["timeout"], 3.0)

    async def test_submit_without_job_id_is_submission_error(self) -> None:
        self.session.request.return_value = _response(200, {"status": "rejected"})

        with self.assertRaises(SubmissionError):
            await self.client.submit(rows=[], schedule_date=None, region="APAC", file_ref=None)


class TestRetries(ExecutorClientTestCase):
    async def test_retryable_status_backs_off_then_succeeds(self) -> None:
        self.session.request.side_effect = [
            _response(503),
            _response(200, {"job_id": "job-1", "status": "Running", "records_processed": 1}),
        ]

        snapshot = await self.client.get_status("job-1")

        self.assertEqual(snapshot.status, "Running")
        self.assertEqual(snapshot.records_processed, 1)
        self.assertEqual(self.session.request.call_count, 2)
        self.sleep.assert_called_once_with(0.5)

    async def test_connection_errors_exhaust_retries(self) -> None:
        self.session.request.side_effect = requests.ConnectionError("refused")

        with self.assertRaises(ExecutorRequestError):
            await self.client.get_status("job-1")

        self.assertEqual(self.session.request.call_count, 3)
        self.assertEqual([call.args[0] for call in self.sleep.call_args_list], [0.5, 1.0])

    async def test_client_errors_are_not_retried(self) -> None:
        self.session.request.return_value = _response(400, {"detail": "bad rows"})

        with self.assertRaisesRegex(ExecutorRequestError, "bad rows"):
            await self.client.get_status("job-1")

        self.assertEqual(self.session.request.call_count, 1)
        self.sleep.assert_not_called()


class TestReads(ExecutorClientTestCase):
    async def test_current_job_accepts_list_payload(self) -> None:
        self.session.request.return_value = _response(
            200,
            [{"job_id": "job-9", "status": "Queued", "notify_on_complete": True, "unexpected": 1}],
        )

        snapshot = await self.client.get_current_job_for_user("user-1")

        self.assertEqual(snapshot.job_id, "job-9")
        self.assertTrue(snapshot.notify_on_complete)
        self.assertTrue(snapshot.is_in_flight)
        self.assertEqual(self._last_call()["params"], {"user_id": "user-1"})

    async def test_no_current_job(self) -> None:
        self.session.request.return_value = _response(200, [])

        self.assertIsNone(await self.client.get_current_job_for_user("user-1"))

    async def test_malformed_snapshot_is_request_error(self) -> None:
        self.session.request.return_value = _response(200, {"status": "Running"})

        with self.assertRaises(ExecutorRequestError):
            await self.client.get_status("job-1")

    async def test_entries_accept_wrapped_or_bare_lists(self) -> None:
        self.session.request.return_value = _response(200, {"entries": [{"payload": "{}"}]})
        self.assertEqual(await self.client.get_entries("job-1"), [{"payload": "{}"}])

        self.session.request.return_value = _response(200, [{"payload": "{}"}, {"payload": "[]"}])
        self.assertEqual(len(await self.client.get_entries("job-1")), 2)

    async def test_default_template(self) -> None:
        self.session.request.return_value = _response(200, {"id": "tmpl-1", "title": "APAC template"})

        template = await self.client.get_default_template("APAC")

        self.assertEqual(template, FileRef(id="tmpl-1", title="APAC template"))
        self.assertEqual(self._last_call()["url"], "https://executor.test/api/templates/APAC")

    async def test_upload_file_sends_multipart(self) -> None:
        self.session.request.return_value = _response(201, {"id": "file-1"})

        stored = await self.client.upload_file(file_name="a.xlsx", content=b"xlsx", region="EMEA")

        self.assertEqual(stored.id, "file-1")
        call = self._last_call()
        self.assertEqual(call["files"], {"file": ("a.xlsx", b"xlsx")})
        self.assertEqual(call["data"], {"region": "EMEA"})

    async def test_update_job_patches_fields(self) -> None:
        self.session.request.return_value = _response(204)

        await self.client.update_job("job-1", {"notify_on_complete": True})

        call = self._last_call()
        self.assertEqual(call["method"], "PATCH")
        self.assertEqual(call["json"], {"notify_on_complete": True})


class TestClientConfiguration(unittest.TestCase):
    def test_missing_base_url_is_rejected(self) -> None:
        with self.assertRaises(ValueError):
            HTTPJobExecutorClient(settings=ExecutorSettings(base_url=""))


if __name__ == "__main__":
    unittest.main()
