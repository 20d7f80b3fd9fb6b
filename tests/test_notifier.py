from __future__ import annotations

import json
import sys
import tempfile
import unittest
from pathlib import Path
from unittest import mock
from urllib import error as urllib_error

TESTS_PATH = Path(__file__).resolve().parent
API_CODE_PATH = TESTS_PATH.parent / "api-code"
for path in (API_CODE_PATH, TESTS_PATH):
    if str(path) not in sys.path:
        sys.path.insert(0, str(path))

import fakes  # noqa: F401

from domain import BuildStatus
from services import Notifier


class NotifierTest(unittest.IsolatedAsyncioTestCase):
    async def test_log_channel_writes_status_line(self) -> None:
        notifier = Notifier("log")
        with self.assertLogs("ledger.notify", level="INFO") as captured:
            await notifier.notify(BuildStatus.SUCCESS, "all green", "nightly", 42)
        self.assertIn("[SUCCESS] nightly #42: all green", captured.output[0])

    async def test_file_channel_appends_json_lines(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            log_path = Path(tmp) / "notify" / "events.jsonl"
            notifier = Notifier("file", log_path=str(log_path))
            await notifier.notify("failure", "tests broke", "api", 7)
            await notifier.notify("success", "fixed", "api", 8)

            lines = log_path.read_text(encoding="utf-8").splitlines()
        self.assertEqual(len(lines), 2)
        first = json.loads(lines[0])
        self.assertEqual(first["status"], "failure")
        self.assertEqual(first["job_name"], "api")
        self.assertEqual(first["build_number"], 7)
        self.assertEqual(first["text"], "[FAILURE] api #7: tests broke")

    async def test_webhook_failure_is_swallowed(self) -> None:
        notifier = Notifier("webhook", webhook_url="http://hooks.invalid/notify", timeout_seconds=0.1)
        with mock.patch(
            "services.notifier.urllib_request.urlopen",
            side_effect=urllib_error.URLError("connection refused"),
        ):
            with self.assertLogs("ledger.notify", level="WARNING") as captured:
                await notifier.notify("failed", "deploy reverted", "deploy:production", 3)
        self.assertIn("connection refused", captured.output[0])

    async def test_webhook_posts_json_payload(self) -> None:
        notifier = Notifier("webhook", webhook_url="http://hooks.example/notify")
        response = mock.MagicMock()
        response.__enter__.return_value = response
        with mock.patch("services.notifier.urllib_request.urlopen", return_value=response) as urlopen:
            await notifier.notify("success", "shipped", "deploy:staging", 1)

        request = urlopen.call_args.args[0]
        self.assertEqual(request.full_url, "http://hooks.example/notify")
        self.assertEqual(request.get_method(), "POST")
        body = json.loads(request.data.decode("utf-8"))
        self.assertEqual(body["job_name"], "deploy:staging")
        self.assertEqual(body["message"], "shipped")

    async def test_missing_file_path_is_logged_not_raised(self) -> None:
        with self.assertLogs("ledger.notify", level="WARNING"):
            notifier = Notifier("file")
        with self.assertLogs("ledger.notify", level="WARNING") as captured:
            await notifier.notify("success", "ok", "job", 1)
        self.assertIn("not configured", captured.output[0])

    def test_unknown_channel_is_rejected(self) -> None:
        with self.assertRaises(ValueError):
            Notifier("carrier-pigeon")

    def test_from_settings(self) -> None:
        notifier = Notifier.from_settings(
            fakes.make_settings(NOTIFY_CHANNEL="webhook", NOTIFY_WEBHOOK_URL="http://hooks.example/x")
        )
        self.assertEqual(notifier.channel, "webhook")
        self.assertEqual(notifier.webhook_url, "http://hooks.example/x")


if __name__ == "__main__":
    unittest.main()
