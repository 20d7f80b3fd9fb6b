from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional
from urllib import error as urllib_error, request as urllib_request

from models import utc_now
from settings import Settings


logger = logging.getLogger("ledger.notify")

NOTIFY_CHANNELS = ("log", "file", "webhook")


class Notifier:
    """Best-effort delivery of terminal build/deploy status.

    Delivery problems are logged and never raised: a missing webhook must not
    fail the build or deployment that triggered the notification.
    """

    def __init__(
        self,
        channel: str = "log",
        *,
        webhook_url: Optional[str] = None,
        log_path: Optional[str] = None,
        timeout_seconds: float = 5.0,
    ):
        channel = (channel or "log").strip().lower()
        if channel not in NOTIFY_CHANNELS:
            raise ValueError(
                f"Unknown notification channel '{channel}'. Expected one of {NOTIFY_CHANNELS}"
            )
        self.channel = channel
        self.webhook_url = (webhook_url or "").strip() or None
        self.log_path = Path(log_path) if log_path else None
        self.timeout_seconds = timeout_seconds
        if channel == "webhook" and not self.webhook_url:
            logger.warning("NOTIFY_CHANNEL=webhook but NOTIFY_WEBHOOK_URL is empty; notifications will be dropped.")
        if channel == "file" and self.log_path is None:
            logger.warning("NOTIFY_CHANNEL=file but NOTIFY_LOG_PATH is empty; notifications will be dropped.")

    @classmethod
    def from_settings(cls, settings: Settings) -> "Notifier":
        return cls(
            settings.notify_channel,
            webhook_url=settings.notify_webhook_url,
            log_path=settings.notify_log_path,
            timeout_seconds=settings.notify_timeout_seconds,
        )

    async def notify(self, status: Any, message: str, job_name: str, build_number: int) -> None:
        payload = self._build_payload(status, message, job_name, build_number)
        try:
            if self.channel == "file":
                await asyncio.to_thread(self._deliver_file, payload)
            elif self.channel == "webhook":
                await asyncio.to_thread(self._deliver_webhook, payload)
            else:
                logger.info("%s", payload["text"])
        except Exception as exc:  # pylint: disable=broad-except
            logger.warning(
                "Notification via %s failed for %s #%s: %s",
                self.channel,
                job_name,
                build_number,
                exc,
            )

    @staticmethod
    def _build_payload(status: Any, message: str, job_name: str, build_number: int) -> Dict[str, Any]:
        status_value = str(getattr(status, "value", status))
        return {
            "text": f"[{status_value.upper()}] {job_name} #{build_number}: {message}",
            "status": status_value,
            "job_name": job_name,
            "build_number": build_number,
            "message": message,
            "sent_at": utc_now().isoformat(),
        }

    def _deliver_file(self, payload: Dict[str, Any]) -> None:
        if self.log_path is None:
            raise RuntimeError("notification log path is not configured")
        self.log_path.parent.mkdir(parents=True, exist_ok=True)
        with self.log_path.open("a", encoding="utf-8") as handle:
            handle.write(json.dumps(payload) + "\n")

    def _deliver_webhook(self, payload: Dict[str, Any]) -> None:
        if not self.webhook_url:
            raise RuntimeError("notification webhook URL is not configured")
        request = urllib_request.Request(
            self.webhook_url,
            data=json.dumps(payload).encode("utf-8"),
            headers={"Content-Type": "application/json", "User-Agent": "build-ledger-notifier"},
            method="POST",
        )
        try:
            with urllib_request.urlopen(request, timeout=self.timeout_seconds) as response:
                response.read()
        except urllib_error.HTTPError as exc:
            raise RuntimeError(f"webhook HTTP {exc.code}: {exc.reason}") from exc
        except urllib_error.URLError as exc:
            raise RuntimeError(f"webhook request failed: {exc.reason}") from exc
