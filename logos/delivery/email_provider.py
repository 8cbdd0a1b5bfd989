"""Delivery of ebook files as e-mail attachments through the SendGrid mail API."""

from __future__ import annotations

import base64
import json
import logging
import mimetypes
import time
from pathlib import Path

import requests

logger = logging.getLogger(__name__)

MAIL_SEND_ENDPOINT = "https://api.sendgrid.com/v3/mail/send"


class DeliveryError(Exception):
    """A file could not be delivered."""


class EmailDeliveryProvider:
    """Sends files as e-mail attachments, retrying transient failures."""

    def __init__(
        self,
        api_key: str,
        from_email: str,
        from_name: str,
        *,
        endpoint: str = MAIL_SEND_ENDPOINT,
        timeout: float = 30.0,
        attempts: int = 3,
        retry_delay: float = 5.0,
        session: requests.Session | None = None,
    ) -> None:
        self._api_key = api_key
        self.from_email = from_email
        self.from_name = from_name
        self.endpoint = endpoint
        self.timeout = timeout
        self.attempts = attempts
        self.retry_delay = retry_delay
        self._session = session or requests.Session()

    @property
    def type(self) -> str:
        return "email"

    def deliver(self, file_path: str, file_name: str, recipient_address: str) -> None:
        """Send the file at ``file_path`` to ``recipient_address`` as ``file_name``."""
        try:
            file_bytes = Path(file_path).read_bytes()
        except OSError as exc:
            raise DeliveryError(f"failed to read ebook file {file_path}: {exc}") from exc

        content_type = mimetypes.guess_type(file_path)[0] or "application/octet-stream"
        sender = {"email": self.from_email}
        if self.from_name:
            sender["name"] = self.from_name
        payload = {
            "personalizations": [{"to": [{"email": recipient_address}]}],
            "from": sender,
            "subject": file_name,
            "content": [{"type": "text/plain", "value": "Your ebook is attached."}],
            "attachments": [
                {
                    "content": base64.b64encode(file_bytes).decode("ascii"),
                    "type": content_type,
                    "filename": file_name,
                }
            ],
        }
        body = json.dumps(payload).encode("utf-8")

        last_error: DeliveryError | None = None
        for attempt in range(self.attempts):
            if attempt:
                logger.info("Retry attempt %d for mail delivery", attempt)
                time.sleep(attempt * self.retry_delay)
            try:
                self._send(body)
                return
            except DeliveryError as exc:
                last_error = exc
                logger.warning("Attempt %d failed: %s", attempt + 1, exc)
        if last_error is None:
            raise DeliveryError("no delivery attempts were made")
        raise last_error

    def _send(self, body: bytes) -> None:
        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }
        try:
            response = self._session.post(
                self.endpoint, data=body, headers=headers, timeout=self.timeout
            )
        except requests.RequestException as exc:
            raise DeliveryError(f"mail request failed: {exc}") from exc
        if response.status_code >= 300:
            raise DeliveryError(
                f"mail service returned status {response.status_code}: {response.text}"
            )