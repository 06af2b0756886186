from __future__ import annotations

import base64
import hashlib
import hmac
from typing import Any, Dict, List, Optional, Sequence

import requests
import structlog

from daycare.config import Settings
from daycare.errors import LineConfigError, LineRequestError

log = structlog.get_logger("daycare.line")


def verify_signature(body: bytes, signature: str, channel_secret: str) -> bool:
    """Check the X-Line-Signature header against the raw request body."""
    if not signature or not channel_secret:
        return False
    digest = hmac.new(channel_secret.encode("utf-8"), body, hashlib.sha256).digest()
    expected = base64.b64encode(digest).decode("ascii")
    return hmac.compare_digest(expected, signature)


class LineClient:
    def __init__(self, settings: Settings, session: Optional[requests.Session] = None):
        self.settings = settings
        self.session = session or requests.Session()

    def _headers(self) -> Dict[str, str]:
        token = self.settings.line_channel_access_token
        if not token:
            raise LineConfigError("LINE_CHANNEL_ACCESS_TOKEN is not configured")
        return {"Content-Type": "application/json", "Authorization": f"Bearer {token}"}

    def _post(self, path: str, body: Dict[str, Any]) -> None:
        url = f"{self.settings.line_api_base}{path}"
        headers = self._headers()
        try:
            r = self.session.post(url, json=body, headers=headers, timeout=self.settings.http_timeout_seconds)
        except requests.RequestException as e:
            raise LineRequestError(0, f"LINE API unreachable: {e}") from e

        if not r.ok:
            try:
                details = r.json()
            except ValueError:
                details = r.text
            log.warning("line_api_error", path=path, status=r.status_code, details=details)
            raise LineRequestError(r.status_code, "LINE API request failed", details)

    def push(self, to: str, messages: Sequence[Dict[str, Any]]) -> int:
        """Push up to line_max_messages messages; returns how many were sent."""
        batch: List[Dict[str, Any]] = list(messages)[: self.settings.line_max_messages]
        if not batch:
            return 0
        self._post("/message/push", {"to": to, "messages": batch})
        return len(batch)

    def reply(self, reply_token: str, messages: Sequence[Dict[str, Any]]) -> None:
        batch = list(messages)[: self.settings.line_max_messages]
        self._post("/message/reply", {"replyToken": reply_token, "messages": batch})
