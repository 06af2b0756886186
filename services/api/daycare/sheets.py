from __future__ import annotations

import threading
from typing import Any, Dict, List, Optional

import requests
import structlog
from cachetools import TTLCache
from pydantic import ValidationError

from daycare.config import Settings
from daycare.errors import SheetsError
from daycare.schemas import Elder, HealthRecord

log = structlog.get_logger("daycare.sheets")


class SheetsSource:
    """Read-only view of the elder roster and health log kept in Google Sheets.

    The sheet is fronted by an Apps Script web app answering
    ``?action=getElders`` and ``?action=getHealthByElder&elder=<name>``.
    """

    def __init__(self, settings: Settings, session: Optional[requests.Session] = None):
        self.settings = settings
        self.session = session or requests.Session()
        self._elders: TTLCache = TTLCache(maxsize=1, ttl=max(settings.sheets_cache_seconds, 1))
        self._elders_lock = threading.Lock()

    def _get(self, params: Dict[str, str]) -> Any:
        url = self.settings.sheets_script_url
        if not url:
            raise SheetsError(0, "SHEETS_SCRIPT_URL is not configured")
        try:
            r = self.session.get(url, params=params, timeout=self.settings.http_timeout_seconds)
        except requests.RequestException as e:
            raise SheetsError(0, f"spreadsheet unreachable: {e}") from e
        if not r.ok:
            raise SheetsError(r.status_code, "spreadsheet request failed", r.text)
        try:
            return r.json()
        except ValueError as e:
            raise SheetsError(r.status_code, "spreadsheet returned invalid JSON") from e

    def elders(self, refresh: bool = False) -> List[Elder]:
        """Roster cached for sheets_cache_seconds; refresh=True re-reads the sheet."""
        with self._elders_lock:
            if not refresh and "elders" in self._elders:
                return self._elders["elders"]
            rows = self._get({"action": "getElders"})
            if not isinstance(rows, list):
                raise SheetsError(200, "unexpected elder list payload", rows)
            elders = [Elder.model_validate(row) for row in rows if isinstance(row, dict) and str(row.get("name") or "").strip()]
            self._elders["elders"] = elders
            return elders

    def health_records(self, elder_name: str) -> List[HealthRecord]:
        rows = self._get({"action": "getHealthByElder", "elder": elder_name})
        if not rows:
            return []
        if not isinstance(rows, list):
            raise SheetsError(200, "unexpected health record payload", rows)
        records: List[HealthRecord] = []
        for row in rows:
            try:
                records.append(HealthRecord.model_validate(row))
            except ValidationError as e:
                log.warning("health_row_skipped", elder=elder_name, error=str(e))
        return records
