from __future__ import annotations

from typing import Any


class DaycareError(Exception):
    """Base class for errors raised by the report pipeline."""


class RequestValidationFailed(DaycareError):
    """A required request field is missing or empty."""

    def __init__(self, field: str):
        super().__init__(f"缺少必要資料: {field}")
        self.field = field


class UpstreamError(DaycareError):
    """An external service answered with a non-success status."""

    def __init__(self, status_code: int, detail: str, details: Any = None):
        super().__init__(f"{status_code}: {detail}")
        self.status_code = status_code
        self.detail = detail
        self.details = details


class LineConfigError(DaycareError):
    pass


class LineRequestError(UpstreamError):
    pass


class SheetsError(UpstreamError):
    pass
