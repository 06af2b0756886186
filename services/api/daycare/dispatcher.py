"""Routes a LINE report request to the renderer and pushes the result.

Each action validates its inputs before any external call, builds the
message list from one aggregate/render pass and sends it in a single push.
The scheduled action walks every elder with a family contact and keeps
going when one of them fails.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Sequence
from zoneinfo import ZoneInfo

import structlog

from daycare.aggregator import aggregate, recent_since
from daycare.config import Settings
from daycare.errors import LineConfigError, RequestValidationFailed, SheetsError, UpstreamError
from daycare.line import LineClient
from daycare.observability import LINE_PUSH, SCHEDULED_ELDERS
from daycare.render import ReportRenderer, image_message, text_message
from daycare.schemas import Elder, HealthRecord, LineRequest
from daycare.sheets import SheetsSource

log = structlog.get_logger("daycare.dispatcher")

SEND_WITH_CHART = "send-health-report-with-chart"
SEND_BATCH = "send-health-report-batch"
SEND_FLEX = "send-flex-message"
SEND_NOTICE = "send-health-report"
CHARTS_PREVIEW = "charts-preview"
SCHEDULED_REPORT = "scheduled-report"

ID_KEYWORDS = ("我的id", "我的 id", "id", "myid", "userid", "user id", "查詢id")
GREETING_WORDS = ("你好", "嗨", "hi", "hello")

PUSH_FAILED = "發送 LINE 訊息失敗"


@dataclass
class DispatchResult:
    status_code: int
    body: Dict[str, Any]


@dataclass
class ScheduledResults:
    processed: int = 0
    sent: int = 0
    skipped: int = 0
    errors: List[str] = field(default_factory=list)

    def as_dict(self) -> Dict[str, Any]:
        return {"processed": self.processed, "sent": self.sent, "skipped": self.skipped, "errors": list(self.errors)}


def _ok(message: str, **extra: Any) -> DispatchResult:
    return DispatchResult(200, {"success": True, "message": message, **extra})


def _require(value: Any, name: str) -> Any:
    if value is None or value == "" or value == []:
        raise RequestValidationFailed(name)
    return value


def should_send(day_of_month: int, high_bp_count: int, high_risk_threshold: int, force: bool = False) -> bool:
    """Monthly report on the 1st; high-risk elders also get one on the 15th."""
    if force or day_of_month == 1:
        return True
    return high_bp_count >= high_risk_threshold and day_of_month == 15


class Dispatcher:
    def __init__(
        self,
        settings: Settings,
        line: LineClient,
        sheets: SheetsSource,
        renderer: ReportRenderer,
        today: Optional[Callable[[], date]] = None,
    ):
        self.settings = settings
        self.line = line
        self.sheets = sheets
        self.renderer = renderer
        self._today = today or self._local_today

    def _local_today(self) -> date:
        return datetime.now(ZoneInfo(self.settings.report_timezone)).date()

    def dispatch(self, req: LineRequest) -> DispatchResult:
        try:
            return self._route(req)
        except RequestValidationFailed as e:
            log.info("request_invalid", action=req.action, field=e.field)
            return DispatchResult(400, {"success": False, "error": str(e), "field": e.field})
        except UpstreamError as e:
            log.warning("upstream_failed", action=req.action, status=e.status_code, detail=e.detail)
            return DispatchResult(500, {"success": False, "error": PUSH_FAILED, "details": e.details or e.detail})
        except LineConfigError as e:
            log.error("line_not_configured", action=req.action)
            return DispatchResult(500, {"success": False, "error": str(e)})
        except Exception as e:
            # The caller only ever sees the success flag for unexpected failures.
            log.exception("dispatch_failed", action=req.action)
            return DispatchResult(200, {"success": False, "error": str(e)})

    def _route(self, req: LineRequest) -> DispatchResult:
        action = req.action
        if action == SEND_WITH_CHART:
            return self.send_with_chart(req)
        if action == SEND_BATCH:
            return self.send_batch(req)
        if action == SEND_FLEX:
            return self.send_flex(req)
        if action == SEND_NOTICE:
            return self.send_notice(req)
        if action == CHARTS_PREVIEW:
            return self.charts_preview(req)
        if action == SCHEDULED_REPORT:
            return self.scheduled_report(secret=req.secret, force=req.force_send)
        if req.events is not None:
            self.handle_events(req.events)
            return DispatchResult(200, {"success": True})
        return _ok("No action taken")

    def _push(self, action: str, to: str, messages: Sequence[Dict[str, Any]]) -> int:
        try:
            sent = self.line.push(to, messages)
        except (UpstreamError, LineConfigError):
            LINE_PUSH.labels(action=action, outcome="error").inc()
            raise
        LINE_PUSH.labels(action=action, outcome="ok").inc()
        log.info("line_pushed", action=action, messages=sent)
        return sent

    # ----- on-demand reports -----

    def send_with_chart(self, req: LineRequest) -> DispatchResult:
        user_id = _require(req.user_id, "userId")
        elder = _require(req.elder_name, "elderName")
        records: List[HealthRecord] = _require(req.records, "records")

        stats = aggregate(records)
        messages = []
        if stats.bp_count:
            messages.append(image_message(self.renderer.bp_chart_url(elder, records)))
        if stats.temperature_count:
            messages.append(image_message(self.renderer.temperature_chart_url(elder, records)))
        messages.append(text_message(self.renderer.summary_text(elder, stats)))

        self._push(SEND_WITH_CHART, user_id, messages)
        return _ok(f"已成功發送 {len(records)} 筆紀錄與圖表給家屬")

    def send_batch(self, req: LineRequest) -> DispatchResult:
        user_id = _require(req.user_id, "userId")
        records: List[HealthRecord] = _require(req.records, "records")

        text = self.renderer.listing_text(req.elder_name or "", records)
        self._push(SEND_BATCH, user_id, [text_message(text)])
        return _ok(f"已成功發送 {len(records)} 筆紀錄給家屬")

    def send_flex(self, req: LineRequest) -> DispatchResult:
        user_id = _require(req.user_id, "userId")
        elder = _require(req.elder_name, "elderName")
        records: List[HealthRecord] = _require(req.records, "records")

        stats = aggregate(records)
        messages = [self.renderer.flex_card(elder, stats)]
        if stats.bp_count:
            messages.append(image_message(self.renderer.bp_chart_url(elder, records)))

        self._push(SEND_FLEX, user_id, messages)
        return _ok("已成功發送專業健康報告卡片給家屬")

    def send_notice(self, req: LineRequest) -> DispatchResult:
        user_id = _require(req.user_id, "userId")
        notice = _require(req.health_data, "healthData")
        if notice.date is None:
            notice = notice.model_copy(update={"date": self._today()})

        self._push(SEND_NOTICE, user_id, [text_message(self.renderer.notice_text(notice))])
        return _ok(f"已通知 {notice.elder_name} 的家屬")

    def charts_preview(self, req: LineRequest) -> DispatchResult:
        elder = _require(req.elder_name, "elderName")
        records: List[HealthRecord] = _require(req.records, "records")
        return DispatchResult(200, {
            "success": True,
            "charts": {
                "bloodPressure": self.renderer.bp_chart_url(elder, records),
                "temperature": self.renderer.temperature_chart_url(elder, records),
            },
        })

    # ----- scheduled batch -----

    def scheduled_report(self, secret: Optional[str] = None, force: bool = False) -> DispatchResult:
        cron_secret = self.settings.cron_secret
        if cron_secret and secret != cron_secret:
            return DispatchResult(401, {"success": False, "error": "未授權的請求"})

        try:
            elders = self.sheets.elders(refresh=force)
        except SheetsError as e:
            log.error("scheduled_report_elders_failed", status=e.status_code, detail=e.detail)
            return DispatchResult(500, {"success": False, "error": e.detail})

        today = self._today()
        results = ScheduledResults()
        for elder in elders:
            if not elder.family_contact_id:
                continue
            results.processed += 1
            try:
                outcome = self._report_elder(elder, today, force)
            except Exception as e:
                reason = e.detail if isinstance(e, UpstreamError) else str(e)
                results.errors.append(f"{elder.name}: {reason}")
                SCHEDULED_ELDERS.labels(outcome="error").inc()
                log.warning("scheduled_report_elder_failed", elder=elder.name, error=reason)
                continue
            SCHEDULED_ELDERS.labels(outcome=outcome).inc()
            if outcome == "sent":
                results.sent += 1
            else:
                results.skipped += 1

        log.info("scheduled_report_done", **results.as_dict())
        return DispatchResult(200, {
            "success": True,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "results": results.as_dict(),
        })

    def _report_elder(self, elder: Elder, today: date, force: bool) -> str:
        records = recent_since(self.sheets.health_records(elder.name), today, self.settings.report_window_days)
        if not records:
            return "skipped"
        stats = aggregate(records)
        if not should_send(today.day, stats.high_bp_count, self.settings.high_risk_threshold, force):
            return "skipped"
        text = self.renderer.scheduled_text(elder.name, stats)
        self._push(SCHEDULED_REPORT, elder.family_contact_id, [text_message(text)])
        return "sent"

    # ----- webhook events -----

    def handle_events(self, events: Sequence[Dict[str, Any]]) -> None:
        for event in events:
            reply = self._event_reply(event)
            token = event.get("replyToken")
            if not reply or not token:
                continue
            try:
                self.line.reply(token, [text_message(reply)])
            except (UpstreamError, LineConfigError) as e:
                log.warning("line_reply_failed", event_type=event.get("type"), error=str(e))

    def _event_reply(self, event: Dict[str, Any]) -> Optional[str]:
        user_id = (event.get("source") or {}).get("userId")
        event_type = event.get("type")
        if event_type == "follow" and user_id:
            return (
                "🎉 感謝您加入「據點健康通知」！\n\n"
                f"🔑 您的 LINE User ID 是：\n{user_id}\n\n"
                "請將此 ID 提供給據點工作人員。\n\n🏠 失智據點關心您"
            )
        message = event.get("message") or {}
        if event_type != "message" or message.get("type") != "text":
            return None
        text = str(message.get("text") or "").strip().lower()
        if user_id and any(k in text for k in ID_KEYWORDS):
            return (
                "👋 您好！\n\n"
                f"您的 LINE User ID 是：\n\n📋 {user_id}\n\n"
                "請將此 ID 提供給據點工作人員。\n\n🏠 失智據點關心您"
            )
        if text in GREETING_WORDS:
            return "👋 您好！歡迎使用「據點健康通知」！\n\n輸入「我的ID」可取得您的 LINE ID。\n\n🏠 失智據點關心您"
        return None
