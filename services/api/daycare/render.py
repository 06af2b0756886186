"""LINE message rendering for health reports.

Every output here is a plain value: text, a QuickChart URL or a Flex
bubble dict. Nothing in this module talks to the network; the dispatcher
decides what gets pushed.
"""
from __future__ import annotations

import json
import random
from datetime import date
from typing import Any, Dict, Optional, Sequence
from urllib.parse import quote

from daycare.aggregator import AggregateStats, Trend, chart_window, sort_records
from daycare.classifier import (
    BP_HIGH_SYSTOLIC,
    TEMP_FEVER_FROM,
    TEMP_HIGH_FEVER_ABOVE,
    bp_status,
    temperature_status,
)
from daycare.config import Settings
from daycare.schemas import HealthNotice, HealthRecord

GREETINGS = (
    "💝 感謝您對長輩的關心與愛護！",
    "🌸 願長輩身體健康、平安喜樂！",
    "💖 家人的關愛是最好的良藥！",
    "🍀 祝福長輩每天都有好心情！",
    "🌷 您的關心讓長輩倍感溫暖！",
)

RULE = "━━━━━━━━━━━━━"
SIGNATURE = "🏠 失智據點關心您"
LISTING_LIMIT = 7

BP_AXIS = (40, 180)
TEMP_AXIS = (35, 40)

TREND_LABELS = {
    Trend.RISING: "📈 上升趨勢",
    Trend.FALLING: "📉 下降趨勢",
    Trend.STABLE: "➡️ 穩定",
    Trend.INSUFFICIENT_DATA: "資料不足",
}

# Characters encodeURIComponent leaves alone.
_URI_SAFE = "-_.!~*'()"

Message = Dict[str, Any]


def text_message(text: str) -> Message:
    return {"type": "text", "text": text}


def image_message(url: str) -> Message:
    return {"type": "image", "originalContentUrl": url, "previewImageUrl": url}


def flex_message(alt_text: str, contents: Dict[str, Any]) -> Message:
    return {"type": "flex", "altText": alt_text, "contents": contents}


def short_date(d: Optional[date]) -> str:
    return f"{d.month}/{d.day}" if d else ""


def format_temperature(t: float) -> str:
    return f"{t:.1f}"


def _bp_text(r: Optional[HealthRecord]) -> str:
    return f"{r.systolic}/{r.diastolic}" if r is not None and r.has_bp else "-"


class ReportRenderer:
    def __init__(self, settings: Settings, rng: Optional[random.Random] = None):
        self.settings = settings
        self.rng = rng or random.Random()

    def greeting(self) -> str:
        return self.rng.choice(GREETINGS)

    # ----- plain text -----

    def summary_text(self, elder_name: str, stats: AggregateStats) -> str:
        lines = [
            self.greeting(),
            "",
            f"📊 {elder_name} 健康報告",
            RULE,
            f"📅 期間：{stats.first_date or ''} ~ {stats.last_date or ''}",
            f"📋 共 {stats.record_count} 筆紀錄",
            "",
            "📈 平均數據",
        ]
        if stats.bp_count:
            lines.append(f"   血壓：{stats.average_systolic}/{stats.average_diastolic} mmHg")
        if stats.temperature_count:
            lines.append(f"   體溫：{format_temperature(stats.average_temperature)}°C")
        latest = stats.latest
        if latest is not None:
            lines += ["", f"📍 最新 ({latest.date})"]
            if latest.has_bp:
                lines.append(f"   血壓：{latest.systolic}/{latest.diastolic} mmHg")
            if latest.has_temperature:
                lines.append(f"   體溫：{format_temperature(latest.temperature)}°C")
        lines += ["", RULE, SIGNATURE]
        return "\n".join(lines)

    def listing_text(self, elder_name: str, records: Sequence[HealthRecord]) -> str:
        newest_first = list(reversed(sort_records(records)))
        period = ""
        if newest_first:
            period = f"{newest_first[-1].date} ~ {newest_first[0].date}"
        lines = [
            self.greeting(),
            "",
            "📊 健康紀錄報告",
            RULE,
            f"👤 長者：{elder_name}",
            f"📅 期間：{period}",
            RULE,
            "",
        ]
        for r in newest_first[:LISTING_LIMIT]:
            lines.append(f"📅 {r.date} {r.time or ''}".rstrip())
            if r.has_bp:
                lines.append(f"   血壓：{r.systolic}/{r.diastolic}")
            if r.has_temperature:
                lines.append(f"   體溫：{format_temperature(r.temperature)}°C")
            lines.append("")
        if len(newest_first) > LISTING_LIMIT:
            lines += [f"...及其他 {len(newest_first) - LISTING_LIMIT} 筆紀錄", ""]
        lines += [RULE, SIGNATURE]
        return "\n".join(lines)

    def scheduled_text(self, elder_name: str, stats: AggregateStats) -> str:
        lines = [
            self.greeting(),
            "",
            "📅 自動健康報告",
            RULE,
            f"👤 {elder_name}",
            f"📋 最近 {stats.record_count} 筆紀錄",
            "",
        ]
        hi, lo = stats.max_bp_record, stats.min_bp_record
        if hi is not None and lo is not None:
            lines += [
                "📊 血壓統計",
                f"🔴 最高：{_bp_text(hi)} ({short_date(hi.date)})",
                f"🔵 最低：{_bp_text(lo)} ({short_date(lo.date)})",
                "",
            ]
        lines += [
            f"⚠️ 異常：高血壓 {stats.high_bp_count} 次 | 低血壓 {stats.low_bp_count} 次 | 正常 {stats.normal_count} 次",
            "",
            RULE,
            SIGNATURE,
        ]
        return "\n".join(lines)

    def notice_text(self, notice: HealthNotice) -> str:
        lines = [
            "📋 健康紀錄通知",
            RULE,
            f"👤 長者：{notice.elder_name}",
            f"📅 日期：{notice.date} {notice.time or ''}".rstrip(),
            RULE,
        ]
        if notice.has_bp:
            icon = bp_status(notice.systolic, notice.diastolic).icon
            lines.append(f"💓 血壓：{notice.systolic}/{notice.diastolic} mmHg {icon}".rstrip())
        if notice.has_temperature:
            icon = temperature_status(notice.temperature).icon
            lines.append(f"🌡️ 體溫：{format_temperature(notice.temperature)}°C {icon}".rstrip())
        if notice.notes:
            lines.append(f"📝 備註：{notice.notes}")
        lines += [RULE, "來自：失智據點活動紀錄系統"]
        return "\n".join(lines)

    # ----- charts -----

    def chart_url(self, config: Dict[str, Any], width: int, height: int) -> str:
        encoded = quote(json.dumps(config, ensure_ascii=False, separators=(",", ":")), safe=_URI_SAFE)
        return f"{self.settings.quickchart_base_url}?c={encoded}&w={width}&h={height}&bkg=white"

    def bp_chart_config(self, elder_name: str, records: Sequence[HealthRecord]) -> Dict[str, Any]:
        window = chart_window(records, self.settings.chart_window_size)
        return {
            "type": "line",
            "data": {
                "labels": [short_date(r.date) for r in window],
                "datasets": [
                    {
                        "label": "收縮壓",
                        "data": [r.systolic for r in window],
                        "borderColor": "#e74c3c",
                        "fill": False,
                        "tension": 0.3,
                        "pointRadius": 4,
                    },
                    {
                        "label": "舒張壓",
                        "data": [r.diastolic for r in window],
                        "borderColor": "#3498db",
                        "fill": False,
                        "tension": 0.3,
                        "pointRadius": 4,
                    },
                ],
            },
            "options": {
                "plugins": {
                    "title": {"display": True, "text": f"{elder_name} - 血壓趨勢圖"},
                    "legend": {"position": "bottom"},
                    "annotation": {"annotations": {"highLine": {
                        "type": "line",
                        "yMin": BP_HIGH_SYSTOLIC,
                        "yMax": BP_HIGH_SYSTOLIC,
                        "borderColor": "rgba(255, 0, 0, 0.5)",
                        "borderDash": [5, 5],
                    }}},
                },
                "scales": {"y": {"min": BP_AXIS[0], "max": BP_AXIS[1], "title": {"display": True, "text": "mmHg"}}},
            },
        }

    def temperature_chart_config(self, elder_name: str, records: Sequence[HealthRecord]) -> Dict[str, Any]:
        window = chart_window(records, self.settings.chart_window_size)
        temps = [r.temperature for r in window]
        return {
            "type": "line",
            "data": {
                "labels": [short_date(r.date) for r in window],
                "datasets": [{
                    "label": "體溫",
                    "data": temps,
                    "borderColor": "#f39c12",
                    "fill": True,
                    "tension": 0.3,
                    "pointRadius": 4,
                    "pointBackgroundColor": [temperature_status(t).color for t in temps],
                }],
            },
            "options": {
                "plugins": {
                    "title": {"display": True, "text": f"{elder_name} - 體溫趨勢圖"},
                    "legend": {"display": False},
                    "annotation": {"annotations": {
                        "feverLine": {
                            "type": "line",
                            "yMin": TEMP_FEVER_FROM,
                            "yMax": TEMP_FEVER_FROM,
                            "borderColor": "rgba(255, 165, 0, 0.7)",
                            "borderDash": [5, 5],
                        },
                        "highFeverLine": {
                            "type": "line",
                            "yMin": TEMP_HIGH_FEVER_ABOVE,
                            "yMax": TEMP_HIGH_FEVER_ABOVE,
                            "borderColor": "rgba(255, 0, 0, 0.7)",
                            "borderDash": [5, 5],
                        },
                    }},
                },
                "scales": {"y": {"min": TEMP_AXIS[0], "max": TEMP_AXIS[1], "title": {"display": True, "text": "°C"}}},
            },
        }

    def bp_chart_url(self, elder_name: str, records: Sequence[HealthRecord]) -> str:
        return self.chart_url(self.bp_chart_config(elder_name, records), 600, 400)

    def temperature_chart_url(self, elder_name: str, records: Sequence[HealthRecord]) -> str:
        return self.chart_url(self.temperature_chart_config(elder_name, records), 600, 300)

    # ----- flex card -----

    def flex_card(self, elder_name: str, stats: AggregateStats) -> Message:
        hi, lo, latest = stats.max_bp_record, stats.min_bp_record, stats.latest
        hi_color = bp_status(hi.systolic, hi.diastolic).color if hi else bp_status(None, None).color
        lo_color = bp_status(lo.systolic, lo.diastolic).color if lo else bp_status(None, None).color

        def extreme(title: str, record: Optional[HealthRecord], color: str) -> Dict[str, Any]:
            return {
                "type": "box",
                "layout": "vertical",
                "flex": 1,
                "contents": [
                    {"type": "text", "text": title, "size": "sm", "color": "#666666"},
                    {"type": "text", "text": _bp_text(record), "size": "xl", "weight": "bold", "color": color},
                    {"type": "text", "text": short_date(record.date) if record else " ", "size": "xs", "color": "#999999"},
                ],
            }

        def count(text: str, n: int, color: str) -> Dict[str, Any]:
            return {"type": "text", "text": text, "size": "sm", "flex": 1, "color": color if n > 0 else "#999999"}

        def reading(label: str, value: str, color: str, margin: str) -> Dict[str, Any]:
            return {
                "type": "box",
                "layout": "horizontal",
                "margin": margin,
                "contents": [
                    {"type": "text", "text": label, "size": "sm", "color": "#666666", "flex": 1},
                    {"type": "text", "text": value, "size": "sm", "weight": "bold", "color": color, "flex": 2},
                ],
            }

        def section_title(text: str) -> Dict[str, Any]:
            return {"type": "text", "text": text, "weight": "bold", "size": "md", "color": "#1A5276"}

        separator = {"type": "separator", "color": "#E5E5E5"}

        latest_bp = bp_status(latest.systolic, latest.diastolic) if latest else bp_status(None, None)
        latest_temp = temperature_status(latest.temperature if latest else None)
        bp_value = f"{_bp_text(latest)} mmHg" if latest is not None and latest.has_bp else "-"
        temp_value = f"{format_temperature(latest.temperature)}°C" if latest is not None and latest.has_temperature else "-"
        latest_when = f"{short_date(latest.date)} {latest.time or ''}".strip() if latest else "-"

        bubble = {
            "type": "bubble",
            "size": "mega",
            "header": {
                "type": "box",
                "layout": "vertical",
                "backgroundColor": "#27AE60",
                "paddingAll": "20px",
                "contents": [
                    {"type": "text", "text": "🏥 失智據點健康報告", "color": "#FFFFFF", "size": "lg", "weight": "bold"},
                    {"type": "text", "text": elder_name, "color": "#FFFFFF", "size": "xxl", "weight": "bold", "margin": "md"},
                    {
                        "type": "text",
                        "text": f"{short_date(stats.first_date)} ~ {short_date(stats.last_date)}",
                        "color": "#E8F8F5",
                        "size": "sm",
                        "margin": "sm",
                    },
                ],
            },
            "body": {
                "type": "box",
                "layout": "vertical",
                "paddingAll": "20px",
                "spacing": "lg",
                "contents": [
                    {
                        "type": "box",
                        "layout": "vertical",
                        "contents": [
                            section_title("📊 血壓統計"),
                            {
                                "type": "box",
                                "layout": "horizontal",
                                "margin": "lg",
                                "contents": [
                                    extreme("🔴 最高紀錄", hi, hi_color),
                                    extreme("🔵 最低紀錄", lo, lo_color),
                                ],
                            },
                        ],
                    },
                    separator,
                    {
                        "type": "box",
                        "layout": "vertical",
                        "contents": [
                            section_title("⚠️ 異常次數"),
                            {
                                "type": "box",
                                "layout": "horizontal",
                                "margin": "md",
                                "contents": [
                                    count(f"🔴 高血壓 {stats.high_bp_count} 次", stats.high_bp_count, "#E74C3C"),
                                    count(f"🔵 低血壓 {stats.low_bp_count} 次", stats.low_bp_count, "#3498DB"),
                                ],
                            },
                            {
                                "type": "box",
                                "layout": "horizontal",
                                "margin": "sm",
                                "contents": [
                                    count(f"🟠 發燒 {stats.fever_count} 次", stats.fever_count, "#F39C12"),
                                    {"type": "text", "text": f"🟢 正常 {stats.normal_count} 次", "size": "sm", "flex": 1, "color": "#27AE60"},
                                ],
                            },
                        ],
                    },
                    separator,
                    {
                        "type": "box",
                        "layout": "vertical",
                        "contents": [
                            section_title("📍 最新紀錄"),
                            {"type": "text", "text": latest_when, "size": "xs", "color": "#999999", "margin": "sm"},
                            reading("血壓", bp_value, latest_bp.color, "md"),
                            reading("體溫", temp_value, latest_temp.color, "sm"),
                        ],
                    },
                    separator,
                    {
                        "type": "box",
                        "layout": "horizontal",
                        "contents": [
                            {"type": "text", "text": "📈 血壓趨勢", "size": "sm", "color": "#666666", "flex": 1},
                            {"type": "text", "text": TREND_LABELS[stats.trend], "size": "sm", "weight": "bold", "flex": 1, "align": "end"},
                        ],
                    },
                ],
            },
            "footer": {
                "type": "box",
                "layout": "vertical",
                "backgroundColor": "#F8F9FA",
                "paddingAll": "15px",
                "contents": [
                    {"type": "text", "text": SIGNATURE, "size": "sm", "color": "#27AE60", "align": "center", "weight": "bold"},
                    {"type": "text", "text": f"共 {stats.record_count} 筆紀錄", "size": "xs", "color": "#999999", "align": "center", "margin": "sm"},
                ],
            },
        }
        return flex_message(f"{elder_name} 健康報告", bubble)
