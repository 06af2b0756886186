"""Tests for the HTTP surface of the report service."""

from __future__ import annotations

import base64
import hashlib
import hmac
import json
from datetime import date

import pytest
from fastapi.testclient import TestClient

from daycare.app import app, get_dispatcher
from daycare.dispatcher import Dispatcher
from daycare.schemas import Elder

from tests.conftest import make_record


@pytest.fixture
def client(dispatcher):
    app.dependency_overrides[get_dispatcher] = lambda: dispatcher
    try:
        with TestClient(app) as test_client:
            yield test_client
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def signed_client(settings, line, sheets, renderer):
    signed = settings.model_copy(update={"line_channel_secret": "chan-secret"})
    d = Dispatcher(signed, line=line, sheets=sheets, renderer=renderer, today=lambda: date(2024, 12, 15))
    app.dependency_overrides[get_dispatcher] = lambda: d
    try:
        with TestClient(app) as test_client:
            yield test_client
    finally:
        app.dependency_overrides.clear()


def _records_json(records):
    return [r.model_dump(mode="json") for r in records]


class TestSystemEndpoints:
    def test_health(self, client):
        response = client.get("/v1/health")

        assert response.status_code == 200
        assert response.json()["status"] == "ok"

    def test_request_id_is_echoed(self, client):
        response = client.get("/v1/health", headers={"X-Request-Id": "req-123"})

        assert response.headers["X-Request-Id"] == "req-123"

    def test_metrics(self, client):
        client.get("/v1/health")
        response = client.get("/v1/metrics")

        assert response.status_code == 200
        assert "daycare_http_requests_total" in response.text

    def test_webhook_ready(self, client):
        assert client.get("/api/line-webhook").json() == {"status": "LINE API is ready"}


class TestLineWebhook:
    def test_flex_report(self, client, line, week_records):
        response = client.post("/api/line-webhook", json={
            "action": "send-flex-message",
            "userId": "U1",
            "elderName": "王阿姨",
            "records": _records_json(week_records),
        })

        assert response.status_code == 200
        assert response.json()["success"] is True
        line.push.assert_called_once()

    def test_missing_records(self, client, line):
        response = client.post("/api/line-webhook", json={"action": "send-health-report-with-chart", "userId": "U1", "elderName": "王阿姨"})

        assert response.status_code == 400
        assert response.json()["field"] == "records"
        line.push.assert_not_called()

    def test_invalid_json(self, client):
        response = client.post("/api/line-webhook", content=b"{not json", headers={"Content-Type": "application/json"})

        assert response.status_code == 400
        assert response.json()["code"] == "bad_request"

    def test_invalid_record_payload(self, client):
        response = client.post("/api/line-webhook", json={"action": "charts-preview", "elderName": "王阿姨", "records": [{"systolic": 120}]})

        assert response.status_code == 400
        assert response.json() == {"success": False, "error": "缺少必要資料: records.0.date", "field": "records.0.date"}

    def test_unreadable_temperature_does_not_break_report(self, client, line):
        response = client.post("/api/line-webhook", json={
            "action": "send-health-report-with-chart",
            "userId": "U1",
            "elderName": "王阿姨",
            "records": [{"date": "2024-12-05", "systolic": 120, "diastolic": 80, "temperature": "1e999"}],
        })

        assert response.status_code == 200
        assert response.json()["success"] is True
        _, messages = line.push.call_args.args
        assert len(messages) == 2

    def test_scheduled_report_query_params(self, client, sheets, line):
        sheets.elders.return_value = [Elder(name="王阿姨", familyLineId="U-wang")]
        sheets.health_records.return_value = [make_record("2024-12-10", 120, 80)]

        response = client.post("/api/line-webhook?forceSend=true", json={"action": "scheduled-report"})

        assert response.status_code == 200
        assert response.json()["results"]["sent"] == 1
        line.push.assert_called_once()

    def test_unsigned_events_accepted_without_channel_secret(self, client, line):
        response = client.post("/api/line-webhook", json={"events": [
            {"type": "follow", "replyToken": "rt", "source": {"userId": "U-new"}},
        ]})

        assert response.status_code == 200
        line.reply.assert_called_once()


class TestSignedWebhook:
    def _body(self) -> bytes:
        return json.dumps({"events": [{"type": "follow", "replyToken": "rt", "source": {"userId": "U-new"}}]}).encode()

    def test_bad_signature_rejected(self, signed_client, line):
        response = signed_client.post(
            "/api/line-webhook",
            content=self._body(),
            headers={"Content-Type": "application/json", "X-Line-Signature": "bogus"},
        )

        assert response.status_code == 400
        line.reply.assert_not_called()

    def test_good_signature_accepted(self, signed_client, line):
        body = self._body()
        sig = base64.b64encode(hmac.new(b"chan-secret", body, hashlib.sha256).digest()).decode()

        response = signed_client.post(
            "/api/line-webhook",
            content=body,
            headers={"Content-Type": "application/json", "X-Line-Signature": sig},
        )

        assert response.status_code == 200
        line.reply.assert_called_once()

    def test_report_actions_need_no_signature(self, signed_client, line, two_records):
        response = signed_client.post("/api/line-webhook", json={
            "action": "send-health-report-batch",
            "userId": "U1",
            "records": _records_json(two_records),
        })

        assert response.status_code == 200


def test_single_record_notice_endpoint(client, line):
    response = client.post("/api/line/send-health-report", json={
        "userId": "U1",
        "healthData": {"elderName": "陳奶奶", "date": "2024-12-05", "time": "09:30", "temperature": 38.4},
    })

    assert response.status_code == 200
    assert response.json()["success"] is True
    _, messages = line.push.call_args.args
    assert "🌡️ 體溫：38.4°C 🔴" in messages[0]["text"]


def test_notice_endpoint_without_date(client, line):
    response = client.post("/api/line/send-health-report", json={
        "userId": "U1",
        "healthData": {"elderName": "A", "systolic": 150, "diastolic": 95},
    })

    assert response.status_code == 200
    assert response.json()["success"] is True
    _, messages = line.push.call_args.args
    assert "📅 日期：2024-12-15" in messages[0]["text"]


def test_notice_endpoint_rejects_missing_elder_name(client, line):
    response = client.post("/api/line/send-health-report", json={"userId": "U1", "healthData": {"systolic": 150}})

    assert response.status_code == 400
    assert response.json()["success"] is False
    assert response.json()["field"] == "healthData.elderName"
    line.push.assert_not_called()
