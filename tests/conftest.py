"""Shared fixtures for the report pipeline tests."""

from __future__ import annotations

import random
from datetime import date
from unittest.mock import Mock

import pytest

from daycare.config import Settings
from daycare.dispatcher import Dispatcher
from daycare.line import LineClient
from daycare.render import ReportRenderer
from daycare.schemas import HealthRecord
from daycare.sheets import SheetsSource


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        line_channel_access_token="test-token",
        line_channel_secret=None,
        sheets_script_url="https://script.example.com/exec",
        cron_secret=None,
    )


@pytest.fixture
def renderer(settings: Settings) -> ReportRenderer:
    return ReportRenderer(settings, rng=random.Random(7))


@pytest.fixture
def line() -> Mock:
    mock = Mock(spec=LineClient)
    mock.push.return_value = 1
    return mock


@pytest.fixture
def sheets() -> Mock:
    return Mock(spec=SheetsSource)


@pytest.fixture
def today() -> date:
    return date(2024, 12, 15)


@pytest.fixture
def dispatcher(settings, line, sheets, renderer, today) -> Dispatcher:
    return Dispatcher(settings, line=line, sheets=sheets, renderer=renderer, today=lambda: today)


def make_record(day: str, systolic=None, diastolic=None, temperature=None, time=None) -> HealthRecord:
    return HealthRecord(date=day, time=time, systolic=systolic, diastolic=diastolic, temperature=temperature)


@pytest.fixture
def two_records() -> list[HealthRecord]:
    return [
        make_record("2024-12-01", 150, 95),
        make_record("2024-12-05", 110, 70),
    ]


@pytest.fixture
def week_records() -> list[HealthRecord]:
    return [
        make_record("2024-12-07", 128, 82, 36.6, "09:00"),
        make_record("2024-12-01", 118, 76, 36.4, "09:00"),
        make_record("2024-12-03", 145, 92, 37.8, "09:30"),
        make_record("2024-12-05", 85, 55, None, "10:00"),
        make_record("2024-12-06", None, None, 38.4, "14:00"),
    ]
