"""Tests for the dashboard request logger."""

from core.config import BrokerSettings, Config
from ui.dashboard import Dashboard


def _dashboard() -> Dashboard:
    return Dashboard(Config(broker=BrokerSettings(url="http://broker.example.com")))


def test_forwarded_requests_are_counted_and_capped(isolated_logs):
    dashboard = _dashboard()

    for i in range(12):
        dashboard.log_forward("GET", f"/v2/service_instances/{i}", 200, 1.5)

    assert dashboard._request_count["forwarded"] == 12
    assert len(dashboard._recent) == 10
    assert dashboard._recent[0].path == "/v2/service_instances/11"
    assert "FORWARD: GET /v2/service_instances/11" in (isolated_logs / "proxy.log").read_text()


def test_errors_keep_latest_three(isolated_logs):
    dashboard = _dashboard()

    for status in (502, 503, 504, 502):
        dashboard.log_error("broker", status, "x" * 80)

    assert dashboard._request_count["failed"] == 4
    assert len(dashboard._errors) == 3
    assert dashboard._errors[0].startswith("broker 502: ")
    assert dashboard._errors[0].endswith("...")


def test_layout_builds_without_live_display():
    dashboard = _dashboard()
    dashboard.log_forward("PUT", "/v2/service_instances/1", 201, 12.0)

    layout = dashboard._build_layout()

    assert layout["body"] is not None
