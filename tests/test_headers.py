"""Tests for header construction and log redaction."""

from core.headers import HeaderBuilder
from ui.log_utils import redact_headers, write_cli_log, write_incoming_log


def test_auth_headers():
    assert HeaderBuilder().build_auth_headers("tok") == {
        "Authorization": "Bearer tok",
        "x-broker-api-version": "2.14",
    }


def test_forward_headers_drop_host_and_hop_by_hop():
    inbound = [
        ("host", "example.com"),
        ("connection", "keep-alive"),
        ("accept", "application/json"),
        ("x-request-id", "1"),
        ("x-request-id", "2"),
    ]

    headers = HeaderBuilder().build_forward_headers(inbound, "tok")

    assert headers == [
        ("accept", "application/json"),
        ("x-request-id", "1"),
        ("x-request-id", "2"),
        ("Authorization", "Bearer tok"),
        ("x-broker-api-version", "2.14"),
    ]


def test_response_headers_keep_repeated_values():
    relayed = HeaderBuilder().build_response_headers(
        [("set-cookie", "a=1"), ("set-cookie", "b=2"), ("transfer-encoding", "chunked")]
    )

    assert relayed == [("set-cookie", "a=1"), ("set-cookie", "b=2")]


def test_redact_headers_masks_credentials():
    redacted = redact_headers({"Authorization": "Basic YWRtaW46czNjcmV0", "Accept": "*/*"})

    assert redacted == {"Authorization": "Basic ...cmV0", "Accept": "*/*"}


def test_incoming_log_is_redacted(isolated_logs):
    path = write_incoming_log("GET", "/v2/catalog", {"authorization": "short"}, "a=b")

    assert path.parent == isolated_logs / "incoming"
    assert '"authorization": "***"' in path.read_text()


def test_cli_log_appends_lines(isolated_logs):
    write_cli_log("STARTUP", "Proxy started", port=8080)
    write_cli_log("ERROR", "boom")

    lines = (isolated_logs / "proxy.log").read_text().splitlines()
    assert lines[0].endswith("STARTUP: Proxy started port=8080")
    assert lines[1].endswith("ERROR: boom")


def test_incoming_logs_are_pruned(isolated_logs):
    for i in range(4):
        write_incoming_log("GET", f"/v2/{i}", {}, keep=2)

    assert len(list((isolated_logs / "incoming").glob("*.json"))) == 2
