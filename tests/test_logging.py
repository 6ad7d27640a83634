"""Tests for structured logging and the Grafana metrics exporter."""

import json
import logging

import httpx

from helpdesk.shared.infrastructure.grafana import GrafanaOTLPExporter
from helpdesk.shared.infrastructure.logging import (
    CustomJsonFormatter,
    EnvironmentFilter,
    get_context_logger,
    log_latency,
)


class ListHandler(logging.Handler):
    def __init__(self):
        super().__init__()
        self.records = []

    def emit(self, record):
        self.records.append(record)


def capture(name: str):
    logger = logging.getLogger(name)
    handler = ListHandler()
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG)
    return logger, handler


def format_record(**extra) -> dict:
    record = logging.LogRecord("helpdesk.test", logging.INFO, __file__, 1, "hello", None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    EnvironmentFilter("test").filter(record)
    return json.loads(CustomJsonFormatter("%(name)s %(levelname)s %(message)s").format(record))


def test_json_output_carries_context():
    payload = format_record(correlation_id="telegram:tg:msg:1", ticket_id="t-1")

    assert payload["message"] == "hello"
    assert payload["correlation_id"] == "telegram:tg:msg:1"
    assert payload["ticket_id"] == "t-1"
    assert payload["environment"] == "test"
    assert "timestamp" in payload


def test_secrets_are_redacted():
    payload = format_record(api_key="sk-123", db_password="hunter2", auth_token="abc", total_tokens=42)

    assert payload["api_key"] == "***REDACTED***"
    assert payload["db_password"] == "***REDACTED***"
    assert payload["auth_token"] == "***REDACTED***"
    assert payload["total_tokens"] == 42


def test_context_logger_merges_call_site_extra():
    _, handler = capture("helpdesk.test.context")
    logger = get_context_logger("helpdesk.test.context", correlation_id="email:msg-1")

    logger.info("Inbound message recorded", extra={"ticket_id": "t-9"})

    record = handler.records[-1]
    assert record.correlation_id == "email:msg-1"
    assert record.ticket_id == "t-9"


def test_context_logger_default_correlation_id():
    _, handler = capture("helpdesk.test.default")

    get_context_logger("helpdesk.test.default").warning("no context")

    assert handler.records[-1].correlation_id == "-"


def test_log_latency_reports_operation():
    logger, handler = capture("helpdesk.test.latency")

    with log_latency(logger, "kb_match", category="access_vpn"):
        pass

    record = handler.records[-1]
    assert record.getMessage() == "kb_match completed"
    assert record.operation == "kb_match"
    assert record.category == "access_vpn"
    assert record.latency_ms >= 0


async def test_disabled_exporter_is_noop(disabled_metrics):
    assert disabled_metrics.is_enabled() is False
    assert await disabled_metrics.export_intake_metrics("telegram", "triaged", "access_vpn", False, 12) is False


async def test_exporter_pushes_otlp_payload():
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200)

    exporter = GrafanaOTLPExporter(
        host="https://otlp.example.net",
        api_key="key",
        instance_id="42",
        transport=httpx.MockTransport(handler),
    )

    assert await exporter.export_intake_metrics("telegram", "triaged", "access_vpn", True, 35) is True

    request = requests[0]
    assert str(request.url) == "https://otlp.example.net/otlp/v1/metrics"
    assert request.headers["Authorization"].startswith("Basic ")
    body = json.loads(request.content)
    metrics = body["resourceMetrics"][0]["scopeMetrics"][0]["metrics"]
    assert {m["name"] for m in metrics} == {"intake_latency_ms", "intake_degraded"}
    degraded = next(m for m in metrics if m["name"] == "intake_degraded")
    assert degraded["gauge"]["dataPoints"][0]["asInt"] == 1


async def test_exporter_reports_rejection():
    exporter = GrafanaOTLPExporter(
        host="https://otlp.example.net/otlp/v1/metrics",
        api_key="key",
        instance_id="42",
        transport=httpx.MockTransport(lambda request: httpx.Response(401, text="unauthorized")),
    )

    assert await exporter.export_llm_metrics("glm-4.7", 100, 20, 350) is False


async def test_exporter_survives_network_error():
    def handler(request):
        raise httpx.ConnectError("no route to host")

    exporter = GrafanaOTLPExporter(
        host="https://otlp.example.net", api_key="key", instance_id="42",
        transport=httpx.MockTransport(handler),
    )

    assert await exporter.export_intake_metrics("portal", "new", "none", False, 1) is False
