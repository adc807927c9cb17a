"""Tests for the Grafana OTLP exporter and the scheduled sweep job."""

import json
from datetime import timedelta

import httpx
import pytest

from casewatch.shared.infrastructure.grafana import GrafanaOTLPExporter
from casewatch.sla.services import SlaBreachSweepJob

from conftest import T0


def _exporter(handler):
    return GrafanaOTLPExporter(
        host="https://otlp.example.net",
        api_key="key",
        instance_id="12345",
        transport=httpx.MockTransport(handler),
    )


def test_exporter_without_credentials_is_disabled():
    exporter = GrafanaOTLPExporter(host="", api_key="", instance_id="")

    assert not exporter.is_enabled()


@pytest.mark.asyncio
async def test_disabled_exporter_skips_export():
    exporter = GrafanaOTLPExporter(host="", api_key="", instance_id="")

    assert await exporter.export_sweep_metrics(3, 12.5) is False


@pytest.mark.asyncio
async def test_export_posts_otlp_metrics():
    requests = []

    def handler(request):
        requests.append(request)
        return httpx.Response(200)

    exported = await _exporter(handler).export_sweep_metrics(3, 12.5, {"trigger": "test"})

    assert exported is True
    assert str(requests[0].url) == "https://otlp.example.net/otlp/v1/metrics"
    assert requests[0].headers["Authorization"].startswith("Basic ")
    metrics = json.loads(requests[0].content)["resourceMetrics"][0]["scopeMetrics"][0]["metrics"]
    assert {m["name"]: m["gauge"]["dataPoints"][0]["asInt"] for m in metrics} == {
        "sla_sweep_records_flagged": 3,
        "sla_sweep_latency_ms": 12,
    }


@pytest.mark.asyncio
async def test_export_failure_returns_false():
    exported = await _exporter(lambda request: httpx.Response(500, text="boom")).export_sweep_metrics(1, 1)

    assert exported is False


@pytest.mark.asyncio
async def test_export_transport_error_returns_false():
    def handler(request):
        raise httpx.ConnectError("unreachable", request=request)

    assert await _exporter(handler).export_sweep_metrics(1, 1) is False


@pytest.mark.asyncio
async def test_sweep_job_flags_and_exports(session, service, global_configuration):
    await service.create_tracking_record(
        case_id="case-1", case_number="CASE-1", case_type="Return",
        store_id="store-1", store_name="Acme Outlet", case_created_at=T0,
    )
    exported = []

    def handler(request):
        exported.append(json.loads(request.content))
        return httpx.Response(202)

    job = SlaBreachSweepJob(exporter=_exporter(handler), batch_size=10, max_update_retries=3)
    summary = await job.run(session, now=T0 + timedelta(hours=25))

    assert summary["records_flagged"] == 1
    assert summary["latency_ms"] >= 0
    assert len(exported) == 1
