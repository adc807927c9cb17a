"""
Grafana OTLP Metrics Exporter
==============================

Pushes SLA sweep metrics to Grafana Cloud via OTLP.

Metrics exported:
- sla_sweep_records_flagged: Records newly flagged as breached by a sweep
- sla_sweep_latency_ms: Sweep duration in milliseconds

Export is best-effort: failures are logged and reported as False, never
raised into the sweep.
"""

import base64
import time
from typing import Optional, Dict, Any, List

import httpx

from casewatch.config import settings
from casewatch.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


def _gauge(name: str, unit: str, description: str, value: int, timestamp_ns: int, attributes: List[dict]) -> dict:
    return {
        "name": name,
        "unit": unit,
        "description": description,
        "gauge": {
            "dataPoints": [
                {
                    "asInt": value,
                    "timeUnixNano": timestamp_ns,
                    "attributes": attributes,
                }
            ]
        },
    }


class GrafanaOTLPExporter:
    """
    Export SLA metrics to Grafana Cloud via OTLP HTTP endpoint.

    Uses OpenTelemetry Protocol (OTLP) JSON format for metrics.
    """

    def __init__(
        self,
        host: Optional[str] = None,
        api_key: Optional[str] = None,
        instance_id: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        """
        Initialize Grafana OTLP exporter.

        Args:
            host: Grafana OTLP gateway URL (e.g., https://otlp-gateway-prod-eu-west-2.grafana.net)
            api_key: Grafana API key
            instance_id: Instance ID for authentication
            transport: Optional httpx transport (tests use httpx.MockTransport)
        """
        self._host = host or settings.grafana_host
        self._api_key = api_key or settings.grafana_api_key
        self._instance_id = instance_id or settings.grafana_instance_id
        self._transport = transport
        self._enabled = bool(self._host and self._api_key and self._instance_id)

        if self._enabled:
            auth_pair = f"{self._instance_id}:{self._api_key}"
            self._auth_encoded = base64.b64encode(auth_pair.encode()).decode()
            # Don't double-append the path if host already includes it
            if "/otlp/v1/metrics" in self._host:
                self._url = self._host
            else:
                self._url = f"{self._host.rstrip('/')}/otlp/v1/metrics"
            logger.info(
                "Grafana OTLP exporter initialized",
                extra={"host": self._host, "instance_id": self._instance_id}
            )
        else:
            logger.debug("Grafana OTLP exporter not configured - metrics will not be exported")

    def is_enabled(self) -> bool:
        """Check if exporter is properly configured."""
        return self._enabled

    def build_sweep_payload(
        self,
        records_flagged: int,
        latency_ms: int,
        attributes: Optional[Dict[str, Any]] = None
    ) -> dict:
        """OTLP JSON body for one sweep run."""
        timestamp_ns = int(time.time() * 1_000_000_000)
        metric_attributes = [
            {"key": "service", "value": {"stringValue": settings.app_name}},
            {"key": "job", "value": {"stringValue": "sla_breach_sweep"}},
        ]
        for key, value in (attributes or {}).items():
            metric_attributes.append({"key": key, "value": {"stringValue": str(value)}})

        return {
            "resourceMetrics": [
                {
                    "resource": {
                        "attributes": [
                            {"key": "service.name", "value": {"stringValue": settings.app_name}},
                            {"key": "service.version", "value": {"stringValue": settings.app_version}},
                            {"key": "deployment.environment", "value": {"stringValue": settings.environment}},
                        ]
                    },
                    "scopeMetrics": [
                        {
                            "metrics": [
                                _gauge(
                                    "sla_sweep_records_flagged", "1",
                                    "Tracking records newly flagged as breached",
                                    records_flagged, timestamp_ns, metric_attributes,
                                ),
                                _gauge(
                                    "sla_sweep_latency_ms", "ms",
                                    "SLA breach sweep duration in milliseconds",
                                    latency_ms, timestamp_ns, metric_attributes,
                                ),
                            ]
                        }
                    ],
                }
            ]
        }

    async def export_sweep_metrics(
        self,
        records_flagged: int,
        latency_ms: float,
        attributes: Optional[Dict[str, Any]] = None
    ) -> bool:
        """
        Export the outcome of a breach sweep.

        Returns:
            True if export succeeded, False otherwise
        """
        if not self._enabled:
            logger.debug("Grafana exporter not enabled - skipping metrics export")
            return False

        payload = self.build_sweep_payload(records_flagged, int(latency_ms), attributes)
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Basic {self._auth_encoded}",
            "X-Grafana-Org-Id": str(self._instance_id),
        }

        try:
            async with httpx.AsyncClient(timeout=10.0, transport=self._transport) as client:
                response = await client.post(self._url, headers=headers, json=payload)
        except httpx.HTTPError as e:
            logger.error("Error exporting metrics to Grafana", extra={"error": str(e), "url": self._url})
            return False

        if response.status_code in (200, 202):
            logger.debug(
                "SLA sweep metrics exported to Grafana",
                extra={"records_flagged": records_flagged, "latency_ms": latency_ms}
            )
            return True

        logger.warning(
            "Failed to export metrics to Grafana",
            extra={
                "status_code": response.status_code,
                "response": response.text[:500],
                "url": self._url,
            }
        )
        return False


# Global exporter instance
_grafana_exporter: Optional[GrafanaOTLPExporter] = None


def get_grafana_exporter() -> GrafanaOTLPExporter:
    """Get or create global Grafana exporter instance."""
    global _grafana_exporter
    if _grafana_exporter is None:
        _grafana_exporter = GrafanaOTLPExporter()
    return _grafana_exporter
