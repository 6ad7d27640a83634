"""
Grafana OTLP Metrics Exporter
==============================

Pushes pipeline metrics to Grafana Cloud via OTLP.

Metrics exported:
- llm_tokens_total / llm_prompt_tokens / llm_completion_tokens: LLM usage per classification call
- llm_latency_ms: LLM request latency in milliseconds
- intake_latency_ms: End-to-end latency of one ingest
- intake_degraded: 1 when the stored triage was produced without the classifier
"""

import base64
import time
from typing import Dict, List, Optional

import httpx

from helpdesk.config import settings
from helpdesk.shared.infrastructure.logging import get_logger

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
                    "attributes": attributes
                }
            ]
        }
    }


def _attributes(values: Dict[str, str]) -> List[dict]:
    return [{"key": key, "value": {"stringValue": str(value)}} for key, value in values.items()]


class GrafanaOTLPExporter:
    """
    Export pipeline metrics to Grafana Cloud via OTLP HTTP endpoint.

    Uses OpenTelemetry Protocol (OTLP) JSON format. Without credentials
    every export is a no-op returning False.
    """

    def __init__(
        self,
        host: Optional[str] = None,
        api_key: Optional[str] = None,
        instance_id: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self._host = host or settings.grafana_host
        self._transport = transport
        self._api_key = api_key or settings.grafana_api_key
        self._instance_id = instance_id or settings.grafana_instance_id
        self._enabled = bool(self._host and self._api_key and self._instance_id)

        if self._enabled:
            auth_pair = f"{self._instance_id}:{self._api_key}"
            self._auth_encoded = base64.b64encode(auth_pair.encode()).decode()
            # Don't double-append the path if host already includes it
            if "/otlp/v1/metrics" not in self._host:
                self._url = f"{self._host.rstrip('/')}/otlp/v1/metrics"
            else:
                self._url = self._host
            logger.info(
                "Grafana OTLP exporter initialized",
                extra={"host": self._host, "instance_id": self._instance_id}
            )
        else:
            logger.info(
                "Grafana OTLP exporter not configured - metrics will not be exported",
                extra={
                    "host_configured": bool(self._host),
                    "api_key_configured": bool(self._api_key),
                    "instance_id_configured": bool(self._instance_id)
                }
            )

    def is_enabled(self) -> bool:
        """Check if exporter is properly configured."""
        return self._enabled

    def build_payload(self, metrics: List[dict]) -> dict:
        """Wrap metrics in an OTLP resourceMetrics envelope."""
        return {
            "resourceMetrics": [
                {
                    "resource": {
                        "attributes": _attributes({
                            "service.name": settings.app_name,
                            "service.version": settings.app_version,
                            "deployment.environment": settings.environment,
                        })
                    },
                    "scopeMetrics": [{"metrics": metrics}]
                }
            ]
        }

    async def _push(self, metrics: List[dict], context: Dict[str, str]) -> bool:
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Basic {self._auth_encoded}",
            "X-Grafana-Org-Id": str(self._instance_id)
        }

        try:
            async with httpx.AsyncClient(timeout=10.0, transport=self._transport) as client:
                response = await client.post(
                    self._url,
                    headers=headers,
                    json=self.build_payload(metrics)
                )
        except httpx.HTTPError as e:
            logger.error(
                "Error exporting metrics to Grafana",
                extra={"error": str(e), **context}
            )
            return False

        if response.status_code in (200, 202):
            logger.debug("Metrics exported to Grafana", extra={"metrics_count": len(metrics), **context})
            return True

        logger.warning(
            "Failed to export metrics to Grafana",
            extra={
                "status_code": response.status_code,
                "response": response.text[:500],
                "url": self._url,
                **context
            }
        )
        return False

    async def export_llm_metrics(
        self,
        model: str,
        prompt_tokens: int,
        completion_tokens: int,
        latency_ms: int,
        operation: str = "classification",
        attributes: Optional[Dict[str, str]] = None
    ) -> bool:
        """
        Export LLM usage metrics to Grafana.

        Args:
            model: LLM model name (e.g., "glm-4.7")
            prompt_tokens: Number of prompt tokens used
            completion_tokens: Number of completion tokens generated
            latency_ms: Request latency in milliseconds
            operation: Operation type
            attributes: Additional attributes to attach to metrics

        Returns:
            True if export succeeded, False otherwise
        """
        if not self._enabled:
            return False

        timestamp_ns = int(time.time() * 1_000_000_000)
        metric_attributes = _attributes({
            "model": model,
            "operation": operation,
            "service": settings.app_name,
            **(attributes or {})
        })

        metrics = [
            _gauge("llm_tokens_total", "1", "Total tokens used in LLM requests",
                   prompt_tokens + completion_tokens, timestamp_ns, metric_attributes),
            _gauge("llm_latency_ms", "ms", "LLM request latency in milliseconds",
                   latency_ms, timestamp_ns, metric_attributes),
            _gauge("llm_prompt_tokens", "1", "Number of prompt tokens in LLM requests",
                   prompt_tokens, timestamp_ns, metric_attributes),
            _gauge("llm_completion_tokens", "1", "Number of completion tokens generated",
                   completion_tokens, timestamp_ns, metric_attributes),
        ]
        return await self._push(metrics, {"model": model, "operation": operation})

    async def export_intake_metrics(
        self,
        source: str,
        status: str,
        category: str,
        degraded: bool,
        latency_ms: int
    ) -> bool:
        """
        Export per-ingest metrics.

        Args:
            source: Channel the message arrived on
            status: Ticket status after intake
            category: Stored triage category
            degraded: Whether the triage was produced without the classifier
            latency_ms: End-to-end ingest latency

        Returns:
            True if export succeeded, False otherwise
        """
        if not self._enabled:
            return False

        timestamp_ns = int(time.time() * 1_000_000_000)
        metric_attributes = _attributes({
            "source": source,
            "status": status,
            "category": category,
            "service": settings.app_name,
        })

        metrics = [
            _gauge("intake_latency_ms", "ms", "End-to-end ingest latency in milliseconds",
                   latency_ms, timestamp_ns, metric_attributes),
            _gauge("intake_degraded", "1", "1 if the triage was produced without the classifier",
                   int(degraded), timestamp_ns, metric_attributes),
        ]
        return await self._push(metrics, {"source": source, "operation": "intake"})


# Global exporter instance
_grafana_exporter: Optional[GrafanaOTLPExporter] = None


def get_grafana_exporter() -> GrafanaOTLPExporter:
    """Get or create global Grafana exporter instance."""
    global _grafana_exporter
    if _grafana_exporter is None:
        _grafana_exporter = GrafanaOTLPExporter()
    return _grafana_exporter


def init_grafana_exporter(
    host: Optional[str],
    api_key: Optional[str],
    instance_id: Optional[str]
) -> GrafanaOTLPExporter:
    """Initialize Grafana exporter with credentials."""
    global _grafana_exporter
    _grafana_exporter = GrafanaOTLPExporter(
        host=host,
        api_key=api_key,
        instance_id=instance_id
    )
    return _grafana_exporter
