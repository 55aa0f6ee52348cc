"""
Grafana OTLP Metrics Exporter
==============================

Pushes LLM usage and similarity search metrics to Grafana Cloud via OTLP.

Metrics exported:
- llm_tokens_total: Tokens used per call (prompt + completion)
- llm_latency_ms: LLM request latency in milliseconds
- similarity_search_latency_ms: End-to-end search latency
- similarity_search_candidates: Neighbours returned by the vector store
- similarity_search_results: Number of results returned per search
"""

import base64
import time
from typing import Optional, Dict, List, Any

import httpx

from ticket_assist.config import Settings, settings as default_settings
from ticket_assist.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


def _gauge(name: str, unit: str, description: str, value: int,
           timestamp_ns: int, attributes: List[dict]) -> dict:
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


def _attributes(service: str, base: Dict[str, Any], extra: Optional[Dict[str, str]] = None) -> List[dict]:
    merged = {**base, "service": service, **(extra or {})}
    return [
        {"key": key, "value": {"stringValue": str(value)}}
        for key, value in merged.items()
    ]


class GrafanaOTLPExporter:
    """
    Export metrics to Grafana Cloud via OTLP HTTP endpoint.

    Uses OpenTelemetry Protocol (OTLP) format for metrics. Export never
    raises: failures are logged and reported through the return value.
    """

    def __init__(
        self,
        host: Optional[str] = None,
        api_key: Optional[str] = None,
        instance_id: Optional[str] = None,
        config: Optional[Settings] = None
    ):
        self._config = config or default_settings
        self._host = host or self._config.grafana_host
        self._api_key = api_key or self._config.grafana_api_key
        self._instance_id = instance_id or self._config.grafana_instance_id
        self._enabled = bool(self._host and self._api_key and self._instance_id)

        if self._enabled:
            auth_pair = f"{self._instance_id}:{self._api_key}"
            self._auth_encoded = base64.b64encode(auth_pair.encode()).decode()
            # Don't double-append the path if host already includes it
            if "/otlp/v1/metrics" not in self._host:
                self._url = f"{self._host}/otlp/v1/metrics"
            else:
                self._url = self._host
            logger.info(
                "Grafana OTLP exporter initialized",
                extra={"host": self._host, "instance_id": self._instance_id}
            )
        else:
            logger.info("Grafana OTLP exporter not configured - metrics will not be exported")

    def is_enabled(self) -> bool:
        """Check if exporter is properly configured."""
        return self._enabled

    def _payload(self, metrics: List[dict]) -> dict:
        return {
            "resourceMetrics": [
                {
                    "resource": {
                        "attributes": [
                            {"key": "service.name", "value": {"stringValue": self._config.app_name}},
                            {"key": "service.version", "value": {"stringValue": self._config.app_version}},
                            {"key": "deployment.environment", "value": {"stringValue": self._config.environment}},
                        ]
                    },
                    "scopeMetrics": [{"metrics": metrics}]
                }
            ]
        }

    async def _send(self, metrics: List[dict], operation: str) -> bool:
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Basic {self._auth_encoded}",
            "X-Grafana-Org-Id": str(self._instance_id)
        }

        try:
            async with httpx.AsyncClient(timeout=10.0) as client:
                response = await client.post(
                    self._url,
                    headers=headers,
                    json=self._payload(metrics)
                )
        except httpx.HTTPError as e:
            logger.error(
                "Error exporting metrics to Grafana",
                extra={"error": str(e), "operation": operation}
            )
            return False

        if response.status_code in (200, 202):
            logger.debug(
                "Metrics exported to Grafana",
                extra={"operation": operation, "status_code": response.status_code}
            )
            return True

        logger.warning(
            "Failed to export metrics to Grafana",
            extra={
                "status_code": response.status_code,
                "response": response.text[:500],
                "url": self._url
            }
        )
        return False

    async def export_llm_metrics(
        self,
        model: str,
        prompt_tokens: int,
        completion_tokens: int,
        latency_ms: int,
        operation: str = "chat_completion",
        attributes: Optional[Dict[str, str]] = None
    ) -> bool:
        """Export token usage and latency of one LLM call."""
        if not self._enabled:
            return False

        timestamp_ns = int(time.time() * 1_000_000_000)
        attrs = _attributes(self._config.app_name, {"model": model, "operation": operation}, attributes)

        metrics = [
            _gauge("llm_tokens_total", "1", "Total tokens used in LLM requests",
                   prompt_tokens + completion_tokens, timestamp_ns, attrs),
            _gauge("llm_latency_ms", "ms", "LLM request latency in milliseconds",
                   latency_ms, timestamp_ns, attrs),
        ]
        return await self._send(metrics, operation)

    async def export_search_metrics(
        self,
        latency_ms: int,
        candidates: int,
        results: int,
        attributes: Optional[Dict[str, str]] = None
    ) -> bool:
        """Export latency and result counts of one similarity search."""
        if not self._enabled:
            return False

        timestamp_ns = int(time.time() * 1_000_000_000)
        attrs = _attributes(self._config.app_name, {"operation": "similarity_search"}, attributes)

        metrics = [
            _gauge("similarity_search_latency_ms", "ms", "Similarity search latency",
                   latency_ms, timestamp_ns, attrs),
            _gauge("similarity_search_candidates", "1", "Nearest neighbours returned by the vector store",
                   candidates, timestamp_ns, attrs),
            _gauge("similarity_search_results", "1", "Results returned after filtering",
                   results, timestamp_ns, attrs),
        ]
        return await self._send(metrics, "similarity_search")


# Global exporter instance
_grafana_exporter: Optional[GrafanaOTLPExporter] = None


def get_grafana_exporter() -> Optional[GrafanaOTLPExporter]:
    """Get or create global Grafana exporter instance."""
    global _grafana_exporter
    if _grafana_exporter is None:
        _grafana_exporter = GrafanaOTLPExporter()
    return _grafana_exporter


def init_grafana_exporter(
    host: str,
    api_key: str,
    instance_id: str,
    config: Optional[Settings] = None
) -> GrafanaOTLPExporter:
    """Initialize Grafana exporter with credentials."""
    global _grafana_exporter
    _grafana_exporter = GrafanaOTLPExporter(
        host=host,
        api_key=api_key,
        instance_id=instance_id,
        config=config
    )
    return _grafana_exporter
