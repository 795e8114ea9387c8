"""
Prometheus Metrics for t2a.

Metrics Exposed:
    t2a_requests_total              - Counter of requests by endpoint and status
    t2a_pipeline_duration_seconds   - Histogram of pipeline latency by format
    t2a_audio_bytes_total           - Counter of audio bytes produced by format
    t2a_artifacts_released_total    - Counter of temporary files deleted
    t2a_duration_fallbacks_total    - Counter of duration probes that fell back
    t2a_housekeeping_removed_total  - Counter of aged files removed by directory
    t2a_sequence_index              - Gauge of the last issued sequential index

Usage:
    from t2a.core.metrics import metrics

    metrics.record_request("tts", "success", duration=0.8, fmt="mp3", audio_bytes=18432)
    metrics.record_release(3)

    content, content_type = metrics.get_metrics_response()

Prometheus Scrape Config Example:
    scrape_configs:
      - job_name: 't2a'
        static_configs:
          - targets: ['localhost:3000']
        metrics_path: '/metrics'
"""
from __future__ import annotations

from typing import Optional

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)


class T2AMetrics:
    """
    Metrics collector backed by a private CollectorRegistry.

    A private registry keeps several collectors (one per test, for
    instance) from clashing on the process-global default registry.

    Example:
        >>> from t2a.core.metrics import metrics
        >>> metrics.record_request("tts", "success", 0.5)
        >>> content, _ = metrics.get_metrics_response()
    """

    def __init__(self):
        self._registry = CollectorRegistry()

        self._requests_total = Counter(
            "t2a_requests_total",
            "Total HTTP requests handled by the speech pipeline",
            ["endpoint", "status"],
            registry=self._registry,
        )
        self._pipeline_duration = Histogram(
            "t2a_pipeline_duration_seconds",
            "Synthesis + transcode + probe latency in seconds",
            ["format"],
            buckets=(0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0),
            registry=self._registry,
        )
        self._audio_bytes_total = Counter(
            "t2a_audio_bytes_total",
            "Total audio bytes produced",
            ["format"],
            registry=self._registry,
        )
        self._artifacts_released = Counter(
            "t2a_artifacts_released_total",
            "Temporary artifact files deleted",
            registry=self._registry,
        )
        self._duration_fallbacks = Counter(
            "t2a_duration_fallbacks_total",
            "Duration probes answered with a fallback value",
            ["source"],
            registry=self._registry,
        )
        self._housekeeping_removed = Counter(
            "t2a_housekeeping_removed_total",
            "Aged files removed by the housekeeping sweep",
            ["directory"],
            registry=self._registry,
        )
        self._sequence_index = Gauge(
            "t2a_sequence_index",
            "Last issued sequential file index",
            registry=self._registry,
        )

    @property
    def registry(self) -> CollectorRegistry:
        return self._registry

    def record_request(
        self,
        endpoint: str,
        status: str,
        duration: Optional[float] = None,
        fmt: Optional[str] = None,
        audio_bytes: int = 0,
    ) -> None:
        """
        Record a handled request.

        Args:
            endpoint: Short endpoint name ("tts", "complete", "save")
            status: "success" or "error"
            duration: Pipeline duration in seconds (successful requests)
            fmt: Output format ("mp3", "wav")
            audio_bytes: Size of the produced audio in bytes
        """
        self._requests_total.labels(endpoint=endpoint, status=status).inc()
        if duration is not None and fmt:
            self._pipeline_duration.labels(format=fmt).observe(duration)
        if audio_bytes > 0 and fmt:
            self._audio_bytes_total.labels(format=fmt).inc(audio_bytes)

    def record_release(self, count: int) -> None:
        if count > 0:
            self._artifacts_released.inc(count)

    def record_duration_fallback(self, source: str) -> None:
        """source is "header" (WAV header read) or "default" (configured value)."""
        self._duration_fallbacks.labels(source=source).inc()

    def record_housekeeping(self, directory: str, removed: int) -> None:
        if removed > 0:
            self._housekeeping_removed.labels(directory=directory).inc(removed)

    def set_sequence_index(self, index: int) -> None:
        self._sequence_index.set(index)

    def sample(self, name: str, labels: Optional[dict] = None) -> float:
        """Current value of one sample, 0.0 if it has not been recorded."""
        value = self._registry.get_sample_value(name, labels or {})
        return value if value is not None else 0.0

    def get_metrics_response(self) -> tuple[bytes, str]:
        """
        Get metrics in Prometheus text format.

        Returns:
            Tuple of (content_bytes, content_type)
        """
        return generate_latest(self._registry), CONTENT_TYPE_LATEST


metrics = T2AMetrics()
