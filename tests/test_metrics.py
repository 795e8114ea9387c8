"""
Tests for the Prometheus collector.

Each test builds its own T2AMetrics so counts start at zero.
"""
from t2a.core.metrics import T2AMetrics


def test_record_request_success():
    m = T2AMetrics()
    m.record_request("tts", "success", duration=0.8, fmt="mp3", audio_bytes=1000)
    m.record_request("tts", "success", duration=1.2, fmt="mp3", audio_bytes=500)
    assert m.sample("t2a_requests_total", {"endpoint": "tts", "status": "success"}) == 2
    assert m.sample("t2a_audio_bytes_total", {"format": "mp3"}) == 1500
    assert m.sample("t2a_pipeline_duration_seconds_count", {"format": "mp3"}) == 2


def test_record_request_error_has_no_duration():
    m = T2AMetrics()
    m.record_request("save", "error")
    assert m.sample("t2a_requests_total", {"endpoint": "save", "status": "error"}) == 1
    assert m.sample("t2a_pipeline_duration_seconds_count", {"format": "mp3"}) == 0


def test_release_and_fallback_counters():
    m = T2AMetrics()
    m.record_release(3)
    m.record_release(0)
    m.record_duration_fallback("default")
    assert m.sample("t2a_artifacts_released_total") == 3
    assert m.sample("t2a_duration_fallbacks_total", {"source": "default"}) == 1
    assert m.sample("t2a_duration_fallbacks_total", {"source": "header"}) == 0


def test_housekeeping_and_index():
    m = T2AMetrics()
    m.record_housekeeping("saved_audio", 4)
    m.record_housekeeping("temp", 0)
    m.set_sequence_index(17)
    assert m.sample("t2a_housekeeping_removed_total", {"directory": "saved_audio"}) == 4
    assert m.sample("t2a_sequence_index") == 17


def test_exposition_format():
    m = T2AMetrics()
    m.record_request("complete", "success", duration=0.3, fmt="wav", audio_bytes=10)
    content, content_type = m.get_metrics_response()
    text = content.decode("utf-8")
    assert content_type.startswith("text/plain")
    assert 't2a_requests_total{endpoint="complete",status="success"} 1.0' in text
    assert "t2a_pipeline_duration_seconds_bucket" in text
