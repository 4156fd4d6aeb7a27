from persona_gateway.metrics import GatewayMetrics


def test_record_stream_and_render() -> None:
    metrics = GatewayMetrics()
    metrics.record_stream("gemini", "gemini-2.0-flash", "done", latency_s=0.3, content_events=4)

    assert metrics.counter_value(
        "pgw_requests_total", {"provider": "gemini", "outcome": "done", "status": "200"}
    ) == 1.0
    rendered = metrics.render()
    assert "# TYPE pgw_requests_total counter" in rendered
    assert 'pgw_content_events_total{model="gemini-2.0-flash",provider="gemini"} 4.0' in rendered
    assert 'pgw_stream_duration_seconds_bucket{le="0.25",provider="gemini"} 0' in rendered
    assert 'pgw_stream_duration_seconds_bucket{le="0.5",provider="gemini"} 1' in rendered
    assert 'pgw_stream_duration_seconds_count{provider="gemini"} 1' in rendered


def test_record_rejection() -> None:
    metrics = GatewayMetrics()
    metrics.record_rejection(401, "auth_missing")
    metrics.record_rejection(401, "auth_missing")
    assert metrics.counter_value("pgw_rejections_total", {"code": "auth_missing"}) == 2.0
    assert metrics.counter_value(
        "pgw_requests_total", {"provider": "none", "outcome": "rejected", "status": "401"}
    ) == 2.0
