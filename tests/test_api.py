"""Tests for the FastAPI application endpoints.

This module contains integration tests for the SeedRec API endpoints that
do not need a trained model, plus the logging and metrics helpers they use.
"""

import json
import logging

from fastapi.testclient import TestClient

from seedrec.api.logging_config import JSONFormatter
from seedrec.api.main import app
from seedrec.api.metrics import MetricsService, metrics_service

# Create test client
client = TestClient(app)


def test_ping_endpoint():
    """Test that the /ping endpoint returns correct status and JSON."""
    response = client.get("/ping")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_responses_carry_request_id():
    """Every response gets an X-Request-ID header from the logging middleware."""
    response = client.get("/ping")

    assert response.headers.get("X-Request-ID")
    assert response.headers["X-Request-ID"] != client.get("/ping").headers["X-Request-ID"]


def test_status_endpoint():
    """Test that the /status endpoint returns model status information."""
    response = client.get("/status")

    assert response.status_code == 200
    data = response.json()

    # Check required fields
    for field in (
        "model_loaded",
        "timestamp_last_loaded",
        "num_users",
        "num_items",
        "similarity_model_loaded",
    ):
        assert field in data

    # Check types
    assert isinstance(data["model_loaded"], bool)
    assert isinstance(data["num_users"], int)
    assert isinstance(data["num_items"], int)
    assert data["timestamp_last_loaded"] is None or isinstance(data["timestamp_last_loaded"], str)


def test_metrics_endpoint():
    response = client.get("/metrics")

    assert response.status_code == 200
    data = response.json()
    assert "recommendation_count" in data
    assert "average_latency_ms" in data


def test_metrics_service_is_singleton():
    assert MetricsService() is metrics_service


def test_metrics_service_records_calls():
    """Counters and latency aggregates follow the recorded calls."""
    metrics_service.reset()
    metrics_service.record_recommendation(10.0, 5)
    metrics_service.record_recommendation(30.0, 0)

    metrics = metrics_service.get_metrics()

    assert metrics["recommendation_count"] == 2
    assert metrics["empty_result_count"] == 1
    assert metrics["average_items_returned"] == 2.5
    assert metrics["average_latency_ms"] == 20.0
    assert metrics["min_latency_ms"] == 10.0
    assert metrics["max_latency_ms"] == 30.0
    metrics_service.reset()


def test_json_formatter_includes_extra_fields():
    """Structured extra fields end up in the JSON log line."""
    record = logging.LogRecord(
        name="seedrec.test",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg="Built similarity model",
        args=(),
        exc_info=None,
    )
    record.num_items = 42

    data = json.loads(JSONFormatter().format(record))

    assert data["level"] == "INFO"
    assert data["logger"] == "seedrec.test"
    assert data["message"] == "Built similarity model"
    assert data["num_items"] == 42
    assert data["timestamp"].endswith("Z")
