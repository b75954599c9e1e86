"""Shared test fixtures for the stream_copier test suite."""

import pytest


@pytest.fixture()
def sample_stream_records():
    """Return ``streams`` query records as the API sends them."""
    return [
        {"name": "ORDERS", "subjects": ["orders.>"], "messages": 1250},
        {"name": "ORDERS_REPLAY", "subjects": ["replay.orders.>"], "messages": 0},
        {"name": "KV_sessions", "subjects": ["$KV.sessions.>"], "messages": 17},
    ]


@pytest.fixture()
def sample_message_records():
    """Return ``streamMessages`` records for sequences 10, 11 and 12."""
    return [
        {
            "sequence": 10,
            "subject": "orders.created",
            "data": '{"id": 1}',
            "published": "2024-05-01T10:00:00Z",
        },
        {
            "sequence": 11,
            "subject": "orders.updated",
            "data": '{"id": 1, "state": "paid"}',
            "published": "2024-05-01T10:00:01Z",
        },
        {
            "sequence": 12,
            "subject": "orders.shipped",
            "data": '{"id": 1, "carrier": "ups"}',
            "published": "2024-05-01T10:00:02Z",
        },
    ]


@pytest.fixture()
def mock_config():
    """Return a config dict with all defaults populated."""
    return {
        "api_url": "http://streams.example.com/query",
        "api_token": "",
        "request_timeout": 30,
        "publish_timeout": 10,
        "fetch_retries": 3,
        "retry_delay": 1,
        "default_max_messages": 100,
        "progress_log_interval": 10,
        "log_tail_size": 50,
        "hidden_stream_prefixes": ["KV_"],
    }
