"""
Tests for UUIDv7 request ID generation and handling.
"""

import time

import uuid_utils


class TestRequestID:
    """Test UUIDv7 request ID generation and usage."""

    def test_request_id_generated(self, client, mock_post):
        """Test that every request gets a UUIDv7 request ID."""
        response = client.post("/", json={"message": "x"})
        assert "X-Request-ID" in response.headers
        request_id = response.headers["X-Request-ID"]
        assert len(request_id) == 36  # UUID format: 8-4-4-4-12
        assert request_id.count("-") == 4

    def test_request_id_is_uuid7(self, client, mock_post):
        """Test that request ID is a valid UUIDv7."""
        response = client.post("/", json={"message": "x"})
        uuid_obj = uuid_utils.UUID(response.headers["X-Request-ID"])
        assert uuid_obj.version == 7

    def test_request_id_unique(self, client, mock_post):
        """Test that each request gets a unique ID."""
        ids = set()
        for _ in range(10):
            response = client.post("/", json={"message": "x"})
            ids.add(response.headers["X-Request-ID"])

        assert len(ids) == 10

    def test_request_id_time_sorted(self, client, mock_post):
        """Test that UUIDv7 IDs are time-sortable."""
        ids = []
        for _ in range(5):
            response = client.post("/", json={"message": "x"})
            ids.append(response.headers["X-Request-ID"])
            time.sleep(0.002)  # Small delay to ensure different timestamps

        assert ids == sorted(ids)

    def test_request_id_on_error_responses(self, client, mock_post, graylog_response):
        """Test that request ID is present on 400, 405 and 502 responses."""
        assert "X-Request-ID" in client.get("/").headers
        assert "X-Request-ID" in client.post("/", data="nope").headers

        mock_post.return_value = graylog_response(503, "unavailable")
        assert "X-Request-ID" in client.post("/", json={}).headers
