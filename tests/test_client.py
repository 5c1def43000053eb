"""
Tests for relserve.client module.

Tests the admin HTTP client including:
- Bearer token and JSON bodies
- 204 handling for update checks
- Error mapping to NetworkError
"""

from __future__ import annotations

import pytest
import requests
import requests_mock

from relserve.client import AdminClient
from relserve.exceptions import NetworkError

BASE = "https://updates.example.com"


class TestAdminClient:
    """Tests for AdminClient requests."""

    def test_refresh_sends_token(self):
        """Test that admin calls carry the bearer token."""
        client = AdminClient(BASE + "/", token="s3cret")

        with requests_mock.Mocker() as m:
            m.put(
                f"{BASE}/api/1/releases/refresh",
                json={"status": "ok", "release_count": 3, "partition_count": 2},
            )

            result = client.refresh()

            assert result["release_count"] == 3
            assert m.last_request.headers["Authorization"] == "Bearer s3cret"

    def test_no_token_no_header(self):
        """Test that no Authorization header is sent without a token."""
        client = AdminClient(BASE)

        with requests_mock.Mocker() as m:
            m.put(f"{BASE}/api/1/releases/refresh", json={"status": "ok"})
            client.refresh()

            assert "Authorization" not in m.last_request.headers

    def test_publish_body(self):
        """Test the publish request body."""
        client = AdminClient(BASE, token="t")

        with requests_mock.Mocker() as m:
            m.post(f"{BASE}/api/1/releases/dev/osx", json={"version": "0.6.0"})

            client.publish("dev", "osx", "0.6.0", "New tab page", preview=True)

            assert m.last_request.json() == {
                "version": "0.6.0",
                "notes": "New tab page",
                "preview": True,
            }

    def test_publish_with_url(self):
        """Test that url is only sent when given."""
        client = AdminClient(BASE, token="t")

        with requests_mock.Mocker() as m:
            m.post(f"{BASE}/api/1/releases/dev/osx", json={})

            client.publish("dev", "osx", "0.6.0", "n", url="https://x/y.dmg")

            assert m.last_request.json()["url"] == "https://x/y.dmg"

    def test_promote_paths(self):
        """Test single-platform and all-platform promote URLs."""
        client = AdminClient(BASE, token="t")

        with requests_mock.Mocker() as m:
            single = m.put(f"{BASE}/api/1/releases/dev/osx/0.6.0/promote", json={"status": "ok"})
            every = m.put(f"{BASE}/api/1/releases/dev/0.6.0/promote", json={"status": "ok"})

            client.promote("dev", "osx", "0.6.0", notes="foo the bar")
            client.promote_all_platforms("dev", "0.6.0")

            assert single.last_request.json() == {"notes": "foo the bar"}
            assert every.last_request.json() == {"notes": None}

    def test_check_returns_payload(self):
        """Test that a 200 update check returns the payload."""
        client = AdminClient(BASE)

        with requests_mock.Mocker() as m:
            m.get(f"{BASE}/1/releases/dev/0.5.0/osx", json={"version": "0.6.0"})

            offer = client.check("dev", "osx", "0.5.0", accept_preview=True)

            assert offer == {"version": "0.6.0"}
            assert m.last_request.qs == {"accept_preview": ["true"]}

    def test_check_no_content(self):
        """Test that 204 means no update."""
        client = AdminClient(BASE)

        with requests_mock.Mocker() as m:
            m.get(f"{BASE}/1/releases/dev/0.6.0/osx", status_code=204)

            assert client.check("dev", "osx", "0.6.0") is None


class TestAdminClientErrors:
    """Tests for error mapping."""

    def test_http_error_carries_status_and_detail(self):
        """Test that server errors become NetworkError with the detail."""
        client = AdminClient(BASE, token="t")

        with requests_mock.Mocker() as m:
            m.put(
                f"{BASE}/api/1/releases/dev/0.6.0/promote",
                status_code=400,
                json={"detail": "Release 0.6.0 in channel dev is already promoted"},
            )

            with pytest.raises(NetworkError) as exc_info:
                client.promote_all_platforms("dev", "0.6.0")

        assert exc_info.value.status_code == 400
        assert "already promoted" in str(exc_info.value)

    def test_non_json_error_body(self):
        """Test that plain-text error bodies are reported."""
        client = AdminClient(BASE, token="t")

        with requests_mock.Mocker() as m:
            m.put(f"{BASE}/api/1/releases/refresh", status_code=502, text="Bad Gateway")

            with pytest.raises(NetworkError, match="502 Bad Gateway"):
                client.refresh()

    def test_connection_error(self):
        """Test that connection failures become NetworkError without a status."""
        client = AdminClient(BASE)

        with requests_mock.Mocker() as m:
            m.put(f"{BASE}/api/1/releases/refresh", exc=requests.exceptions.ConnectionError)

            with pytest.raises(NetworkError) as exc_info:
                client.refresh()

        assert exc_info.value.status_code is None
