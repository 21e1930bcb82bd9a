"""Integration tests for the OAuth flow through the HTTP application."""

# pylint: disable=redefined-outer-name

import time
from pathlib import Path
from typing import Generator
from unittest.mock import AsyncMock, MagicMock, patch
from urllib.parse import parse_qs, urlparse

import httpx
import pytest
from fastapi.testclient import TestClient

from smartthings_oauth.src.api import build_coordinator, create_app
from smartthings_oauth.src.oauth import (
    ConfigurationError,
    FileTokenStore,
    FlowCoordinator,
    MemoryTokenStore,
    OAuthClient,
    OAuthConfig,
    RandomSourceError,
    StateRegistry,
    TokenRecord,
)
from smartthings_oauth.src.service_client import Device, SmartThingsAPIError
from smartthings_oauth.src.settings import Settings


@pytest.fixture
def store() -> MemoryTokenStore:
    return MemoryTokenStore()


@pytest.fixture
def coordinator(store: MemoryTokenStore) -> FlowCoordinator:
    config = OAuthConfig(
        client_id="test_client",
        client_secret="test_secret",
        redirect_url="http://testserver/callback",
        authorization_endpoint="https://auth.example.com/oauth/authorize",
        token_endpoint="https://auth.example.com/oauth/token",
    )
    return FlowCoordinator(OAuthClient(config, store), StateRegistry(ttl_seconds=600))


@pytest.fixture
def client(coordinator: FlowCoordinator) -> Generator[TestClient, None, None]:
    with TestClient(create_app(coordinator)) as test_client:
        yield test_client


@pytest.fixture
def token_endpoint() -> Generator[MagicMock, None, None]:
    """Patch the token endpoint to return a valid token response."""
    with patch("httpx.AsyncClient") as mock_client_class:
        mock_client = MagicMock()
        mock_client.post = AsyncMock(
            return_value=httpx.Response(
                200,
                json={
                    "access_token": "test_access_token",
                    "refresh_token": "test_refresh_token",
                    "expires_in": 86399,
                    "token_type": "bearer",
                },
            )
        )
        mock_client.__aenter__ = AsyncMock(return_value=mock_client)
        mock_client.__aexit__ = AsyncMock(return_value=None)
        mock_client_class.return_value = mock_client
        yield mock_client


def _login_state(client: TestClient) -> str:
    response = client.get("/login", follow_redirects=False)
    assert response.status_code == 307
    location = response.headers["location"]
    assert location.startswith("https://auth.example.com/oauth/authorize?")
    return parse_qs(urlparse(location).query)["state"][0]


class TestOAuthFlowIntegration:
    """End-to-end tests for login, callback, status and logout."""

    def test_home_unauthenticated(self, client: TestClient) -> None:
        response = client.get("/")

        assert response.status_code == 200
        assert "Not Authenticated" in response.text
        assert 'href="/login"' in response.text

    def test_status_unauthenticated(self, client: TestClient) -> None:
        response = client.get("/status")

        assert response.status_code == 200
        assert response.json() == {"authenticated": False}

    def test_full_flow_and_replay(
        self, client: TestClient, token_endpoint: MagicMock, store: MemoryTokenStore
    ) -> None:
        state = _login_state(client)

        response = client.get(
            "/callback", params={"state": state, "code": "xyz"}, follow_redirects=False
        )

        assert response.status_code == 307
        assert response.headers["location"] == "/"
        record = store.get()
        assert record is not None
        assert record.access_token == "test_access_token"
        assert client.get("/status").json() == {"authenticated": True}
        assert 'href="/logout"' in client.get("/").text

        replay = client.get(
            "/callback", params={"state": state, "code": "xyz"}, follow_redirects=False
        )

        assert replay.status_code == 400
        assert "Invalid state parameter" in replay.text
        assert token_endpoint.post.call_count == 1

    def test_callback_with_upstream_error(
        self, client: TestClient, token_endpoint: MagicMock
    ) -> None:
        state = _login_state(client)

        response = client.get(
            "/callback",
            params={
                "state": state,
                "error": "access_denied",
                "error_description": "User denied access",
            },
            follow_redirects=False,
        )

        assert response.status_code == 400
        assert "access_denied" in response.text
        assert "User denied access" in response.text
        token_endpoint.post.assert_not_called()

    def test_callback_with_unknown_state(
        self, client: TestClient, token_endpoint: MagicMock
    ) -> None:
        response = client.get(
            "/callback", params={"state": "abc123", "code": "xyz"}, follow_redirects=False
        )

        assert response.status_code == 400
        token_endpoint.post.assert_not_called()

    def test_callback_without_code(
        self, client: TestClient, token_endpoint: MagicMock
    ) -> None:
        state = _login_state(client)

        response = client.get(
            "/callback", params={"state": state}, follow_redirects=False
        )

        assert response.status_code == 400
        assert "Missing authorization code" in response.text
        token_endpoint.post.assert_not_called()

    def test_callback_with_rejected_code(
        self, client: TestClient, token_endpoint: MagicMock
    ) -> None:
        token_endpoint.post.return_value = httpx.Response(
            400, json={"error": "invalid_grant", "error_description": "Code expired"}
        )
        state = _login_state(client)

        response = client.get(
            "/callback", params={"state": state, "code": "xyz"}, follow_redirects=False
        )

        assert response.status_code == 502
        assert "invalid_grant" in response.text
        assert client.get("/status").json() == {"authenticated": False}

    def test_error_page_escapes_upstream_message(self, client: TestClient) -> None:
        response = client.get(
            "/callback",
            params={"error": "<script>alert(1)</script>"},
            follow_redirects=False,
        )

        assert response.status_code == 400
        assert "<script>" not in response.text
        assert "&lt;script&gt;" in response.text

    def test_login_random_source_failure(
        self, client: TestClient, coordinator: FlowCoordinator
    ) -> None:
        with patch.object(
            coordinator.state_registry,
            "issue",
            side_effect=RandomSourceError("Failed to generate state"),
        ):
            response = client.get("/login", follow_redirects=False)

        assert response.status_code == 500
        assert "Failed to generate state" in response.text

    def test_logout(self, client: TestClient, store: MemoryTokenStore) -> None:
        store.put(TokenRecord(access_token="a", expires_at=time.time() + 3600))
        assert client.get("/status").json() == {"authenticated": True}

        response = client.get("/logout", follow_redirects=False)

        assert response.status_code == 307
        assert response.headers["location"] == "/"
        assert store.get() is None
        assert client.get("/status").json() == {"authenticated": False}

    def test_logout_when_empty(self, client: TestClient) -> None:
        response = client.get("/logout", follow_redirects=False)

        assert response.status_code == 307

    def test_metrics_endpoint(self, client: TestClient) -> None:
        client.get("/status")

        response = client.get("/metrics")

        assert response.status_code == 200
        assert "smartthings_oauth_endpoint_duration_seconds" in response.text


class TestDevicesEndpoint:
    """Tests for the device listing page."""

    def test_redirects_to_login_when_unauthenticated(self, client: TestClient) -> None:
        response = client.get("/devices", follow_redirects=False)

        assert response.status_code == 307
        assert response.headers["location"] == "/login"

    def test_lists_devices(
        self, coordinator: FlowCoordinator, store: MemoryTokenStore
    ) -> None:
        store.put(TokenRecord(access_token="test_access_token", expires_at=time.time() + 3600))
        devices_client = MagicMock()
        devices_client.list_devices = AsyncMock(
            return_value=[Device(device_id="dev-1", label="Kitchen Light", type="ZIGBEE")]
        )
        factory = MagicMock(return_value=devices_client)
        coordinator.devices_client_factory = factory

        with TestClient(create_app(coordinator)) as client:
            response = client.get("/devices")

        assert response.status_code == 200
        assert "Kitchen Light" in response.text
        assert "dev-1" in response.text
        factory.assert_called_once_with("test_access_token")

    def test_lists_devices_with_null_fields(
        self, coordinator: FlowCoordinator, store: MemoryTokenStore
    ) -> None:
        store.put(TokenRecord(access_token="a", expires_at=time.time() + 3600))
        devices_client = MagicMock()
        devices_client.list_devices = AsyncMock(
            return_value=[
                Device.from_dict(
                    {"deviceId": "dev-1", "label": None, "name": "switch", "type": None}
                )
            ]
        )
        coordinator.devices_client_factory = MagicMock(return_value=devices_client)

        with TestClient(create_app(coordinator)) as client:
            response = client.get("/devices")

        assert response.status_code == 200
        assert "switch" in response.text

    def test_device_api_failure(
        self, coordinator: FlowCoordinator, store: MemoryTokenStore
    ) -> None:
        store.put(TokenRecord(access_token="a", expires_at=time.time() + 3600))
        devices_client = MagicMock()
        devices_client.list_devices = AsyncMock(
            side_effect=SmartThingsAPIError("API error: Status 401", status=401)
        )
        coordinator.devices_client_factory = MagicMock(return_value=devices_client)

        with TestClient(create_app(coordinator)) as client:
            response = client.get("/devices")

        assert response.status_code == 502
        assert "Failed to list devices" in response.text


class TestBuildCoordinator:
    """Tests for building the coordinator from settings."""

    def test_missing_credentials(self) -> None:
        cfg = Settings(SMARTTHINGS_CLIENT_ID="", SMARTTHINGS_CLIENT_SECRET="")

        with pytest.raises(ConfigurationError, match="SMARTTHINGS_CLIENT_ID"):
            build_coordinator(cfg)

    def test_builds_file_backed_coordinator(self, tmp_path: Path) -> None:
        cfg = Settings(
            SMARTTHINGS_CLIENT_ID="id",
            SMARTTHINGS_CLIENT_SECRET="secret",
            TOKEN_STORE_PATH=str(tmp_path / "tokens.json"),
            OAUTH_SCOPES="r:devices:*",
        )

        coordinator = build_coordinator(cfg)

        assert isinstance(coordinator.oauth_client.token_store, FileTokenStore)
        assert coordinator.oauth_client.config.scopes == ("r:devices:*",)
        assert coordinator.status() is False


class TestCorruptTokenFile:
    """A damaged token file reads as logged out instead of failing requests."""

    @pytest.mark.parametrize(
        "contents",
        [
            b"\xff\xfe{garbage",
            b'{"access_token": "a", "expires_at": "soon"}',
            b'{"access_token": "a", "expires_at": NaN}',
        ],
    )
    def test_status_reports_unauthenticated(self, tmp_path: Path, contents: bytes) -> None:
        path = tmp_path / "tokens.json"
        path.write_bytes(contents)
        config = OAuthConfig(
            client_id="test_client",
            client_secret="test_secret",
            redirect_url="http://testserver/callback",
            authorization_endpoint="https://auth.example.com/oauth/authorize",
            token_endpoint="https://auth.example.com/oauth/token",
        )
        coordinator = FlowCoordinator(OAuthClient(config, FileTokenStore(path)))

        assert coordinator.status() is False
        with TestClient(create_app(coordinator)) as client:
            status = client.get("/status")
            home = client.get("/")
            devices = client.get("/devices", follow_redirects=False)

        assert status.status_code == 200
        assert status.json() == {"authenticated": False}
        assert home.status_code == 200
        assert "Not Authenticated" in home.text
        assert devices.status_code == 307
        assert devices.headers["location"] == "/login"
