"""Unit tests for auth/token.py — expiry check and refresh_token exchange."""

import threading
from datetime import datetime, timedelta, timezone
from http.client import BadStatusLine
from unittest.mock import MagicMock, patch
from urllib.parse import parse_qs

import pytest

from onedrive_client.api.transport import HttpTransport
from onedrive_client.auth.token import OneDriveAuth, auth_from_config
from onedrive_client.config import ClientConfig
from onedrive_client.errors import ApiError, DecodeError, TokenRefreshError, TransportError

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

NOW = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)


def _make_auth(
    *,
    expires_at: datetime,
    transport: MagicMock | None = None,
    access_token: str = "old-access",
) -> tuple[OneDriveAuth, MagicMock]:
    """Return (auth, mock_transport) with a fixed clock at NOW."""
    mock_transport = transport or MagicMock(spec=HttpTransport)
    auth = OneDriveAuth(
        client_id="cid",
        client_secret="csecret",
        redirect_uri="https://example.com/callback",
        refresh_token="refresh-1",
        access_token=access_token,
        expires_at=expires_at,
        transport=mock_transport,
        clock=lambda: NOW,
    )
    return auth, mock_transport


# ---------------------------------------------------------------------------
# valid_token tests
# ---------------------------------------------------------------------------


class TestValidTokenNotExpired:
    def test_returns_stored_token_without_refresh(self) -> None:
        auth, transport = _make_auth(expires_at=NOW + timedelta(minutes=5))

        assert auth.valid_token() == "old-access"
        transport.request_json.assert_not_called()

    def test_expiry_equal_to_now_is_still_valid(self) -> None:
        auth, transport = _make_auth(expires_at=NOW)

        assert auth.valid_token() == "old-access"
        transport.request_json.assert_not_called()


class TestValidTokenExpired:
    def test_refreshes_exactly_once(self) -> None:
        auth, transport = _make_auth(expires_at=NOW - timedelta(seconds=1))
        transport.request_json.return_value = {
            "token_type": "bearer",
            "access_token": "new-access",
            "expires_in": 3600,
        }

        assert auth.valid_token() == "new-access"
        assert auth.valid_token() == "new-access"

        transport.request_json.assert_called_once()
        assert auth.expires_at == NOW + timedelta(seconds=3600)

    def test_posts_refresh_token_form(self) -> None:
        auth, transport = _make_auth(expires_at=NOW - timedelta(hours=1))
        transport.request_json.return_value = {"access_token": "new-access", "expires_in": 3600}

        auth.valid_token()

        args, kwargs = transport.request_json.call_args
        assert args == ("POST",)
        assert kwargs["full_url"] == "https://login.live.com/oauth20_token.srf"
        assert kwargs["headers"]["Content-Type"] == "application/x-www-form-urlencoded"
        assert kwargs["expected_status"] == (200,)
        form = parse_qs(kwargs["body"].decode("ascii"))
        assert form == {
            "grant_type": ["refresh_token"],
            "client_id": ["cid"],
            "client_secret": ["csecret"],
            "redirect_uri": ["https://example.com/callback"],
            "refresh_token": ["refresh-1"],
        }

    def test_stores_rotated_refresh_token(self) -> None:
        auth, transport = _make_auth(expires_at=NOW - timedelta(hours=1))
        transport.request_json.return_value = {
            "access_token": "new-access",
            "expires_in": 3600,
            "refresh_token": "refresh-2",
        }

        auth.valid_token()

        assert auth.refresh_token == "refresh-2"

    def test_keeps_refresh_token_when_not_rotated(self) -> None:
        auth, transport = _make_auth(expires_at=NOW - timedelta(hours=1))
        transport.request_json.return_value = {"access_token": "new-access", "expires_in": 60}

        auth.valid_token()

        assert auth.refresh_token == "refresh-1"

    def test_default_expiry_forces_refresh(self) -> None:
        transport = MagicMock(spec=HttpTransport)
        transport.request_json.return_value = {"access_token": "fresh", "expires_in": 60}
        auth = OneDriveAuth("cid", "cs", "uri", "rt", transport=transport, clock=lambda: NOW)

        assert auth.valid_token() == "fresh"


class TestValidTokenRefreshFailure:
    @pytest.mark.parametrize(
        "error",
        [
            ApiError(400, "invalid_grant"),
            TransportError("connection refused"),
            DecodeError("not json"),
        ],
    )
    def test_transport_errors_leave_state_unchanged(self, error: Exception) -> None:
        expired = NOW - timedelta(minutes=1)
        auth, transport = _make_auth(expires_at=expired)
        transport.request_json.side_effect = error

        with pytest.raises(TokenRefreshError) as exc_info:
            auth.valid_token()

        assert exc_info.value.__cause__ is error
        assert auth.access_token == "old-access"
        assert auth.refresh_token == "refresh-1"
        assert auth.expires_at == expired

    @pytest.mark.parametrize(
        "body",
        [
            {"expires_in": 3600},
            {"access_token": "", "expires_in": 3600},
            {"access_token": "new-access"},
            {"access_token": "new-access", "expires_in": "soon"},
            ["access_token"],
        ],
    )
    def test_malformed_body_leaves_state_unchanged(self, body: object) -> None:
        expired = NOW - timedelta(minutes=1)
        auth, transport = _make_auth(expires_at=expired)
        transport.request_json.return_value = body

        with pytest.raises(TokenRefreshError):
            auth.valid_token()

        assert auth.access_token == "old-access"
        assert auth.expires_at == expired

    def test_malformed_status_line_raises_token_refresh_error(self) -> None:
        expired = NOW - timedelta(minutes=1)
        auth, _ = _make_auth(
            expires_at=expired,
            transport=HttpTransport(),  # type: ignore[arg-type]
        )

        with (
            patch(
                "onedrive_client.api.transport.urllib_request.urlopen",
                side_effect=BadStatusLine("garbage"),
            ),
            pytest.raises(TokenRefreshError) as exc_info,
        ):
            auth.valid_token()

        assert isinstance(exc_info.value.__cause__, TransportError)
        assert auth.access_token == "old-access"
        assert auth.expires_at == expired

    def test_next_call_retries_after_failure(self) -> None:
        auth, transport = _make_auth(expires_at=NOW - timedelta(minutes=1))
        transport.request_json.side_effect = [
            ApiError(503, "Service Unavailable"),
            {"access_token": "new-access", "expires_in": 3600},
        ]

        with pytest.raises(TokenRefreshError):
            auth.valid_token()
        assert auth.valid_token() == "new-access"
        assert transport.request_json.call_count == 2

    def test_numeric_string_expires_in_accepted(self) -> None:
        auth, transport = _make_auth(expires_at=NOW - timedelta(minutes=1))
        transport.request_json.return_value = {"access_token": "new-access", "expires_in": "120"}

        auth.valid_token()

        assert auth.expires_at == NOW + timedelta(seconds=120)


class TestConcurrentRefresh:
    def test_concurrent_callers_refresh_once(self) -> None:
        auth, transport = _make_auth(expires_at=NOW - timedelta(minutes=1))
        transport.request_json.return_value = {"access_token": "new-access", "expires_in": 3600}

        results: list[str] = []
        threads = [
            threading.Thread(target=lambda: results.append(auth.valid_token())) for _ in range(8)
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert results == ["new-access"] * 8
        transport.request_json.assert_called_once()


# ---------------------------------------------------------------------------
# auth_header / auth_from_config tests
# ---------------------------------------------------------------------------


class TestAuthHeader:
    def test_bearer_header(self) -> None:
        auth, _ = _make_auth(expires_at=NOW + timedelta(hours=1), access_token="tok-123")
        assert auth.auth_header() == {"Authorization": "Bearer tok-123"}


class TestAuthFromConfig:
    def test_copies_config_fields(self) -> None:
        config = ClientConfig(
            client_id="cid",
            client_secret="cs",
            redirect_uri="https://example.com/cb",
            refresh_token="rt",
            access_token="at",
            expires_at=1_700_000_000,
            token_url="https://login.example.com/token",
        )
        auth = auth_from_config(config)

        assert auth.client_id == "cid"
        assert auth.client_secret == "cs"
        assert auth.redirect_uri == "https://example.com/cb"
        assert auth.refresh_token == "rt"
        assert auth.access_token == "at"
        assert auth.expires_at == datetime.fromtimestamp(1_700_000_000, timezone.utc)

    def test_refresh_uses_configured_token_url(self) -> None:
        config = ClientConfig(
            client_id="cid",
            client_secret="cs",
            redirect_uri="uri",
            refresh_token="rt",
            token_url="https://login.example.com/token",
        )
        transport = MagicMock(spec=HttpTransport)
        transport.request_json.return_value = {"access_token": "fresh", "expires_in": 60}

        auth = auth_from_config(config, transport=transport)
        auth.valid_token()

        url = transport.request_json.call_args.kwargs["full_url"]
        assert url == "https://login.example.com/token"
