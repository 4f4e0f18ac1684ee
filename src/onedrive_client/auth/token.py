"""OAuth2 credential holder with refresh_token renewal against Live Connect."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Any
from urllib.parse import urlencode

from onedrive_client.api.transport import HttpTransport
from onedrive_client.config import DEFAULT_TOKEN_URL
from onedrive_client.errors import OneDriveError, TokenRefreshError

if TYPE_CHECKING:
    from onedrive_client.config import ClientConfig

logger = logging.getLogger(__name__)

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"


def utc_now() -> datetime:
    """Default clock: the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


class OneDriveAuth:
    """Holds client registration and token state; hands out valid access tokens.

    All mutation happens inside ``valid_token`` under a lock, so concurrent
    callers observing an expired token trigger a single refresh.
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
        refresh_token: str,
        access_token: str = "",
        expires_at: datetime | None = None,
        token_url: str = DEFAULT_TOKEN_URL,
        transport: HttpTransport | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        """Initialise the credential holder.

        Args:
            client_id: Live Connect application (client) ID.
            client_secret: Live Connect application secret.
            redirect_uri: Redirect URI registered for the application.
            refresh_token: Long-lived token used to mint access tokens.
            access_token: Current access token, if one is already known.
            expires_at: Expiry of ``access_token``; None means already expired.
            token_url: OAuth token endpoint.
            transport: Transport used for the token POST.
            clock: Returns the current time as an aware datetime.
        """
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.access_token = access_token
        self.refresh_token = refresh_token
        self.expires_at = expires_at or datetime.fromtimestamp(0, timezone.utc)
        self._token_url = token_url
        self._transport = transport or HttpTransport()
        self._clock = clock
        self._lock = threading.Lock()

    def valid_token(self) -> str:
        """Return a currently valid access token, refreshing it if expired.

        Returns:
            Access token string.

        Raises:
            TokenRefreshError: If the refresh exchange fails. Stored
                credentials are left unchanged.
        """
        with self._lock:
            if self._clock() > self.expires_at:
                self._refresh()
            return self.access_token

    def auth_header(self) -> dict[str, str]:
        """Return the Authorization header for a valid bearer token."""
        return {"Authorization": f"Bearer {self.valid_token()}"}

    def _refresh(self) -> None:
        """Exchange the refresh token for a new access token. Caller holds the lock."""
        logger.info("[_refresh] access token expired; refreshing; client_id:%s", self.client_id)
        form = urlencode(
            {
                "grant_type": "refresh_token",
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "redirect_uri": self.redirect_uri,
                "refresh_token": self.refresh_token,
            }
        ).encode("ascii")
        try:
            result = self._transport.request_json(
                "POST",
                full_url=self._token_url,
                headers={"Content-Type": FORM_CONTENT_TYPE, "Accept": "application/json"},
                body=form,
                expected_status=(200,),
            )
        except OneDriveError as exc:
            logger.error("[_refresh] token refresh failed; error:%s", exc)
            raise TokenRefreshError(f"Token refresh failed: {exc}") from exc

        access_token, expires_in, refresh_token = _parse_token_response(result)
        self.access_token = access_token
        self.expires_at = self._clock() + timedelta(seconds=expires_in)
        if refresh_token:
            self.refresh_token = refresh_token
        logger.info("[_refresh] access token refreshed; expires_at:%s", self.expires_at.isoformat())


def _parse_token_response(result: Any) -> tuple[str, int, str | None]:
    """Validate a token endpoint response before any state is touched."""
    if not isinstance(result, dict):
        raise TokenRefreshError("Token refresh failed: response is not a JSON object")
    access_token = result.get("access_token")
    expires_in = result.get("expires_in")
    if not isinstance(access_token, str) or not access_token:
        logger.error("[_refresh] token response has no access_token")
        raise TokenRefreshError("Token refresh failed: response has no access_token")
    if isinstance(expires_in, str) and expires_in.isdigit():
        expires_in = int(expires_in)
    if not isinstance(expires_in, int) or isinstance(expires_in, bool):
        logger.error("[_refresh] token response has no integer expires_in")
        raise TokenRefreshError("Token refresh failed: response has no integer expires_in")
    refresh_token = result.get("refresh_token")
    return access_token, expires_in, refresh_token if isinstance(refresh_token, str) else None


def auth_from_config(config: ClientConfig, transport: HttpTransport | None = None) -> OneDriveAuth:
    """Construct a OneDriveAuth from client configuration.

    Args:
        config: Client configuration instance.
        transport: Optional transport for the token POST; defaults to one
            honouring ``config.timeout_seconds``.

    Returns:
        Configured OneDriveAuth instance.
    """
    return OneDriveAuth(
        client_id=config.client_id,
        client_secret=config.client_secret,
        redirect_uri=config.redirect_uri,
        refresh_token=config.refresh_token,
        access_token=config.access_token,
        expires_at=datetime.fromtimestamp(config.expires_at, timezone.utc),
        token_url=config.token_url,
        transport=transport or HttpTransport(timeout=config.timeout_seconds),
    )
