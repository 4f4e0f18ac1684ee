"""Client configuration, constructed directly or loaded from environment variables."""

import os
from dataclasses import dataclass

DEFAULT_API_BASE_URL = "https://apis.live.net/v5.0"
DEFAULT_TOKEN_URL = "https://login.live.com/oauth20_token.srf"


@dataclass(frozen=True)
class ClientConfig:
    """OAuth client registration and token state for one OneDrive account.

    Required fields have no defaults. ``load_config`` raises KeyError if the
    corresponding environment variable is missing. An ``expires_at`` of 0
    forces a token refresh on the first API call.
    """

    # Required
    client_id: str
    client_secret: str
    redirect_uri: str
    refresh_token: str

    # Optional token state and endpoints
    access_token: str = ""
    expires_at: int = 0
    api_base_url: str = DEFAULT_API_BASE_URL
    token_url: str = DEFAULT_TOKEN_URL
    timeout_seconds: float | None = None


def load_config() -> ClientConfig:
    """Construct a ClientConfig from environment variables.

    Required environment variables:
        ODC_CLIENT_ID: Live Connect application (client) ID.
        ODC_CLIENT_SECRET: Live Connect application secret.
        ODC_REDIRECT_URI: Redirect URI registered for the application.
        ODC_REFRESH_TOKEN: Long-lived refresh token for the account.

    Optional environment variables (with defaults):
        ODC_ACCESS_TOKEN: Previously issued access token (default: empty).
        ODC_EXPIRES_AT: Access token expiry as Unix seconds (default: 0).
        ODC_API_BASE_URL: Metadata API origin (default: https://apis.live.net/v5.0).
        ODC_TOKEN_URL: OAuth token endpoint (default: https://login.live.com/oauth20_token.srf).
        ODC_TIMEOUT_SECONDS: Socket timeout for every request (default: unset).

    Returns:
        Configured ClientConfig instance.
    """
    timeout = os.environ.get("ODC_TIMEOUT_SECONDS")
    return ClientConfig(
        client_id=os.environ["ODC_CLIENT_ID"],
        client_secret=os.environ["ODC_CLIENT_SECRET"],
        redirect_uri=os.environ["ODC_REDIRECT_URI"],
        refresh_token=os.environ["ODC_REFRESH_TOKEN"],
        access_token=os.environ.get("ODC_ACCESS_TOKEN", ""),
        expires_at=int(os.environ.get("ODC_EXPIRES_AT", "0")),
        api_base_url=os.environ.get("ODC_API_BASE_URL", DEFAULT_API_BASE_URL),
        token_url=os.environ.get("ODC_TOKEN_URL", DEFAULT_TOKEN_URL),
        timeout_seconds=float(timeout) if timeout else None,
    )
