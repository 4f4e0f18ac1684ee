"""Client library for the OneDrive (SkyDrive) Live Connect v5.0 REST API."""

from onedrive_client.api.client import OneDriveClient, client_from_config
from onedrive_client.api.models import ByteRange, NodeInfo
from onedrive_client.auth.token import OneDriveAuth, auth_from_config
from onedrive_client.config import ClientConfig, load_config
from onedrive_client.errors import (
    ApiError,
    AuthError,
    DecodeError,
    NotDownloadableError,
    OneDriveError,
    PathNotFoundError,
    TokenRefreshError,
    TransportError,
)

__version__ = "0.1.0"

__all__ = [
    "ApiError",
    "AuthError",
    "ByteRange",
    "ClientConfig",
    "DecodeError",
    "NodeInfo",
    "NotDownloadableError",
    "OneDriveAuth",
    "OneDriveClient",
    "OneDriveError",
    "PathNotFoundError",
    "TokenRefreshError",
    "TransportError",
    "__version__",
    "auth_from_config",
    "client_from_config",
    "load_config",
]
