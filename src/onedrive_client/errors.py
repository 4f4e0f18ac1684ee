"""Exception hierarchy shared by the auth and API layers."""


class OneDriveError(Exception):
    """Base class for every error raised by this library."""


class TransportError(OneDriveError):
    """Raised when a request fails below HTTP (DNS, connection, timeout)."""


class ApiError(OneDriveError):
    """Raised when the service answers with an unexpected HTTP status."""

    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(f"OneDrive API error {status_code}: {message}")
        self.status_code = status_code
        self.message = message


class DecodeError(OneDriveError):
    """Raised when a response body is not the JSON shape we expect."""


class AuthError(OneDriveError):
    """Raised when a valid access token cannot be produced."""


class TokenRefreshError(AuthError):
    """Raised when the refresh_token grant fails; stored credentials are untouched."""


class NotDownloadableError(OneDriveError):
    """Raised when a node carries no content source URL (e.g. a folder)."""

    def __init__(self, node_id: str) -> None:
        super().__init__(f"Cannot download {node_id}: node has no source URL")
        self.node_id = node_id


class PathNotFoundError(OneDriveError):
    """Raised by path resolution when a segment matches no child."""

    def __init__(self, segment: str) -> None:
        super().__init__(f"Not found: {segment}")
        self.segment = segment
