"""OneDrive Live Connect v5.0 client: metadata, path resolution and content transfer."""

from __future__ import annotations

import logging
from http.client import HTTPResponse
from typing import IO, TYPE_CHECKING
from urllib.parse import quote

from onedrive_client.api.models import FIELD_NAME, ByteRange, NodeInfo, parse_node, parse_node_list
from onedrive_client.api.paths import path_parts
from onedrive_client.api.transport import HttpTransport
from onedrive_client.auth.token import OneDriveAuth, auth_from_config
from onedrive_client.config import DEFAULT_API_BASE_URL
from onedrive_client.errors import DecodeError, NotDownloadableError, PathNotFoundError

if TYPE_CHECKING:
    from onedrive_client.config import ClientConfig

logger = logging.getLogger(__name__)

ROOT_ID = "me/skydrive"
OVERWRITE_REPLACE = "true"
OVERWRITE_RENAME = "ChooseNewName"

# Node ids such as "me/skydrive" or "file.a1b2!103" keep their separators.
_ID_SAFE_CHARS = "/!."


class OneDriveClient:
    """Authenticated client for the OneDrive Live Connect v5.0 API.

    Metadata calls go through ``api_transport`` (bound to the API origin);
    downloads go through ``content_transport`` against per-node source URLs.
    """

    def __init__(
        self,
        auth: OneDriveAuth,
        api_transport: HttpTransport | None = None,
        content_transport: HttpTransport | None = None,
    ) -> None:
        """Initialise the client.

        Args:
            auth: Credential holder that supplies bearer tokens.
            api_transport: Transport for JSON metadata calls.
            content_transport: Transport for raw content downloads.
        """
        self._auth = auth
        self._api = api_transport or HttpTransport(DEFAULT_API_BASE_URL)
        self._content = content_transport or HttpTransport()

    def _headers(self) -> dict[str, str]:
        headers = self._auth.auth_header()
        headers["Accept"] = "application/json"
        return headers

    # ------------------------------------------------------------------
    # Metadata
    # ------------------------------------------------------------------

    def get_node_info(self, node_id: str) -> NodeInfo:
        """Fetch metadata for a single file or folder.

        Raises:
            TokenRefreshError: If no valid access token can be produced.
            TransportError: On connection failure.
            ApiError: On a non-200 response.
            DecodeError: If the body is not a node object.
        """
        result = self._api.request_json(
            "GET", f"/{_quote_id(node_id)}", headers=self._headers(), expected_status=(200,)
        )
        return parse_node(result)

    def get_root_info(self) -> NodeInfo:
        """Fetch metadata for the account's root folder."""
        return self.get_node_info(ROOT_ID)

    def list_children(self, node_id: str) -> list[NodeInfo]:
        """List the children of a folder in the order the service returns them."""
        result = self._api.request_json(
            "GET",
            f"/{_quote_id(node_id)}/files",
            headers=self._headers(),
            expected_status=(200,),
        )
        return parse_node_list(result)

    def resolve_path(self, path: str) -> str:
        """Resolve a slash-separated path to a node id.

        Starts at the root folder and, for each path segment, lists the
        current folder and advances to the first child whose name matches
        case-insensitively. An empty or root path returns the root id
        without listing anything.

        Args:
            path: Virtual path such as ``/Photos/2020/summer.jpg``.

        Returns:
            The id of the node the path points to.

        Raises:
            PathNotFoundError: On the first segment with no matching child.
        """
        node_id = self.get_root_info().id
        for part in path_parts(path):
            wanted = part.casefold()
            children = self.list_children(node_id)
            match = next((child for child in children if child.name.casefold() == wanted), None)
            if match is None:
                logger.info("[resolve_path] segment not found; path:%s;segment:%s", path, part)
                raise PathNotFoundError(part)
            node_id = match.id
        return node_id

    # ------------------------------------------------------------------
    # Content transfer
    # ------------------------------------------------------------------

    def download(
        self, node_id: str, span: ByteRange | None = None
    ) -> tuple[NodeInfo, HTTPResponse]:
        """Open a download stream for a file.

        The caller owns the returned stream and must close it, e.g.::

            info, stream = client.download(file_id)
            with stream:
                data = stream.read()

        Args:
            node_id: Id of the file to download.
            span: Optional inclusive byte range.

        Returns:
            Tuple of (node info with ``size`` set from Content-Length, open stream).

        Raises:
            NotDownloadableError: If the node has no source URL (e.g. a folder).
        """
        info = self.get_node_info(node_id)
        if not info.source:
            logger.error("[download] node has no source URL; node_id:%s", node_id)
            raise NotDownloadableError(node_id)

        headers = self._auth.auth_header()
        if span is not None:
            headers["Range"] = span.header_value()

        resp = self._content.request(
            "GET",
            full_url=info.source,
            headers=headers,
            expected_status=(200, 206),
        )
        length = resp.headers.get("Content-Length")
        info.size = int(length) if length and length.isdigit() else None
        logger.info(
            "[download] opened content stream; node_id:%s;status:%d;size:%s",
            node_id,
            resp.status,
            info.size,
        )
        return info, resp

    def upload(self, dir_id: str, name: str, content: bytes | IO[bytes]) -> str:
        """Upload a file, replacing any existing file of the same name.

        Returns:
            The final file name reported by the service.
        """
        return self.upload_overwrite(dir_id, name, True, content)

    def upload_overwrite(
        self, dir_id: str, name: str, overwrite: bool, content: bytes | IO[bytes]
    ) -> str:
        """Upload a file into a folder with an explicit overwrite policy.

        Args:
            dir_id: Id of the destination folder.
            name: Desired file name.
            overwrite: Replace an existing file when True; otherwise let the
                service choose a new name.
            content: Bytes or a binary file-like object streamed as the body.

        Returns:
            The final (possibly renamed) file name reported by the service.

        Raises:
            ApiError: On a response other than 200 or 201.
            DecodeError: If the response carries no file name.
        """
        params = {"overwrite": OVERWRITE_REPLACE if overwrite else OVERWRITE_RENAME}
        headers = self._headers()
        headers["Content-Type"] = "application/octet-stream"
        result = self._api.request_json(
            "PUT",
            f"/{_quote_id(dir_id)}/files/{quote(name, safe='')}",
            params=params,
            headers=headers,
            body=content,
            expected_status=(200, 201),
        )
        new_name = result.get(FIELD_NAME) if isinstance(result, dict) else None
        if not isinstance(new_name, str):
            raise DecodeError("Upload response has no file name")
        logger.info(
            "[upload_overwrite] uploaded file; dir_id:%s;name:%s;final_name:%s;overwrite:%s",
            dir_id,
            name,
            new_name,
            params["overwrite"],
        )
        return new_name


def _quote_id(node_id: str) -> str:
    return quote(node_id, safe=_ID_SAFE_CHARS)


def client_from_config(config: ClientConfig) -> OneDriveClient:
    """Construct a OneDriveClient from client configuration.

    Args:
        config: Client configuration instance.

    Returns:
        Configured OneDriveClient instance.
    """
    return OneDriveClient(
        auth=auth_from_config(config),
        api_transport=HttpTransport(config.api_base_url, timeout=config.timeout_seconds),
        content_transport=HttpTransport(timeout=config.timeout_seconds),
    )
