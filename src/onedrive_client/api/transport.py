"""Thin urllib wrapper shared by the token, metadata and content calls."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Mapping
from http.client import HTTPException, HTTPResponse
from typing import IO, Any
from urllib import request as urllib_request
from urllib.error import HTTPError
from urllib.parse import urlencode, urlsplit, urlunsplit

from onedrive_client.errors import ApiError, DecodeError, TransportError

logger = logging.getLogger(__name__)

RequestBody = bytes | IO[bytes] | None


class HttpTransport:
    """Issues HTTP requests against an optional base URL and checks the status.

    One instance talks to the JSON metadata API (with ``base_url`` set);
    another talks to absolute content URLs (``base_url`` left empty).
    """

    def __init__(self, base_url: str = "", timeout: float | None = None) -> None:
        """Initialise the transport.

        Args:
            base_url: Origin prepended to relative paths (no trailing slash).
            timeout: Socket timeout in seconds; None keeps the urllib default.
        """
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout

    @property
    def base_url(self) -> str:
        """Origin prepended to relative paths; empty for absolute-URL transports."""
        return self._base_url

    def build_url(
        self,
        path: str = "",
        full_url: str | None = None,
        params: Mapping[str, str] | None = None,
    ) -> str:
        """Return the absolute URL for a relative path or an absolute URL."""
        url = full_url if full_url is not None else f"{self._base_url}{path}"
        if params:
            separator = "&" if "?" in url else "?"
            url = f"{url}{separator}{urlencode(params)}"
        return url

    def request(
        self,
        method: str,
        path: str = "",
        *,
        full_url: str | None = None,
        params: Mapping[str, str] | None = None,
        headers: Mapping[str, str] | None = None,
        body: RequestBody = None,
        expected_status: Iterable[int] = (200,),
    ) -> HTTPResponse:
        """Send a request and return the open response.

        The caller owns the returned response and must close it.

        Raises:
            TransportError: If the connection fails or times out.
            ApiError: If the status code is not one of ``expected_status``.
        """
        url = self.build_url(path, full_url, params)
        req = urllib_request.Request(url, data=body, headers=dict(headers or {}), method=method)
        logger.debug("[request] sending; method:%s;url:%s", method, _redact(url))
        try:
            if self._timeout is None:
                resp = urllib_request.urlopen(req)
            else:
                resp = urllib_request.urlopen(req, timeout=self._timeout)
        except HTTPError as exc:
            raise _api_error_from_http_error(exc) from exc
        except (OSError, HTTPException) as exc:
            logger.error("[request] transport failure; method:%s;url:%s", method, _redact(url))
            raise TransportError(f"{method} {_redact(url)} failed: {exc}") from exc

        expected = tuple(expected_status)
        if resp.status not in expected:
            status, reason = resp.status, resp.reason
            resp.close()
            logger.error(
                "[request] unexpected status; method:%s;url:%s;status:%d",
                method,
                _redact(url),
                status,
            )
            raise ApiError(status, reason)
        return resp

    def request_json(self, method: str, path: str = "", **kwargs: Any) -> Any:
        """Send a request, read the whole body and decode it as JSON.

        Accepts the same keyword arguments as ``request``.

        Raises:
            TransportError: If the connection fails while sending or reading.
            ApiError: If the status code is unexpected.
            DecodeError: If the body is not valid JSON.
        """
        target = path or _redact(kwargs.get("full_url") or "")
        resp = self.request(method, path, **kwargs)
        try:
            raw = resp.read()
        except (OSError, HTTPException) as exc:
            raise TransportError(f"{method} {target} failed: {exc}") from exc
        finally:
            resp.close()
        try:
            return json.loads(raw)
        except ValueError as exc:
            raise DecodeError(f"Malformed JSON response from {method} {target}: {exc}") from exc


def _api_error_from_http_error(exc: HTTPError) -> ApiError:
    """Build an ApiError, preferring the service's own error message."""
    detail = exc.reason
    try:
        payload = json.loads(exc.read())
    except (OSError, HTTPException, ValueError):
        payload = None
    finally:
        exc.close()
    if isinstance(payload, dict):
        error = payload.get("error")
        if isinstance(error, dict):
            detail = error.get("message", detail)
        elif isinstance(error, str):
            # OAuth endpoints report {"error": "<code>", "error_description": "..."}
            detail = payload.get("error_description") or error
    logger.error("[request] API error; status:%d;detail:%s", exc.code, detail)
    return ApiError(exc.code, str(detail))


def _redact(url: str) -> str:
    """Drop the query string, which carries signatures on content source URLs."""
    parts = urlsplit(url)
    return urlunsplit((parts.scheme, parts.netloc, parts.path, "", ""))
