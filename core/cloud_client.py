"""
Dropbox HTTP client for snapshot replication.

Wraps the three Dropbox endpoints the sync engine needs:
    - users/get_current_account   (connection test)
    - files/download              (pull)
    - files/upload                (push, overwrite mode)

THREAD SAFETY:
    - Each sync worker thread creates its own DropboxClient
    - A client owns one httpx.Client; close() releases it
    - No state is shared between instances

NO RETRIES:
    Every call is attempted once. A failure is raised as
    TransportFailureError and the sync service turns it into a status value.

Usage:
    with DropboxClient(access_token, timeout=30) as client:
        account = client.get_current_account()
        blob = client.download("/shinwari_pos_db.json")   # None if absent
        client.upload("/shinwari_pos_db.json", blob)
"""

from __future__ import annotations

import json
import logging
import threading
from typing import Dict, Any, Optional

import httpx

from .exceptions import MissingCredentialError, TransportFailureError


DEFAULT_API_URL = "https://api.dropboxapi.com"
DEFAULT_CONTENT_URL = "https://content.dropboxapi.com"

BEARER_PREFIX = "Bearer "

# Longest slice of an error body copied into exception messages
_BODY_EXCERPT_CHARS = 300


def normalize_token(access_token: Optional[str]) -> str:
    """Strip whitespace and an optional "Bearer " prefix."""
    token = (access_token or "").strip()
    if token.lower().startswith(BEARER_PREFIX.lower()):
        token = token[len(BEARER_PREFIX):].strip()
    return token


class DropboxClient:
    """
    Minimal Dropbox v2 API client.

    Attributes:
        thread_id: ID of the thread that created this client
    """

    def __init__(
        self,
        access_token: str,
        api_url: str = DEFAULT_API_URL,
        content_url: str = DEFAULT_CONTENT_URL,
        timeout: float = 30.0,
        transport: Optional[httpx.BaseTransport] = None,
        logger: Optional[logging.Logger] = None,
    ):
        """
        Args:
            access_token: Dropbox bearer token (prefix optional)
            api_url: Base URL for RPC endpoints
            content_url: Base URL for content (upload/download) endpoints
            timeout: Seconds before any single request gives up
            transport: httpx transport override (tests pass httpx.MockTransport)
            logger: Logger instance (optional)

        Raises:
            MissingCredentialError: If the token is empty
        """
        token = normalize_token(access_token)
        if not token:
            raise MissingCredentialError()

        self._api_url = api_url.rstrip("/")
        self._content_url = content_url.rstrip("/")
        self._logger = logger or logging.getLogger("pos_terminal.core.cloud_client")
        self._thread_id = threading.get_ident()
        self._http = httpx.Client(
            timeout=timeout,
            transport=transport,
            headers={"Authorization": f"{BEARER_PREFIX}{token}"},
        )

    @property
    def thread_id(self) -> int:
        return self._thread_id

    def get_current_account(self) -> Dict[str, Any]:
        """
        Fetch the account that owns the token.

        Returns:
            Account dictionary; the display name is under ["name"]["display_name"]

        Raises:
            TransportFailureError: Network failure or token rejected
        """
        response = self._send(
            "account lookup",
            f"{self._api_url}/2/users/get_current_account",
            headers={"Content-Type": "application/json"},
            content=b"null",
        )
        try:
            return response.json()
        except json.JSONDecodeError as e:
            raise TransportFailureError("account lookup", f"Invalid JSON in response: {e}")

    def download(self, path: str) -> Optional[bytes]:
        """
        Download a file.

        Returns:
            File bytes, or None if the file does not exist

        Raises:
            TransportFailureError: Any other failure
        """
        self._logger.debug(f"[Thread {self._thread_id}] Downloading {path}")
        response = self._send(
            "download",
            f"{self._content_url}/2/files/download",
            headers={"Dropbox-API-Arg": json.dumps({"path": path})},
            allow_not_found=True,
        )
        if response is None:
            self._logger.info(f"[Thread {self._thread_id}] Remote file not found: {path}")
            return None

        self._logger.debug(f"[Thread {self._thread_id}] Downloaded {len(response.content)} bytes")
        return response.content

    def upload(self, path: str, content: bytes) -> Dict[str, Any]:
        """
        Upload a file, overwriting whatever is there.

        Returns:
            File metadata returned by Dropbox

        Raises:
            TransportFailureError: Network failure or upload rejected
        """
        self._logger.debug(f"[Thread {self._thread_id}] Uploading {len(content)} bytes to {path}")
        arg = {"path": path, "mode": "overwrite", "mute": True}
        response = self._send(
            "upload",
            f"{self._content_url}/2/files/upload",
            headers={
                "Content-Type": "application/octet-stream",
                "Dropbox-API-Arg": json.dumps(arg),
            },
            content=content,
        )
        try:
            return response.json()
        except json.JSONDecodeError:
            return {}

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> "DropboxClient":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def _send(
        self,
        operation: str,
        url: str,
        headers: Dict[str, str],
        content: Optional[bytes] = None,
        allow_not_found: bool = False,
    ) -> Optional[httpx.Response]:
        """
        POST to a Dropbox endpoint.

        Returns:
            The response, or None when allow_not_found is set and the
            provider reports the path as missing
        """
        try:
            response = self._http.post(url, headers=headers, content=content)
        except httpx.HTTPError as e:
            self._logger.error(f"[Thread {self._thread_id}] {operation} request failed: {e}")
            raise TransportFailureError(operation, str(e) or type(e).__name__)

        if allow_not_found and self._is_not_found(response):
            return None

        if response.status_code >= 400:
            excerpt = response.text[:_BODY_EXCERPT_CHARS]
            self._logger.error(
                f"[Thread {self._thread_id}] {operation} rejected: "
                f"HTTP {response.status_code} {excerpt}"
            )
            raise TransportFailureError(
                operation,
                f"HTTP {response.status_code}: {excerpt}",
                status_code=response.status_code,
            )

        return response

    @staticmethod
    def _is_not_found(response: httpx.Response) -> bool:
        # Dropbox reports a missing path as 409 with error_summary "path/not_found/..."
        if response.status_code == 404:
            return True
        return response.status_code == 409 and "not_found" in response.text
