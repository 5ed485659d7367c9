"""
Firestore REST transport.

Sends RPCs as JSON POST requests to the Firestore REST API (or the local
emulator) using a requests.Session. Blocking calls run in a worker thread
so they do not stall the event loop. Requests share one session, so they
are sent one at a time.
"""

from __future__ import annotations
import asyncio
import json
import logging
import threading
from typing import Any, Dict, Optional

import requests

from ..config import ClientConfig
from ..runtime.codec import decode_bytes, encode_bytes
from ..runtime.errors import RpcError, Status, error_from_response, status_from_http

logger = logging.getLogger(__name__)

DOCUMENT_METHODS = ("beginTransaction", "commit", "rollback", "batchGet")


def _encode_handles(value: Any) -> Any:
    """Replace raw bytes (transaction handles) with base64 strings."""
    if isinstance(value, (bytes, bytearray)):
        return encode_bytes(bytes(value))
    if isinstance(value, dict):
        return {k: _encode_handles(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_encode_handles(v) for v in value]
    return value


class RestTransport:
    """
    RPC transport over the Firestore REST API.

    Example:
        ```python
        config = ClientConfig(project_id="my-project", emulator_host="localhost:8080")
        transport = RestTransport(config)
        response = await transport.call(
            "beginTransaction", {"database": "projects/my-project/databases/(default)"}
        )
        ```
    """

    def __init__(self, config: ClientConfig, session: Optional[requests.Session] = None):
        """
        Initialize the transport.

        Args:
            config: Client configuration (endpoint, emulator host, token, timeout)
            session: Optional requests.Session for connection pooling
        """
        self._config = config
        self._endpoint = config.base_url().rstrip("/")
        self._timeout = config.timeout
        self._session = session or requests.Session()
        self._owns_session = session is None
        # requests.Session is not documented as thread-safe
        self._session_lock = threading.Lock()

    @property
    def endpoint(self) -> str:
        """Get the API endpoint."""
        return self._endpoint

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._config.emulator_host:
            headers["Authorization"] = "Bearer owner"
        elif self._config.access_token:
            headers["Authorization"] = f"Bearer {self._config.access_token}"
        return headers

    def _url(self, method: str, request: Dict[str, Any]) -> str:
        if method in DOCUMENT_METHODS:
            return f"{self._endpoint}/v1/{request['database']}/documents:{method}"
        if method == "runQuery":
            return f"{self._endpoint}/v1/{request['parent']}:runQuery"
        raise RpcError(f"Unsupported method: {method}", Status.UNIMPLEMENTED)

    def _post(self, url: str, body: Dict[str, Any]) -> Any:
        """
        Make one blocking POST request.

        Raises:
            RpcError: If the request fails or the server reports an error
        """
        try:
            with self._session_lock:
                response = self._session.post(
                    url,
                    data=json.dumps(body),
                    headers=self._headers(),
                    timeout=self._timeout,
                )
        except requests.exceptions.Timeout as e:
            raise RpcError(f"HTTP request timed out: {e}", Status.DEADLINE_EXCEEDED, cause=e)
        except requests.exceptions.ConnectionError as e:
            raise RpcError(f"HTTP connection failed: {e}", Status.UNAVAILABLE, cause=e)
        except requests.exceptions.RequestException as e:
            raise RpcError(f"HTTP request failed: {e}", Status.UNKNOWN, cause=e)

        try:
            payload = response.json() if response.content else {}
        except ValueError as e:
            if response.status_code != 200:
                raise RpcError(
                    f"HTTP {response.status_code}: {response.reason}",
                    status_from_http(response.status_code),
                )
            raise RpcError(f"Invalid JSON response: {e}", Status.INTERNAL, cause=e)

        if response.status_code != 200:
            raise error_from_response(payload, response.status_code)

        # Streaming methods report errors inside the response array
        if isinstance(payload, list) and any(isinstance(item, dict) and "error" in item for item in payload):
            error_item = next(item for item in payload if isinstance(item, dict) and "error" in item)
            raise error_from_response(error_item)

        return payload

    async def call(self, method: str, request: Dict[str, Any], request_tag: Optional[str] = None) -> Any:
        """
        Send one RPC.

        Args:
            method: RPC method name (e.g. "beginTransaction", "commit")
            request: Request message; ``database``/``parent`` select the URL
            request_tag: Correlation tag for logging

        Returns:
            Decoded response
        """
        url = self._url(method, request)
        body = {k: v for k, v in request.items() if k not in ("database", "parent")}
        body = _encode_handles(body)

        logger.debug(f"[{request_tag}] POST {url}")
        payload = await asyncio.to_thread(self._post, url, body)

        if method == "beginTransaction" and isinstance(payload, dict) and "transaction" in payload:
            payload = dict(payload, transaction=decode_bytes(payload["transaction"]))
        return payload

    async def close(self) -> None:
        """Close the HTTP session if owned by this transport."""
        if self._owns_session:
            self._session.close()
