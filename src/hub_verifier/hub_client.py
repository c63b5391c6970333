"""
Identity Hub client.

Queries and writes Verifiable Credentials on an Identity Hub instance. Every
call is a POST of a request object carrying a single message to the hub base
URL; the hub answers with a response object holding one reply per message.
"""

from __future__ import annotations

import base64
import binascii
import logging
import time
import uuid
from typing import Any, Protocol

import httpx

from hub_verifier.credentials import JWT_VC_FORMAT
from hub_verifier.result import ResponseStatus, StatusResult

log = logging.getLogger(__name__)

COLLECTIONS_QUERY = "CollectionsQuery"
COLLECTIONS_WRITE = "CollectionsWrite"


class IdentityHubClient(Protocol):
    """Fetches and submits raw credential envelopes."""

    def get_verifiable_credentials(self, hub_base_url: str) -> StatusResult[list[bytes]]:
        """Get the raw credential envelopes published on a hub."""
        ...

    def add_verifiable_credential(
        self, hub_base_url: str, verifiable_credential: bytes
    ) -> StatusResult[None]:
        """Write a raw credential envelope to a hub."""
        ...


class HttpIdentityHubClient:
    """IdentityHubClient over HTTP."""

    def __init__(
        self,
        timeout: float = 30.0,
        verify_ssl: bool = True,
        data_format: str = JWT_VC_FORMAT,
        http_client: httpx.Client | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            timeout: HTTP request timeout in seconds.
            verify_ssl: Whether to verify SSL certificates.
            data_format: Data format announced in message descriptors.
            http_client: Shared httpx client. A client per call is used if not provided.
        """
        self.timeout = timeout
        self.verify_ssl = verify_ssl
        self.data_format = data_format
        self._http_client = http_client

    def get_verifiable_credentials(self, hub_base_url: str) -> StatusResult[list[bytes]]:
        result = self._send(hub_base_url, self._message(COLLECTIONS_QUERY))
        if result.failed:
            return result

        entries: list[bytes] = []
        for reply in result.content:
            reply_entries = reply.get("entries")
            if reply_entries is None:
                continue
            if not isinstance(reply_entries, list):
                return StatusResult.failure(
                    f"IdentityHub reply entries from {hub_base_url} are not a list"
                )
            for entry in reply_entries:
                if not isinstance(entry, str):
                    return StatusResult.failure(
                        f"IdentityHub returned a non-string entry from {hub_base_url}"
                    )
                try:
                    entries.append(base64.b64decode(entry, validate=True))
                except binascii.Error as e:
                    return StatusResult.failure(
                        f"IdentityHub returned an entry that is not base64: {e}"
                    )

        log.debug("Fetched %d entries from %s", len(entries), hub_base_url)
        return StatusResult.success(entries)

    def add_verifiable_credential(
        self, hub_base_url: str, verifiable_credential: bytes
    ) -> StatusResult[None]:
        message = self._message(COLLECTIONS_WRITE)
        message["data"] = base64.b64encode(verifiable_credential).decode("ascii")

        result = self._send(hub_base_url, message)
        if result.failed:
            return StatusResult.failure(*result.failure_messages, status=result.status)
        return StatusResult.success()

    def _message(self, method: str) -> dict[str, Any]:
        return {
            "descriptor": {
                "method": method,
                "nonce": uuid.uuid4().hex,
                "dateCreated": int(time.time()),
                "dataFormat": self.data_format,
            }
        }

    def _send(self, hub_base_url: str, message: dict[str, Any]) -> StatusResult[list[dict]]:
        """POST a single-message request object and return its replies.

        Transport errors, timeouts and 5xx responses are retryable; anything
        else that prevents a successful reply is fatal.
        """
        request_object = {
            "requestId": str(uuid.uuid4()),
            "target": hub_base_url,
            "messages": [message],
        }
        method = message["descriptor"]["method"]

        try:
            response = self._post(hub_base_url, request_object)
        except httpx.TimeoutException as e:
            return StatusResult.failure(
                f"Timeout calling IdentityHub at {hub_base_url}: {e}",
                status=ResponseStatus.ERROR_RETRY,
            )
        except httpx.RequestError as e:
            return StatusResult.failure(
                f"Network error calling IdentityHub at {hub_base_url}: {e}",
                status=ResponseStatus.ERROR_RETRY,
            )

        if response.status_code != 200:
            status = (
                ResponseStatus.ERROR_RETRY
                if response.status_code >= 500
                else ResponseStatus.FATAL_ERROR
            )
            return StatusResult.failure(
                f"IdentityHub error response code: {response.status_code}, "
                f"response body: {response.text}",
                status=status,
            )

        try:
            body = response.json()
        except ValueError:
            return StatusResult.failure(f"Invalid JSON in IdentityHub response from {hub_base_url}")

        replies = body.get("replies") if isinstance(body, dict) else None
        if not isinstance(replies, list):
            return StatusResult.failure(f"IdentityHub response from {hub_base_url} has no replies")

        for reply in replies:
            if not isinstance(reply, dict):
                return StatusResult.failure("IdentityHub reply is not a JSON object")
            reply_status = reply.get("status")
            if not isinstance(reply_status, dict):
                reply_status = {}
            code = reply_status.get("code", 200)
            if code != 200:
                return StatusResult.failure(
                    f"IdentityHub {method} failed: {code} {reply_status.get('detail', '')}".rstrip()
                )

        return StatusResult.success(replies)

    def _post(self, url: str, payload: dict[str, Any]) -> httpx.Response:
        if self._http_client is not None:
            return self._http_client.post(url, json=payload)
        with httpx.Client(timeout=self.timeout, verify=self.verify_ssl) as client:
            return client.post(url, json=payload)
