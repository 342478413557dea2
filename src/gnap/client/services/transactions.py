"""GNAP transaction and continuation endpoint transport.

Sends signed request envelopes to the AS and turns every failure mode into a
single ``TransactionError``. Successful bodies are deserialized into a
``GrantResponse``; classifying them is left to the router.
"""

from __future__ import annotations

import logging

import httpx
from pydantic import ValidationError

from gnap.client.models.errors import TransactionError
from gnap.client.models.grant import GrantResponse
from gnap.client.services.signing import SignedRequest

logger = logging.getLogger(__name__)

DESERIALIZATION_FAILURE = "Failed to deserialize error response"


class GNAPTransactionManager:
    """Posts grant and continuation requests to the authorization server.

    The grant endpoint and the continuation URI only accept POST, so the
    method of the envelope is always overridden.
    """

    def __init__(self, timeout: float = 30.0):
        """Initialize the transaction manager.

        Args:
            timeout: HTTP request timeout in seconds
        """
        self.timeout = timeout
        self._http_client = httpx.AsyncClient(timeout=timeout)

    async def send(self, url: str, signed_request: SignedRequest) -> GrantResponse:
        """Send a signed request and return the parsed grant response.

        Args:
            url: Grant endpoint or continuation URI
            signed_request: Envelope produced by the request signer

        Returns:
            GrantResponse: Deserialized AS response

        Raises:
            TransactionError: On network failure, non-2xx status or
                an undeserializable body
        """
        logger.debug(f"Sending grant request to {url}")

        try:
            response = await self._http_client.post(
                url,
                content=signed_request.body,
                headers=signed_request.headers,
            )
        except httpx.HTTPError as e:
            raise TransactionError(f"HTTP error during grant request: {e}") from e

        if not response.is_success:
            self._raise_error_response(response)

        return self._parse_grant_response(response)

    def _raise_error_response(self, response: httpx.Response) -> None:
        """Raise a TransactionError carrying the best available message.

        The AS answers errors with ``{"details": ...}``; GNAP-shaped
        ``{"error": ...}`` bodies are understood as well. Plain text bodies
        happen in practice (e.g. "JWS could not be deserialized").
        """
        try:
            error_data = response.json()
        except ValueError:
            logger.warning(
                f"Grant request failed with {response.status_code}: {response.text}"
            )
            raise TransactionError(
                DESERIALIZATION_FAILURE, status_code=response.status_code
            ) from None

        details = None
        if isinstance(error_data, dict):
            details = error_data.get("details")
            if details is None and "error" in error_data:
                error = error_data["error"]
                if isinstance(error, dict):
                    details = error.get("description") or error.get("code")
                else:
                    details = error

        logger.warning(
            f"Grant request failed with {response.status_code}: {error_data}"
        )

        if details is None:
            raise TransactionError(
                f"Grant request failed with HTTP {response.status_code}",
                status_code=response.status_code,
            )
        raise TransactionError(
            str(details), status_code=response.status_code, details=str(details)
        )

    def _parse_grant_response(self, response: httpx.Response) -> GrantResponse:
        try:
            return GrantResponse.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise TransactionError(
                f"Invalid grant response format: {e}", status_code=response.status_code
            ) from e

    async def close(self) -> None:
        """Close the HTTP client and clean up resources."""
        await self._http_client.aclose()
