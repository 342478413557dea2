"""Redirect interaction finish handling (GNAP Sections 4.2.3 and 5.1).

When the end user comes back from the AS, the callback URL carries ``hash``
and ``interact_ref``. The hash is recomputed from the persisted negotiation
and must match before any continuation request is made.
"""

from __future__ import annotations

import logging
import secrets
import time
from dataclasses import dataclass
from urllib.parse import parse_qs, urlparse

from gnap.client.models.errors import (
    GrantFlowError,
    InteractionCallbackError,
    InteractionExpiredError,
    InteractionHashError,
)
from gnap.client.models.flow import ApprovedGrant
from gnap.client.models.grant import HashMethod
from gnap.client.primitives.crypto import get_encoded_hash
from gnap.client.primitives.storage import GrantSessionStorage
from gnap.client.services.continuation import ContinuationRequester

logger = logging.getLogger(__name__)


def compute_interaction_hash(
    finish_nonce: str,
    finish: str,
    interact_ref: str,
    transaction_url: str,
    hash_method: HashMethod | str = HashMethod.SHA_256,
) -> str:
    """Compute the interaction hash (Section 4.2.3).

    The base string is the client nonce, the AS finish nonce, the interaction
    reference and the grant endpoint URL, joined by single newlines.
    """
    base_string = f"{finish_nonce}\n{finish}\n{interact_ref}\n{transaction_url}"
    return get_encoded_hash(base_string, hash_method)


def validate_interaction_hash(expected: str, actual: str) -> None:
    """Compare hashes in constant time.

    Raises:
        InteractionHashError: If the hashes differ
    """
    if not secrets.compare_digest(expected.encode("utf-8"), actual.encode("utf-8")):
        raise InteractionHashError("Invalid hash value")


@dataclass(frozen=True)
class InteractionCallback:
    hash: str
    interact_ref: str


def parse_callback_url(callback_url: str) -> InteractionCallback:
    """Extract ``hash`` and ``interact_ref`` from a callback URL.

    Raises:
        InteractionCallbackError: If either parameter is missing
    """
    try:
        query_params = parse_qs(urlparse(callback_url).query)
    except ValueError as e:
        raise InteractionCallbackError(f"Failed to parse callback URL: {e}") from e

    hash_values = query_params.get("hash", [])
    ref_values = query_params.get("interact_ref", [])
    if not hash_values or not ref_values:
        raise InteractionCallbackError(
            "Callback URL is missing the hash or interact_ref parameter"
        )
    return InteractionCallback(hash=hash_values[0], interact_ref=ref_values[0])


class InteractionCallbackHandler:
    """Validates the interaction callback and finishes the grant."""

    def __init__(
        self, storage: GrantSessionStorage, continuation: ContinuationRequester
    ):
        self.storage = storage
        self.continuation = continuation

    async def handle_callback(self, callback_url: str) -> ApprovedGrant:
        """Verify the callback and continue the grant to an access token.

        Args:
            callback_url: Full URL the AS redirected the end user to

        Returns:
            ApprovedGrant: Final grant carrying the access token

        Raises:
            InteractionCallbackError: Missing callback parameters
            InteractionExpiredError: The interaction window has passed
            InteractionHashError: The callback hash does not match
            SessionStateError: Required negotiation state is missing
            GrantFlowError: The continuation did not yield an access token
        """
        callback = parse_callback_url(callback_url)
        logger.debug("Processing interaction callback")

        grant_response = self.storage.get_grant_response()
        transaction_url = self.storage.get_transaction_url()
        finish_nonce = self.storage.get_finish_nonce()
        proof_method = self.storage.get_proof_method()

        expires_at = self.storage.get_interaction_expiration()
        if expires_at is not None and int(time.time() * 1000) > expires_at:
            logger.warning("Interaction callback received after expiry")
            raise InteractionExpiredError("Interaction has expired")

        hash_method = HashMethod.SHA_256
        grant_request = self.storage.find_grant_request()
        if (
            grant_request is not None
            and grant_request.interact is not None
            and grant_request.interact.finish is not None
            and grant_request.interact.finish.hash_method
        ):
            hash_method = grant_request.interact.finish.hash_method

        finish = ""
        if grant_response.interact is not None:
            finish = grant_response.interact.finish or ""

        expected = compute_interaction_hash(
            finish_nonce, finish, callback.interact_ref, transaction_url, hash_method
        )
        try:
            validate_interaction_hash(expected, callback.hash)
        except InteractionHashError:
            logger.error("Interaction hash mismatch, refusing to continue the grant")
            raise

        self.storage.clear_interaction_expiration()

        if grant_response.continue_ is None:
            raise GrantFlowError("Pending grant response has no continue object")

        outcome = await self.continuation.continue_grant(
            grant_response.continue_, proof_method, callback.interact_ref
        )

        if not isinstance(outcome, ApprovedGrant) or outcome.access_token is None:
            raise GrantFlowError("Continuation response contains no access_token")

        logger.info("Interaction finished, access token received")
        return outcome
