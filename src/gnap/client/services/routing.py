"""Grant response routing.

Moves session storage through the negotiation states:

- PENDING: the AS wants the end user to interact. Everything needed to
  validate the callback is persisted and a redirect instruction is returned.
- APPROVED: access or subject information was released. Negotiation state is
  cleared; client keys are kept, their lifecycle is independent of grants.
- FINALIZED: nothing usable came back. The error is raised and storage is
  left untouched for the caller to inspect.

The router cannot tell which flow produced a response; tracking that is the
caller's job (via the interaction reference in the callback URL).
"""

from __future__ import annotations

import dataclasses
import logging

from gnap.client.models.errors import (
    GrantFinalizedError,
    InteractionNotImplementedError,
)
from gnap.client.models.flow import (
    ApprovedGrant,
    GrantOutcome,
    PendingGrant,
    classify_grant_response,
)
from gnap.client.models.grant import (
    ContinueRequestAfterInteraction,
    GrantRequest,
    GrantResponse,
)
from gnap.client.models.keys import ClientKeyMaterial
from gnap.client.primitives.storage import GrantSessionStorage

logger = logging.getLogger(__name__)


class GrantResponseRouter:
    def __init__(self, storage: GrantSessionStorage):
        self.storage = storage

    def route(
        self,
        url: str,
        request_body: GrantRequest | ContinueRequestAfterInteraction,
        grant_response: GrantResponse,
        client_keys: ClientKeyMaterial,
    ) -> GrantOutcome:
        """Classify a response and apply the matching storage transition.

        Args:
            url: URL the request was sent to
            request_body: Request that produced the response
            grant_response: Deserialized AS response
            client_keys: Keys the request was signed with

        Returns:
            PendingGrant or ApprovedGrant

        Raises:
            InteractionNotImplementedError: Interaction without a redirect mode
            GrantFinalizedError: The grant is finalized
        """
        outcome = classify_grant_response(grant_response)

        if isinstance(outcome, PendingGrant):
            return self._handle_pending(url, request_body, outcome, client_keys)

        if isinstance(outcome, ApprovedGrant):
            self.storage.clear_transaction_url()
            self.storage.clear_grant_request()
            self.storage.clear_grant_response()
            self.storage.clear_interaction_expiration()
            self.storage.clear_finish_nonce()
            self.storage.clear_proof_method()
            logger.info("Grant approved, cleared negotiation state")
            return outcome

        logger.warning(f"Grant finalized: {outcome.error}")
        raise GrantFinalizedError(outcome.error, outcome=outcome)

    def _handle_pending(
        self,
        url: str,
        request_body: GrantRequest | ContinueRequestAfterInteraction,
        outcome: PendingGrant,
        client_keys: ClientKeyMaterial,
    ) -> PendingGrant:
        response = outcome.response

        # The interaction hash covers the grant endpoint, never a continuation URI
        if isinstance(request_body, GrantRequest):
            self.storage.set_transaction_url(url)
            self.storage.set_grant_request(request_body)
        self.storage.set_grant_response(response)
        self.storage.set_client_keys(client_keys)

        expires_at = None
        if response.interact.expires_in is not None:
            expires_at = self.storage.set_interaction_expiration(
                response.interact.expires_in
            )
        else:
            # Expiry only ever comes from the response that created this state
            self.storage.clear_interaction_expiration()

        if outcome.redirect is None:
            modes = response.interact.model_dump(exclude_none=True)
            offered = sorted(
                k for k in modes if k not in ("finish", "expires_in")
            )
            raise InteractionNotImplementedError(
                "Only the redirect interaction start mode is implemented "
                f"(AS offered: {', '.join(offered) or 'nothing'})"
            )

        logger.info(f"Grant pending, user interaction at {outcome.redirect.uri}")
        return dataclasses.replace(outcome, expires_at=expires_at)
