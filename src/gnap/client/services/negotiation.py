"""Sign, send and route a single GNAP request.

Shared by the grant initiator and the continuation requester so that both go
through the same proofing, error normalization and state transitions.
"""

from __future__ import annotations

import logging

from gnap.client.models.flow import GrantOutcome
from gnap.client.models.grant import (
    ContinueRequestAfterInteraction,
    GrantRequest,
    ProofMethod,
)
from gnap.client.models.keys import ClientKeyMaterial
from gnap.client.services.routing import GrantResponseRouter
from gnap.client.services.signing import GNAPRequestSigner
from gnap.client.services.transactions import GNAPTransactionManager

logger = logging.getLogger(__name__)


class GrantNegotiator:
    def __init__(
        self,
        signer: GNAPRequestSigner,
        transactions: GNAPTransactionManager,
        router: GrantResponseRouter,
    ):
        self.signer = signer
        self.transactions = transactions
        self.router = router

    async def negotiate(
        self,
        url: str,
        body: GrantRequest | ContinueRequestAfterInteraction,
        proof_method: ProofMethod | str,
        client_keys: ClientKeyMaterial,
        bound_access_token: str | None = None,
    ) -> GrantOutcome:
        """Send one request to the AS and route its response.

        Args:
            url: Grant endpoint or continuation URI
            body: Request body
            proof_method: Key proofing method
            client_keys: Keys to sign with
            bound_access_token: Continuation access token, if any

        Returns:
            GrantOutcome: PendingGrant or ApprovedGrant

        Raises:
            GNAPError subclasses from signing, transport or routing
        """
        signed_request = self.signer.sign_request(
            proof_method, body, client_keys, "POST", url, bound_access_token
        )
        grant_response = await self.transactions.send(url, signed_request)
        return self.router.route(url, body, grant_response, client_keys)
