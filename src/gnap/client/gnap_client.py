"""GNAP client orchestration.

Coordinates key management, grant initiation, interaction redirects and
continuation to provide a complete redirect-based GNAP flow.
"""

from __future__ import annotations

import logging
from typing import Protocol

from gnap.client.models.flow import (
    ApprovedGrant,
    GrantOutcome,
    PendingGrant,
    RedirectInstruction,
)
from gnap.client.models.grant import Access, Continue, HashMethod, ProofMethod
from gnap.client.models.keys import ClientKeyMaterial
from gnap.client.primitives.storage import GrantSessionStorage, KeyValueStore
from gnap.client.services.continuation import ContinuationRequester
from gnap.client.services.grant import GrantInitiator
from gnap.client.services.interaction import InteractionCallbackHandler
from gnap.client.services.negotiation import GrantNegotiator
from gnap.client.services.routing import GrantResponseRouter
from gnap.client.services.signing import JOSE_CONTENT_TYPE, GNAPRequestSigner
from gnap.client.services.transactions import GNAPTransactionManager

logger = logging.getLogger(__name__)


class RedirectHandler(Protocol):
    """Protocol for sending the end user to the AS interaction page.

    Allows different strategies:
    - Web frameworks returning an HTTP 302 to the browser
    - CLI tools printing or opening the URL
    - Tests recording the instruction
    """

    async def handle_redirect(self, instruction: RedirectInstruction) -> None:
        """Send the end user to ``instruction.uri``.

        The negotiation continues in ``GNAPClient.handle_callback`` once the
        AS redirects back; nothing after this call may assume it runs in the
        same page context.
        """
        ...


class LoggingRedirectHandler:
    """Redirect handler that only logs the interaction URL.

    The caller is expected to act on the returned ``PendingGrant`` itself.
    """

    async def handle_redirect(self, instruction: RedirectInstruction) -> None:
        logger.info(f"User interaction required, redirect to {instruction.uri}")


class GNAPClient:
    """Complete GNAP client for redirect-based grant negotiation.

    Holds one session storage scope. Only one negotiation may run per scope
    at a time; callers must serialize operations sharing a store.
    """

    def __init__(
        self,
        storage: KeyValueStore | None = None,
        redirect_handler: RedirectHandler | None = None,
        proof_method: ProofMethod = ProofMethod.JWS,
        jose_content_type: str = JOSE_CONTENT_TYPE,
        timeout: float = 30.0,
    ):
        """Initialize the GNAP client.

        Args:
            storage: Key-value store for negotiation state (in-memory default)
            redirect_handler: Handler for the interaction redirect
            proof_method: Default key proofing method
            jose_content_type: Content type for attached JWS bodies
            timeout: HTTP request timeout
        """
        self.redirect_handler = redirect_handler or LoggingRedirectHandler()
        self.proof_method = proof_method

        # Initialize service components
        self.storage = GrantSessionStorage(storage)
        self.signer = GNAPRequestSigner(jose_content_type=jose_content_type)
        self.transactions = GNAPTransactionManager(timeout=timeout)
        self.router = GrantResponseRouter(self.storage)
        self.negotiator = GrantNegotiator(self.signer, self.transactions, self.router)
        self.initiator = GrantInitiator(self.storage, self.negotiator)
        self.continuation = ContinuationRequester(self.storage, self.negotiator)
        self.callback_handler = InteractionCallbackHandler(
            self.storage, self.continuation
        )

    async def request_access(
        self,
        transaction_url: str,
        redirect_url: str,
        access: list[str | Access | dict],
        proof_method: ProofMethod | None = None,
        client_keys: ClientKeyMaterial | None = None,
        bound_token: bool = False,
        hash_method: HashMethod | None = None,
    ) -> GrantOutcome:
        """Start a grant and hand any redirect to the redirect handler.

        Returns:
            GrantOutcome: PendingGrant when the user must interact,
                ApprovedGrant when access was granted immediately
        """
        outcome = await self.initiator.start_grant(
            transaction_url,
            redirect_url,
            access,
            proof_method=proof_method or self.proof_method,
            client_keys=client_keys,
            bound_token=bound_token,
            hash_method=hash_method,
        )

        if isinstance(outcome, PendingGrant) and outcome.redirect is not None:
            await self.redirect_handler.handle_redirect(outcome.redirect)

        return outcome

    async def handle_callback(self, callback_url: str) -> ApprovedGrant:
        """Finish a pending grant from the interaction callback URL."""
        return await self.callback_handler.handle_callback(callback_url)

    async def continue_grant(
        self,
        continue_obj: Continue,
        interact_ref: str,
        proof_method: ProofMethod | None = None,
    ) -> GrantOutcome:
        """Send a continuation request directly, bypassing callback checks."""
        return await self.continuation.continue_grant(
            continue_obj, proof_method or self.proof_method, interact_ref
        )

    def get_client_keys(self) -> ClientKeyMaterial | None:
        return self.storage.find_client_keys()

    def abandon_grant(self) -> None:
        """Drop the state of the current negotiation, keeping client keys.

        Error paths never clear storage on their own; call this once the
        failed negotiation has been inspected.
        """
        self.storage.clear_negotiation()

    async def close(self) -> None:
        """Close all service connections."""
        await self.transactions.close()

    async def __aenter__(self) -> GNAPClient:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()
