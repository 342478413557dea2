"""Grant request initiation with redirect-based interaction.

Builds the initial GNAP grant request (Section 2) and drives it through the
negotiation pipeline. When the AS requires interaction the result is a
``PendingGrant`` with the redirect the end user must follow.
"""

from __future__ import annotations

import logging

from gnap.client.models.errors import (
    ParameterValidationError,
    UnsupportedProofMethodError,
)
from gnap.client.models.flow import GrantOutcome
from gnap.client.models.grant import (
    Access,
    AccessTokenFlag,
    AccessTokenRequest,
    Client,
    ClientKey,
    FinishInteraction,
    FinishInteractionMethod,
    GrantRequest,
    HashMethod,
    InteractionRequest,
    Proof,
    ProofMethod,
    StartInteractionMethod,
    SubjectAssertionFormat,
    SubjectRequest,
)
from gnap.client.models.keys import ClientKeyMaterial
from gnap.client.primitives.crypto import generate_nonce
from gnap.client.primitives.storage import GrantSessionStorage
from gnap.client.services.negotiation import GrantNegotiator
from gnap.client.services.signing import JWS_TYPES

logger = logging.getLogger(__name__)


def build_grant_request(
    access: list[str | Access | dict],
    client_keys: ClientKeyMaterial,
    proof_method: ProofMethod | str,
    redirect_url: str,
    finish_nonce: str,
    bound_token: bool = False,
    hash_method: HashMethod | None = None,
) -> GrantRequest:
    """Compose a grant request asking for redirect interaction.

    Args:
        access: Access rights for the requested token
        client_keys: Client key pair; only the public half is sent
        proof_method: Proofing method the client will use
        redirect_url: Where the AS sends the user back after interaction
        finish_nonce: Nonce binding the callback hash to this request
        bound_token: Request a key-bound access token instead of a bearer one
        hash_method: Interaction hash method; the AS default is sha-256
    """
    access_token = AccessTokenRequest(
        access=access,
        flags=None if bound_token else [AccessTokenFlag.BEARER],
    )

    return GrantRequest(
        access_token=access_token,
        client=Client(
            key=ClientKey(
                proof=Proof(method=proof_method),
                jwk=dict(client_keys.public_jwk),
            )
        ),
        subject=SubjectRequest(assertion_formats=[SubjectAssertionFormat.SAML2]),
        interact=InteractionRequest(
            start=[StartInteractionMethod.REDIRECT],
            finish=FinishInteraction(
                method=FinishInteractionMethod.REDIRECT,
                uri=redirect_url,
                nonce=finish_nonce,
                hash_method=hash_method,
            ),
        ),
    )


class GrantInitiator:
    """Starts new grant negotiations."""

    def __init__(self, storage: GrantSessionStorage, negotiator: GrantNegotiator):
        self.storage = storage
        self.negotiator = negotiator

    def resolve_client_keys(
        self, client_keys: ClientKeyMaterial | None = None
    ) -> ClientKeyMaterial:
        """Use the given keys, else the persisted ones, else generate a pair."""
        if client_keys is not None:
            return client_keys.normalize()

        stored = self.storage.find_client_keys()
        if stored is not None:
            logger.debug(f"Reusing persisted client key {stored.kid}")
            return stored.normalize()

        generated = ClientKeyMaterial.generate()
        logger.info(f"Generated new client key {generated.kid}")
        return generated

    async def start_grant(
        self,
        transaction_url: str,
        redirect_url: str,
        access: list[str | Access | dict],
        proof_method: ProofMethod | str = ProofMethod.JWS,
        client_keys: ClientKeyMaterial | None = None,
        bound_token: bool = False,
        hash_method: HashMethod | None = None,
    ) -> GrantOutcome:
        """Send a new grant request to the AS grant endpoint.

        Args:
            transaction_url: Grant endpoint of the AS
            redirect_url: Callback URL for the interaction finish
            access: Access rights to request
            proof_method: ``jws`` or ``jwsd``
            client_keys: Keys to use instead of persisted or generated ones
            bound_token: Request a key-bound access token
            hash_method: Interaction hash method to ask the AS for

        Returns:
            GrantOutcome: PendingGrant with a redirect, or ApprovedGrant

        Raises:
            ParameterValidationError: If a required argument is empty
        """
        if not transaction_url or not redirect_url:
            raise ParameterValidationError(
                "Missing required parameters: transaction_url, redirect_url"
            )
        if not access:
            raise ParameterValidationError("Missing required parameter: access")
        try:
            proof_method = ProofMethod(proof_method)
        except ValueError:
            raise UnsupportedProofMethodError(
                f"Unknown proof method: {proof_method}"
            ) from None
        if proof_method not in JWS_TYPES:
            raise UnsupportedProofMethodError(
                f"Proof method not supported: {proof_method.value}"
            )

        keys = self.resolve_client_keys(client_keys)
        finish_nonce = generate_nonce(32)

        grant_request = build_grant_request(
            access,
            keys,
            proof_method,
            redirect_url,
            finish_nonce,
            bound_token=bound_token,
            hash_method=hash_method,
        )

        self.storage.set_finish_nonce(finish_nonce)
        self.storage.set_proof_method(proof_method)

        logger.info(f"Starting grant negotiation at {transaction_url}")
        return await self.negotiator.negotiate(
            transaction_url, grant_request, proof_method, keys
        )
