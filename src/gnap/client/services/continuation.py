"""Grant continuation (GNAP Section 5).

Every continuation request is bound to the continuation access token and
signed with the key that made the original grant request. A freshly
generated key is never acceptable here.
"""

from __future__ import annotations

import logging

from gnap.client.models.errors import (
    InvalidAccessTokenError,
    KeyBindingNotImplementedError,
    ParameterValidationError,
)
from gnap.client.models.flow import GrantOutcome
from gnap.client.models.grant import (
    Continue,
    ContinueRequestAfterInteraction,
    ProofMethod,
)
from gnap.client.primitives.storage import GrantSessionStorage
from gnap.client.services.negotiation import GrantNegotiator

logger = logging.getLogger(__name__)


def validate_continuation_token(continue_obj: Continue) -> str:
    """Check the continuation token binding and return its value.

    Section 3.2.1: a token with neither the bearer flag nor a ``key`` is bound
    to the client key used in the request. A token with both must be rejected.

    Raises:
        ParameterValidationError: If the URI or token value is missing
        InvalidAccessTokenError: If both bearer flag and key are present
        KeyBindingNotImplementedError: For any other binding
    """
    token = continue_obj.access_token
    if not continue_obj.uri or token is None or not token.value:
        raise ParameterValidationError(
            "continue.uri or continue.access_token.value is missing"
        )

    is_bearer = token.is_bearer()
    has_key = token.key is not None

    if is_bearer and has_key:
        raise InvalidAccessTokenError("Not valid access token")
    if is_bearer or has_key:
        raise KeyBindingNotImplementedError(
            "Only continuation access tokens bound to the client key are implemented"
        )
    return token.value


class ContinuationRequester:
    """Sends continuation requests for pending grants."""

    def __init__(self, storage: GrantSessionStorage, negotiator: GrantNegotiator):
        self.storage = storage
        self.negotiator = negotiator

    async def continue_grant(
        self,
        continue_obj: Continue,
        proof_method: ProofMethod | str,
        interact_ref: str,
    ) -> GrantOutcome:
        """Continue a grant after the interaction finished.

        Args:
            continue_obj: ``continue`` object from the pending grant response
            proof_method: Proof method of the original request
            interact_ref: Interaction reference from the callback URL

        Returns:
            GrantOutcome: Routed response of the continuation request

        Raises:
            ParameterValidationError: Missing URI, token or interaction reference
            InvalidAccessTokenError: Ambiguous token binding
            KeyBindingNotImplementedError: Unsupported token binding
            SessionStateError: No persisted client keys
        """
        token_value = validate_continuation_token(continue_obj)
        if not interact_ref:
            raise ParameterValidationError("Missing required parameter: interact_ref")

        client_keys = self.storage.get_client_keys()
        body = ContinueRequestAfterInteraction(interact_ref=interact_ref)

        logger.debug(f"Continuing grant at {continue_obj.uri}")
        return await self.negotiator.negotiate(
            continue_obj.uri,
            body,
            proof_method,
            client_keys,
            bound_access_token=token_value,
        )
