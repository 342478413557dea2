"""Exception hierarchy for GNAP grant negotiation errors.

Provides specific exception types for different failure modes to enable
precise error handling and recovery strategies.
"""

from __future__ import annotations


class GNAPError(Exception):
    """Base exception for all GNAP client errors."""

    pass


class ParameterValidationError(GNAPError):
    """Raised when a required caller input is missing or empty.

    Always raised before any cryptographic or network work is done.
    """

    pass


class ProtocolViolationError(GNAPError):
    """Raised when a request or response contradicts the GNAP protocol."""

    pass


class UnsupportedProofMethodError(ProtocolViolationError):
    """Raised when a proof method other than attached or detached JWS is used."""

    pass


class InvalidAccessTokenError(ProtocolViolationError):
    """Raised when an access token carries both the bearer flag and a key.

    The binding of such a token is ambiguous and the client must reject it.
    """

    pass


class TransactionError(GNAPError):
    """Raised when a request to the authorization server fails.

    Covers network failures, non-2xx responses and bodies that cannot be
    deserialized. ``details`` holds the AS supplied message when present.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        details: str | None = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.details = details


class GrantFinalizedError(GNAPError):
    """Raised when the AS response puts the grant in the finalized state."""

    def __init__(self, message: str, outcome=None):
        super().__init__(message)
        self.outcome = outcome


class GrantFlowError(GNAPError):
    """Raised when a successful response is logically inconsistent with the flow.

    For example a continuation after interaction that returns no access token.
    """

    pass


class InteractionCallbackError(GNAPError):
    """Raised when the interaction callback URL is malformed or incomplete."""

    pass


class InteractionHashError(InteractionCallbackError):
    """Raised when the callback hash does not match the recomputed hash.

    This indicates a forged callback or one belonging to another negotiation.
    """

    pass


class InteractionExpiredError(InteractionCallbackError):
    """Raised when the callback arrives after the interaction expired."""

    pass


class NotImplementedFeatureError(GNAPError, NotImplementedError):
    """Raised for protocol features this client deliberately does not handle."""

    pass


class InteractionNotImplementedError(NotImplementedFeatureError):
    """Raised when the AS offers only unsupported interaction start modes."""

    pass


class KeyBindingNotImplementedError(NotImplementedFeatureError):
    """Raised when a continuation token uses an unsupported key binding."""

    pass


class ClientKeyError(GNAPError):
    """Raised when client key material cannot be used."""

    pass


class InvalidClientKeysError(ClientKeyError):
    """Raised when a key pair is incomplete or its halves disagree."""

    pass


class UnsupportedKeyError(ClientKeyError):
    """Raised for key types or curves without a JWS algorithm mapping."""

    pass


class SigningError(GNAPError):
    """Raised when a request cannot be signed."""

    pass


class SessionStateError(GNAPError):
    """Raised when required session state is missing or corrupt."""

    pass
