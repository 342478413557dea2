"""Grant negotiation state models.

A grant response is a bag of optional fields. ``classify_grant_response``
turns it into exactly one of ``PendingGrant``, ``ApprovedGrant`` or
``FinalizedGrant`` so downstream code never branches on raw field
combinations.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Union

from gnap.client.models.grant import AccessTokenResponse, GrantResponse


class GrantState(str, Enum):
    """Client-visible grant states (GNAP Section 1.5)."""

    PENDING = "pending"
    APPROVED = "approved"
    FINALIZED = "finalized"


@dataclass(frozen=True)
class RedirectInstruction:
    """Instruction to navigate the end user's browser to ``uri``.

    Returning this instead of navigating keeps the negotiation host-agnostic.
    Once followed, the caller must not expect to keep running in the same
    page context.
    """

    uri: str


@dataclass(frozen=True)
class PendingGrant:
    response: GrantResponse
    redirect: RedirectInstruction | None = None
    expires_at: int | None = None  # epoch milliseconds

    state = GrantState.PENDING


@dataclass(frozen=True)
class ApprovedGrant:
    response: GrantResponse

    state = GrantState.APPROVED

    @property
    def access_token(self) -> AccessTokenResponse | None:
        return self.response.access_token


@dataclass(frozen=True)
class FinalizedGrant:
    response: GrantResponse
    error: str

    state = GrantState.FINALIZED


GrantOutcome = Union[PendingGrant, ApprovedGrant, FinalizedGrant]


def classify_grant_response(response: GrantResponse) -> GrantOutcome:
    """Classify a grant response into its negotiation state.

    ``interact`` always wins: a response asking for interaction is never
    treated as complete, whatever else it carries.
    """
    if response.interact is not None:
        redirect = None
        if response.interact.redirect:
            redirect = RedirectInstruction(uri=response.interact.redirect)
        return PendingGrant(response=response, redirect=redirect)

    if response.error is not None:
        return FinalizedGrant(response=response, error=response.error_message())

    if response.access_token is not None or response.subject is not None:
        return ApprovedGrant(response=response)

    return FinalizedGrant(
        response=response,
        error="Grant response contains neither interaction nor access",
    )
