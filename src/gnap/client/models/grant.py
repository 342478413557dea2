"""GNAP wire models for grant requests and grant responses.

Field names follow the GNAP core protocol JSON documents. Request models are
strict about what the client sends; response models tolerate extra fields so
that newer AS versions do not break deserialization.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ProofMethod(str, Enum):
    """Key proofing methods defined by GNAP (Section 7.3)."""

    HTTPSIG = "httpsig"
    MTLS = "mtls"
    JWSD = "jwsd"
    JWS = "jws"


class AccessTokenFlag(str, Enum):
    BEARER = "bearer"
    DURABLE = "durable"


class StartInteractionMethod(str, Enum):
    REDIRECT = "redirect"
    APP = "app"
    USER_CODE = "user_code"
    USER_CODE_URI = "user_code_uri"


class FinishInteractionMethod(str, Enum):
    REDIRECT = "redirect"
    PUSH = "push"


class HashMethod(str, Enum):
    """Hash algorithms usable for the interaction hash (IANA names)."""

    SHA_256 = "sha-256"
    SHA_512 = "sha-512"
    SHA3_256 = "sha3-256"
    SHA3_384 = "sha3-384"
    SHA3_512 = "sha3-512"


class SubjectAssertionFormat(str, Enum):
    ID_TOKEN = "id_token"
    SAML2 = "saml2"


class SubjectIdentifierFormat(str, Enum):
    ACCOUNT = "account"
    ALIASES = "aliases"
    DID = "did"
    EMAIL = "email"
    ISS_SUB = "iss_sub"
    OPAQUE = "opaque"
    PHONE_NUMBER = "phone_number"


class GNAPModel(BaseModel):
    """Base for all GNAP wire objects."""

    model_config = ConfigDict(populate_by_name=True, use_enum_values=True)

    def to_wire(self) -> dict[str, Any]:
        """Dump to the JSON-compatible dict sent over the wire."""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


# Request side


class Access(GNAPModel):
    """Rich access description for a single resource (Section 8)."""

    type: str
    actions: list[str] | None = None
    locations: list[str] | None = None
    datatypes: list[str] | None = None
    identifier: str | None = None
    privileges: list[str] | None = None


class AccessTokenRequest(GNAPModel):
    access: list[str | Access]
    label: str | None = None
    flags: list[AccessTokenFlag] | None = None


class Proof(GNAPModel):
    method: ProofMethod


class ClientKey(GNAPModel):
    proof: Proof
    jwk: dict[str, Any] | None = None
    cert: str | None = None


class Client(GNAPModel):
    key: ClientKey | str
    class_id: str | None = None


class SubjectRequest(GNAPModel):
    sub_id_formats: list[SubjectIdentifierFormat] | None = None
    assertion_formats: list[SubjectAssertionFormat] | None = None


class FinishInteraction(GNAPModel):
    method: FinishInteractionMethod
    uri: str
    nonce: str
    hash_method: HashMethod | None = None


class Hints(GNAPModel):
    ui_locales: list[str] | None = None


class InteractionRequest(GNAPModel):
    start: list[StartInteractionMethod | str]
    finish: FinishInteraction | None = None
    hints: Hints | None = None


class GrantRequest(GNAPModel):
    """Initial request sent to the grant endpoint (Section 2)."""

    access_token: AccessTokenRequest | list[AccessTokenRequest]
    client: Client | str
    subject: SubjectRequest | None = None
    user: dict[str, Any] | str | None = None
    interact: InteractionRequest | None = None


class ContinueRequestAfterInteraction(GNAPModel):
    """Continuation body sent once the interaction finished (Section 5.1)."""

    interact_ref: str


# Response side


class GNAPResponseModel(GNAPModel):
    model_config = ConfigDict(
        populate_by_name=True, use_enum_values=True, extra="allow"
    )


class AccessTokenResponse(GNAPResponseModel):
    """Access token issued by the AS (Section 3.2.1)."""

    value: str
    label: str | None = None
    manage: dict[str, Any] | str | None = None
    access: list[str | Access] | None = None
    expires_in: int | None = None
    key: dict[str, Any] | str | None = None
    flags: list[str] | None = None

    def is_bearer(self) -> bool:
        return AccessTokenFlag.BEARER.value in (self.flags or [])


class Continue(GNAPResponseModel):
    """Continuation information returned by the AS (Section 3.1)."""

    uri: str
    wait: int | None = None
    access_token: AccessTokenResponse | None = None


class InteractionResponse(GNAPResponseModel):
    """Interaction modes the AS agreed to (Section 3.3)."""

    redirect: str | None = None
    app: str | None = None
    user_code: str | dict[str, Any] | None = None
    user_code_uri: dict[str, Any] | None = None
    finish: str | None = None
    expires_in: int | None = None


class SubjectResponse(GNAPResponseModel):
    sub_ids: list[dict[str, Any]] | None = None
    assertions: list[dict[str, Any]] | None = None
    updated_at: str | None = None


class GrantError(GNAPResponseModel):
    """GNAP error object (Section 3.6)."""

    code: str
    description: str | None = None


class GrantResponse(GNAPResponseModel):
    """Response from the grant or continuation endpoint (Section 3).

    Acts as a loosely typed union; use ``classify_grant_response`` from
    ``gnap.client.models.flow`` instead of branching on the fields directly.
    """

    continue_: Continue | None = Field(default=None, alias="continue")
    access_token: AccessTokenResponse | None = None
    interact: InteractionResponse | None = None
    subject: SubjectResponse | None = None
    instance_id: str | None = None
    user_handle: str | None = None
    error: GrantError | str | None = None

    def error_message(self) -> str | None:
        """Return a readable message for the ``error`` field, if any."""
        if self.error is None:
            return None
        if isinstance(self.error, GrantError):
            if self.error.description:
                return f"{self.error.code}: {self.error.description}"
            return self.error.code
        return self.error
