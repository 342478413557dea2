"""GNAP request signing service.

Implements the attached JWS (Section 7.3.4) and detached JWS (Section 7.3.3)
key proofing methods, including the ``ath`` access token hash for requests
bound to an access token (Section 7.2).
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any

from gnap.client.models.errors import (
    ParameterValidationError,
    UnsupportedProofMethodError,
)
from gnap.client.models.grant import GNAPModel, ProofMethod
from gnap.client.models.keys import ClientKeyMaterial
from gnap.client.primitives.crypto import get_encoded_hash, sign_compact

logger = logging.getLogger(__name__)

JOSE_CONTENT_TYPE = "application/jose"
LEGACY_JOSE_CONTENT_TYPE = "application/jose+json"
JSON_CONTENT_TYPE = "application/json"

JWS_TYPES = {
    ProofMethod.JWS: "gnap-binding+jws",
    ProofMethod.JWSD: "gnap-binding+jwsd",
}

# Methods whose body is covered by the signature
_CONTENT_METHODS = frozenset({"POST", "PUT", "PATCH"})


def serialize_body(payload: GNAPModel | dict[str, Any]) -> str:
    """Serialize a request body to compact JSON.

    The same string is signed, hashed for detached JWS and sent on the wire.
    """
    if isinstance(payload, GNAPModel):
        payload = payload.to_wire()
    return json.dumps(payload, separators=(",", ":"), ensure_ascii=False)


@dataclass(frozen=True)
class SignedRequest:
    """HTTP request envelope ready to be sent."""

    method: str
    headers: dict[str, str] = field(default_factory=dict)
    body: str = ""


class GNAPRequestSigner:
    """Builds signed request envelopes for the JWS proofing methods.

    Args:
        jose_content_type: Content type for attached JWS bodies. Some AS
            versions expect ``application/jose+json``.
    """

    def __init__(self, jose_content_type: str = JOSE_CONTENT_TYPE):
        if jose_content_type not in (JOSE_CONTENT_TYPE, LEGACY_JOSE_CONTENT_TYPE):
            raise ParameterValidationError(
                f"Unsupported JOSE content type: {jose_content_type}"
            )
        self.jose_content_type = jose_content_type

    def sign_request(
        self,
        proof_method: ProofMethod | str,
        payload: GNAPModel | dict[str, Any],
        client_keys: ClientKeyMaterial,
        htm: str,
        url: str,
        bound_access_token: str | None = None,
    ) -> SignedRequest:
        """Sign a request body with the client key.

        Args:
            proof_method: ``jws`` (attached) or ``jwsd`` (detached)
            payload: Request body
            client_keys: Normalized client key pair
            htm: HTTP method of the request
            url: Exact target URL, covered by the signature
            bound_access_token: Access token value the request is bound to

        Returns:
            SignedRequest: method, headers and body to send

        Raises:
            UnsupportedProofMethodError: For any other proof method
            SigningError: If the JWS cannot be produced
        """
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

        client_keys.validate()
        htm = htm.upper()

        protected_header: dict[str, Any] = {
            "typ": JWS_TYPES[proof_method],
            "alg": client_keys.alg,
            "kid": client_keys.kid,
            "htm": htm,
            "uri": url,
            "created": int(time.time() * 1000),
        }
        if bound_access_token:
            protected_header["ath"] = get_encoded_hash(bound_access_token)

        body = serialize_body(payload)
        signed_content = body if htm in _CONTENT_METHODS else ""

        compact = sign_compact(
            signed_content.encode("utf-8"), protected_header, client_keys.private_jwk
        )

        if proof_method == ProofMethod.JWS:
            headers = {"Content-Type": self.jose_content_type}
            request_body = compact
        else:
            header_segment, _, signature_segment = compact.split(".")
            detached = f"{header_segment}.{get_encoded_hash(body)}.{signature_segment}"
            headers = {"Content-Type": JSON_CONTENT_TYPE, "Detached-JWS": detached}
            request_body = body

        if bound_access_token:
            headers["Authorization"] = f"GNAP {bound_access_token}"

        logger.debug(
            f"Signed {htm} request to {url} with {proof_method.value} "
            f"(kid={client_keys.kid}, bound={bool(bound_access_token)})"
        )

        return SignedRequest(method=htm, headers=headers, body=request_body)
