"""Cryptographic primitives for GNAP clients.

Nonce generation, URL-safe hashing, EC key generation and JWS compact signing.
Everything above this module treats these as opaque capabilities.
"""

from __future__ import annotations

import base64
import hashlib
import secrets
from typing import Any

from jwcrypto import jwk, jws
from jwcrypto.common import JWException, json_encode

from gnap.client.models.errors import SigningError, UnsupportedKeyError
from gnap.client.models.grant import HashMethod

DEFAULT_ALGORITHM = "ES256"

# RFC 7518 Section 3.1
CURVE_ALGORITHMS = {
    "P-256": "ES256",
    "P-384": "ES384",
    "P-521": "ES512",
}

_HASHLIB_NAMES = {
    HashMethod.SHA_256.value: "sha256",
    HashMethod.SHA_512.value: "sha512",
    HashMethod.SHA3_256.value: "sha3_256",
    HashMethod.SHA3_384.value: "sha3_384",
    HashMethod.SHA3_512.value: "sha3_512",
}


def generate_nonce(length: int = 32) -> str:
    """Generate a random lowercase hex string of ``length`` characters."""
    return secrets.token_hex((length + 1) // 2)[:length]


def base64url_encode(data: bytes) -> str:
    """URL-safe Base64 without padding."""
    return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")


def get_encoded_hash(
    value: str, hash_method: HashMethod | str = HashMethod.SHA_256
) -> str:
    """Hash ``value`` and return it URL-safe Base64 encoded without padding.

    Args:
        value: Text to hash, encoded as UTF-8
        hash_method: GNAP hash method name (default sha-256)

    Returns:
        Encoded digest

    Raises:
        ValueError: If the hash method is unknown
    """
    method = hash_method.value if isinstance(hash_method, HashMethod) else hash_method
    try:
        name = _HASHLIB_NAMES[method]
    except KeyError:
        raise ValueError(f"Unsupported hash method: {method}") from None

    digest = hashlib.new(name, value.encode("utf-8")).digest()
    return base64url_encode(digest)


def algorithm_for_curve(crv: str | None) -> str:
    try:
        return CURVE_ALGORITHMS[crv]
    except KeyError:
        raise UnsupportedKeyError(f"Not supported curve: {crv}") from None


def generate_key_pair(alg: str = DEFAULT_ALGORITHM) -> tuple[dict, dict]:
    """Generate an EC key pair for a JWS algorithm.

    Returns:
        Tuple of (public_jwk, private_jwk) as plain dicts
    """
    curves = {v: k for k, v in CURVE_ALGORITHMS.items()}
    if alg not in curves:
        raise UnsupportedKeyError(f"Not supported algorithm: {alg}")

    key = jwk.JWK.generate(kty="EC", crv=curves[alg])
    return key.export_public(as_dict=True), key.export_private(as_dict=True)


def sign_compact(
    payload: bytes, protected_header: dict[str, Any], private_jwk: dict[str, Any]
) -> str:
    """Sign ``payload`` and return the JWS compact serialization.

    Raises:
        SigningError: If the key cannot be imported or signing fails
    """
    try:
        key = jwk.JWK(**private_jwk)
        token = jws.JWS(payload)
        token.add_signature(key, None, json_encode(protected_header), None)
        return token.serialize(compact=True)
    except (JWException, ValueError, TypeError) as e:
        raise SigningError(f"Failed to sign request: {e}") from e
