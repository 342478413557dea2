"""Client instance key material.

A client instance is identified by its key. The pair lives independently of
any single grant negotiation and may be reused across many of them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from gnap.client.models.errors import InvalidClientKeysError, UnsupportedKeyError
from gnap.client.primitives.crypto import (
    DEFAULT_ALGORITHM,
    algorithm_for_curve,
    generate_key_pair,
    generate_nonce,
)

# Members that only exist on private JWKs (RFC 7518 Section 6)
_PRIVATE_MEMBERS = ("d", "p", "q", "dp", "dq", "qi", "oth", "k")


@dataclass
class ClientKeyMaterial:
    """Public/private JWK pair with ``kid`` and ``alg`` on both halves."""

    public_jwk: dict[str, Any] = field(default_factory=dict)
    private_jwk: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def generate(cls, alg: str = DEFAULT_ALGORITHM) -> ClientKeyMaterial:
        """Create a fresh, normalized EC key pair."""
        public_jwk, private_jwk = generate_key_pair(alg)
        return cls(public_jwk=public_jwk, private_jwk=private_jwk).normalize()

    @classmethod
    def from_private_jwk(cls, private_jwk: dict[str, Any]) -> ClientKeyMaterial:
        """Build a pair from an externally provisioned private EC JWK."""
        if "d" not in private_jwk:
            raise InvalidClientKeysError("Private JWK is missing the 'd' member")
        public_jwk = {
            k: v for k, v in private_jwk.items() if k not in _PRIVATE_MEMBERS
        }
        return cls(public_jwk=public_jwk, private_jwk=dict(private_jwk)).normalize()

    @property
    def kid(self) -> str | None:
        return self.public_jwk.get("kid")

    @property
    def alg(self) -> str | None:
        return self.public_jwk.get("alg")

    def normalize(self) -> ClientKeyMaterial:
        """Ensure ``kid`` and ``alg`` are present on both halves.

        Missing ``alg`` is derived from the curve; missing ``kid`` is a random
        32 character hex nonce. Values already on the private half win over a
        freshly generated ``kid``.

        Raises:
            UnsupportedKeyError: For non-EC keys or unknown curves
        """
        if self.public_jwk.get("kty") != "EC":
            raise UnsupportedKeyError(
                f"Not supported key type: {self.public_jwk.get('kty')}"
            )

        alg = (
            self.public_jwk.get("alg")
            or self.private_jwk.get("alg")
            or algorithm_for_curve(self.public_jwk.get("crv"))
        )
        kid = (
            self.public_jwk.get("kid")
            or self.private_jwk.get("kid")
            or generate_nonce(32)
        )

        for half in (self.public_jwk, self.private_jwk):
            half["alg"] = alg
            half["kid"] = kid

        for member in _PRIVATE_MEMBERS:
            self.public_jwk.pop(member, None)

        return self

    def validate(self) -> None:
        """Check the pair is usable for signing.

        Raises:
            InvalidClientKeysError: If members are missing or the halves disagree
        """
        if not self.public_jwk or not self.private_jwk:
            raise InvalidClientKeysError(
                "Client keys are missing a public or private JWK"
            )
        if "d" not in self.private_jwk:
            raise InvalidClientKeysError("Private JWK is missing the 'd' member")
        for member in ("kid", "alg"):
            if not self.public_jwk.get(member) or not self.private_jwk.get(member):
                raise InvalidClientKeysError(f"Client keys must have '{member}'")
            if self.public_jwk[member] != self.private_jwk[member]:
                raise InvalidClientKeysError(
                    f"Public and private JWK disagree on '{member}'"
                )
        if self.alg == "none":
            raise InvalidClientKeysError("Key algorithm must not be 'none'")

    def to_storage(self) -> dict[str, Any]:
        return {"publicJWK": self.public_jwk, "privateJWK": self.private_jwk}

    @classmethod
    def from_storage(cls, data: dict[str, Any]) -> ClientKeyMaterial:
        try:
            return cls(public_jwk=data["publicJWK"], private_jwk=data["privateJWK"])
        except (KeyError, TypeError) as e:
            raise InvalidClientKeysError(f"Malformed stored client keys: {e}") from e
