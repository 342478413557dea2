import base64
import hashlib
import string

import pytest
from jwcrypto import jwk, jws

from gnap.client.models.errors import UnsupportedKeyError
from gnap.client.primitives.crypto import (
    algorithm_for_curve,
    generate_key_pair,
    generate_nonce,
    get_encoded_hash,
    sign_compact,
)


class TestNonceGeneration:
    def test_nonce_is_hex_of_requested_length(self) -> None:
        # Act
        nonce = generate_nonce(32)

        # Assert
        assert len(nonce) == 32
        assert all(c in string.hexdigits.lower() for c in nonce)

    def test_nonces_are_unique(self) -> None:
        assert generate_nonce() != generate_nonce()


class TestEncodedHash:
    def test_sha256_is_urlsafe_base64_without_padding(self) -> None:
        # Arrange
        expected = (
            base64.urlsafe_b64encode(hashlib.sha256(b"token-value").digest())
            .decode("ascii")
            .rstrip("=")
        )

        # Act
        encoded = get_encoded_hash("token-value")

        # Assert
        assert encoded == expected
        assert "=" not in encoded
        assert "+" not in encoded and "/" not in encoded

    def test_alternative_hash_method(self) -> None:
        expected = (
            base64.urlsafe_b64encode(hashlib.sha3_512(b"abc").digest())
            .decode("ascii")
            .rstrip("=")
        )
        assert get_encoded_hash("abc", "sha3-512") == expected

    def test_unknown_hash_method_is_rejected(self) -> None:
        with pytest.raises(ValueError, match="Unsupported hash method"):
            get_encoded_hash("abc", "md5")


class TestKeysAndSigning:
    def test_curve_to_algorithm_mapping(self) -> None:
        assert algorithm_for_curve("P-256") == "ES256"
        assert algorithm_for_curve("P-384") == "ES384"
        assert algorithm_for_curve("P-521") == "ES512"

    def test_unknown_curve_is_rejected(self) -> None:
        with pytest.raises(UnsupportedKeyError, match="Not supported curve"):
            algorithm_for_curve("Ed25519")

    def test_generated_pair_has_private_member_only_on_private_half(self) -> None:
        # Act
        public_jwk, private_jwk = generate_key_pair("ES256")

        # Assert
        assert public_jwk["kty"] == "EC"
        assert public_jwk["crv"] == "P-256"
        assert "d" not in public_jwk
        assert "d" in private_jwk

    def test_signed_payload_verifies_with_public_key(self) -> None:
        # Arrange
        public_jwk, private_jwk = generate_key_pair("ES256")
        header = {"alg": "ES256", "typ": "gnap-binding+jws"}

        # Act
        compact = sign_compact(b'{"hello":"world"}', header, private_jwk)

        # Assert
        token = jws.JWS()
        token.deserialize(compact)
        token.verify(jwk.JWK(**public_jwk))
        assert token.payload == b'{"hello":"world"}'
