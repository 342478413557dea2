"""Tests for client key material normalization and validation."""

import pytest

from gnap.client.models.errors import InvalidClientKeysError, UnsupportedKeyError
from gnap.client.models.keys import ClientKeyMaterial
from gnap.client.primitives.crypto import generate_key_pair


class TestNormalize:
    def test_generated_keys_carry_kid_and_alg_on_both_halves(self) -> None:
        # Act
        keys = ClientKeyMaterial.generate()

        # Assert
        assert keys.alg == "ES256"
        assert len(keys.kid) == 32
        assert keys.private_jwk["kid"] == keys.kid
        assert keys.private_jwk["alg"] == "ES256"
        keys.validate()

    def test_missing_kid_and_alg_are_derived(self) -> None:
        # Arrange
        public_jwk, private_jwk = generate_key_pair("ES384")
        keys = ClientKeyMaterial(public_jwk=public_jwk, private_jwk=private_jwk)

        # Act
        keys.normalize()

        # Assert
        assert keys.alg == "ES384"
        assert keys.kid
        assert keys.private_jwk["kid"] == keys.kid

    def test_existing_kid_is_kept(self) -> None:
        # Arrange
        public_jwk, private_jwk = generate_key_pair()
        private_jwk["kid"] = "my-key"

        # Act
        keys = ClientKeyMaterial(public_jwk=public_jwk, private_jwk=private_jwk)
        keys.normalize()

        # Assert
        assert keys.kid == "my-key"
        assert keys.public_jwk["kid"] == "my-key"

    def test_non_ec_key_is_rejected(self) -> None:
        keys = ClientKeyMaterial(public_jwk={"kty": "RSA"}, private_jwk={"kty": "RSA"})
        with pytest.raises(UnsupportedKeyError, match="Not supported key type"):
            keys.normalize()

    def test_unknown_curve_is_rejected(self) -> None:
        keys = ClientKeyMaterial(
            public_jwk={"kty": "EC", "crv": "secp256k1"},
            private_jwk={"kty": "EC", "crv": "secp256k1", "d": "x"},
        )
        with pytest.raises(UnsupportedKeyError):
            keys.normalize()

    def test_from_private_jwk_strips_private_member(self) -> None:
        # Arrange
        _, private_jwk = generate_key_pair()

        # Act
        keys = ClientKeyMaterial.from_private_jwk(private_jwk)

        # Assert
        assert "d" not in keys.public_jwk
        assert keys.public_jwk["x"] == private_jwk["x"]
        keys.validate()


class TestValidate:
    def test_missing_private_member(self) -> None:
        # Arrange
        keys = ClientKeyMaterial.generate()
        del keys.private_jwk["d"]

        # Act & Assert
        with pytest.raises(InvalidClientKeysError, match="'d'"):
            keys.validate()

    def test_halves_must_agree_on_kid(self) -> None:
        # Arrange
        keys = ClientKeyMaterial.generate()
        keys.private_jwk["kid"] = "other"

        # Act & Assert
        with pytest.raises(InvalidClientKeysError, match="disagree on 'kid'"):
            keys.validate()

    def test_storage_form_uses_public_and_private_members(self) -> None:
        # Arrange
        keys = ClientKeyMaterial.generate()

        # Act
        restored = ClientKeyMaterial.from_storage(keys.to_storage())

        # Assert
        assert set(keys.to_storage()) == {"publicJWK", "privateJWK"}
        assert restored == keys

    def test_malformed_storage_form(self) -> None:
        with pytest.raises(InvalidClientKeysError):
            ClientKeyMaterial.from_storage({"publicJWK": {}})
