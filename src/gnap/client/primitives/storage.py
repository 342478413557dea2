"""Session state persistence across the interaction redirect.

The negotiation has to survive the end user leaving for the AS and coming
back. State lives in a plain string key-value store injected by the host;
``GrantSessionStorage`` adds the typed, JSON-serialized slots on top.

One store holds one negotiation at a time. Concurrent negotiations sharing a
store overwrite each other and must be serialized by the caller.
"""

from __future__ import annotations

import json
import logging
import os
import stat
import time
from pathlib import Path
from typing import Any, Protocol

from pydantic import ValidationError

from gnap.client.models.errors import InvalidClientKeysError, SessionStateError
from gnap.client.models.grant import GrantRequest, GrantResponse, ProofMethod
from gnap.client.models.keys import ClientKeyMaterial

logger = logging.getLogger(__name__)

CLIENT_KEYS = "ClientKeysJWK"
TRANSACTION_URL = "TransactionURL"
GRANT_REQUEST = "GrantRequest"
GRANT_RESPONSE = "GrantResponse"
INTERACTION_EXPIRATION_TIME = "InteractionExpirationTime"
PROOF_METHOD = "ProofMethod"
FINISH_NONCE = "FinishNonce"


class KeyValueStore(Protocol):
    """Minimal string store, the shape of a browser's sessionStorage."""

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...


class InMemoryKeyValueStore:
    """Process-local store. Used by default and in tests."""

    def __init__(self, initial: dict[str, str] | None = None):
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._data)


class FileKeyValueStore:
    """Store backed by a single JSON file, chmod 0600.

    Lets a negotiation started by one process be finished by another, for
    example a CLI that exits after printing the redirect URL.
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def _load(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            return json.loads(self.path.read_text())
        except (OSError, ValueError) as e:
            raise SessionStateError(
                f"Failed to read session file {self.path}: {e}"
            ) from e

    def _save(self, data: dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(data, indent=2))
        os.chmod(self.path, stat.S_IRUSR | stat.S_IWUSR)

    def get(self, key: str) -> str | None:
        return self._load().get(key)

    def set(self, key: str, value: str) -> None:
        data = self._load()
        data[key] = value
        self._save(data)

    def delete(self, key: str) -> None:
        data = self._load()
        if key in data:
            del data[key]
            self._save(data)


class GrantSessionStorage:
    """Typed accessors for every slot a negotiation persists.

    ``get_*`` methods raise ``SessionStateError`` when a required slot is
    missing; ``find_*`` methods return None instead.
    """

    def __init__(self, store: KeyValueStore | None = None):
        self.store = store if store is not None else InMemoryKeyValueStore()

    def _get_json(self, key: str) -> Any | None:
        raw = self.store.get(key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError as e:
            raise SessionStateError(f"Corrupt session slot {key}: {e}") from e

    def _set_json(self, key: str, value: Any) -> None:
        self.store.set(key, json.dumps(value))

    def _require(self, key: str) -> Any:
        value = self._get_json(key)
        if value is None:
            raise SessionStateError(f"No {key} found in session storage")
        return value

    # Client keys

    def set_client_keys(self, keys: ClientKeyMaterial) -> None:
        self._set_json(CLIENT_KEYS, keys.to_storage())

    def find_client_keys(self) -> ClientKeyMaterial | None:
        data = self._get_json(CLIENT_KEYS)
        if data is None:
            return None
        try:
            return ClientKeyMaterial.from_storage(data)
        except InvalidClientKeysError as e:
            raise SessionStateError(str(e)) from e

    def get_client_keys(self) -> ClientKeyMaterial:
        keys = self.find_client_keys()
        if keys is None:
            raise SessionStateError(f"No {CLIENT_KEYS} found in session storage")
        return keys

    def clear_client_keys(self) -> None:
        self.store.delete(CLIENT_KEYS)

    # Transaction URL

    def set_transaction_url(self, url: str) -> None:
        self._set_json(TRANSACTION_URL, url)

    def get_transaction_url(self) -> str:
        return self._require(TRANSACTION_URL)

    def clear_transaction_url(self) -> None:
        self.store.delete(TRANSACTION_URL)

    # Grant request / response

    def set_grant_request(self, grant_request: GrantRequest) -> None:
        self._set_json(GRANT_REQUEST, grant_request.to_wire())

    def find_grant_request(self) -> GrantRequest | None:
        data = self._get_json(GRANT_REQUEST)
        if data is None:
            return None
        try:
            return GrantRequest.model_validate(data)
        except ValidationError as e:
            raise SessionStateError(f"Corrupt {GRANT_REQUEST} slot: {e}") from e

    def clear_grant_request(self) -> None:
        self.store.delete(GRANT_REQUEST)

    def set_grant_response(self, grant_response: GrantResponse) -> None:
        self._set_json(GRANT_RESPONSE, grant_response.to_wire())

    def find_grant_response(self) -> GrantResponse | None:
        data = self._get_json(GRANT_RESPONSE)
        if data is None:
            return None
        try:
            return GrantResponse.model_validate(data)
        except ValidationError as e:
            raise SessionStateError(f"Corrupt {GRANT_RESPONSE} slot: {e}") from e

    def get_grant_response(self) -> GrantResponse:
        grant_response = self.find_grant_response()
        if grant_response is None:
            raise SessionStateError(f"No {GRANT_RESPONSE} found in session storage")
        return grant_response

    def clear_grant_response(self) -> None:
        self.store.delete(GRANT_RESPONSE)

    # Interaction expiry, stored as epoch milliseconds in a string

    def set_interaction_expiration(self, expires_in: int) -> int:
        """Store ``now + expires_in`` seconds and return it in milliseconds."""
        expires_at = int(time.time() * 1000) + expires_in * 1000
        self.store.set(INTERACTION_EXPIRATION_TIME, str(expires_at))
        return expires_at

    def get_interaction_expiration(self) -> int | None:
        raw = self.store.get(INTERACTION_EXPIRATION_TIME)
        if raw is None:
            return None
        try:
            return int(raw)
        except ValueError as e:
            raise SessionStateError(
                f"Corrupt {INTERACTION_EXPIRATION_TIME} slot: {raw!r}"
            ) from e

    def clear_interaction_expiration(self) -> None:
        self.store.delete(INTERACTION_EXPIRATION_TIME)

    # Proof method and finish nonce

    def set_proof_method(self, proof_method: ProofMethod | str) -> None:
        self._set_json(PROOF_METHOD, ProofMethod(proof_method).value)

    def get_proof_method(self) -> ProofMethod:
        value = self._require(PROOF_METHOD)
        try:
            return ProofMethod(value)
        except ValueError as e:
            raise SessionStateError(f"Corrupt {PROOF_METHOD} slot: {value!r}") from e

    def clear_proof_method(self) -> None:
        self.store.delete(PROOF_METHOD)

    def set_finish_nonce(self, nonce: str) -> None:
        self._set_json(FINISH_NONCE, nonce)

    def get_finish_nonce(self) -> str:
        return self._require(FINISH_NONCE)

    def clear_finish_nonce(self) -> None:
        self.store.delete(FINISH_NONCE)

    def clear_negotiation(self) -> None:
        """Drop everything tied to one negotiation. Client keys are kept."""
        self.clear_transaction_url()
        self.clear_grant_request()
        self.clear_grant_response()
        self.clear_interaction_expiration()
        self.clear_finish_nonce()
        self.clear_proof_method()
        logger.debug("Cleared grant negotiation state from session storage")
