import base64
import json
from unittest.mock import AsyncMock

import httpx
import pytest

from gnap.client.models.keys import ClientKeyMaterial
from gnap.client.primitives.storage import GrantSessionStorage, InMemoryKeyValueStore
from gnap.client.services.continuation import ContinuationRequester
from gnap.client.services.grant import GrantInitiator
from gnap.client.services.interaction import InteractionCallbackHandler
from gnap.client.services.negotiation import GrantNegotiator
from gnap.client.services.routing import GrantResponseRouter
from gnap.client.services.signing import GNAPRequestSigner
from gnap.client.services.transactions import GNAPTransactionManager

TRANSACTION_URL = "https://as.example.com/transaction"
REDIRECT_URL = "https://client.example.com/callback"
CONTINUE_URL = "https://as.example.com/continue/ref-123"
INTERACTION_URL = "https://as.example.com/interact/redirect/tx-1"


def _decode_segment(segment: str) -> dict:
    padded = segment + "=" * (-len(segment) % 4)
    return json.loads(base64.urlsafe_b64decode(padded))


def _pending_response_data(**interact_overrides) -> dict:
    interact = {
        "redirect": INTERACTION_URL,
        "finish": "as-finish-nonce",
        "expires_in": 300,
    }
    interact.update(interact_overrides)
    return {
        "interact": interact,
        "continue": {
            "uri": CONTINUE_URL,
            "wait": 5,
            "access_token": {"value": "continuation-token-abc"},
        },
    }


def _approved_response_data() -> dict:
    return {
        "access_token": {
            "value": "final-access-token",
            "access": ["scim-api"],
            "expires_in": 3600,
        },
        "subject": {"sub_ids": [{"format": "opaque", "id": "user-1"}]},
    }


@pytest.fixture
def client_keys() -> ClientKeyMaterial:
    return ClientKeyMaterial.generate()


@pytest.fixture
def kv_store() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore()


@pytest.fixture
def storage(kv_store) -> GrantSessionStorage:
    return GrantSessionStorage(kv_store)


@pytest.fixture
def transactions() -> GNAPTransactionManager:
    manager = GNAPTransactionManager()
    manager._http_client = AsyncMock()
    return manager


@pytest.fixture
def negotiator(storage, transactions) -> GrantNegotiator:
    return GrantNegotiator(
        GNAPRequestSigner(), transactions, GrantResponseRouter(storage)
    )


@pytest.fixture
def initiator(storage, negotiator) -> GrantInitiator:
    return GrantInitiator(storage, negotiator)


@pytest.fixture
def continuation(storage, negotiator) -> ContinuationRequester:
    return ContinuationRequester(storage, negotiator)


@pytest.fixture
def callback_handler(storage, continuation) -> InteractionCallbackHandler:
    return InteractionCallbackHandler(storage, continuation)


@pytest.fixture
def decode_segment():
    """Decode one base64url JWS segment into JSON."""
    return _decode_segment


@pytest.fixture
def pending_response_data():
    return _pending_response_data


@pytest.fixture
def approved_response_data():
    return _approved_response_data


@pytest.fixture
def json_response():
    def _json_response(status_code: int, data) -> httpx.Response:
        return httpx.Response(status_code, json=data)

    return _json_response
