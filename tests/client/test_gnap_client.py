"""End-to-end tests for the GNAP client orchestrator."""

from unittest.mock import AsyncMock

import pytest

from gnap.client.gnap_client import GNAPClient
from gnap.client.models.errors import GrantFinalizedError, TransactionError
from gnap.client.models.flow import (
    ApprovedGrant,
    GrantState,
    PendingGrant,
    RedirectInstruction,
)
from gnap.client.primitives import storage as slots
from gnap.client.primitives.storage import InMemoryKeyValueStore
from gnap.client.services.interaction import compute_interaction_hash

TRANSACTION_URL = "https://as.example.com/transaction"
REDIRECT_URL = "https://client.example.com/callback"
INTERACTION_URL = "https://as.example.com/interact/redirect/tx-1"


class RecordingRedirectHandler:
    def __init__(self):
        self.instructions: list[RedirectInstruction] = []

    async def handle_redirect(self, instruction: RedirectInstruction) -> None:
        self.instructions.append(instruction)


class TestGNAPClient:
    def setup_method(self):
        # Arrange
        self.store = InMemoryKeyValueStore()
        self.redirects = RecordingRedirectHandler()
        self.client = GNAPClient(storage=self.store, redirect_handler=self.redirects)
        self.client.transactions._http_client = AsyncMock()
        self.http = self.client.transactions._http_client

    async def test_full_redirect_flow(
        self, json_response, pending_response_data, approved_response_data
    ):
        # Arrange
        self.http.post.return_value = json_response(200, pending_response_data())

        # Act
        pending = await self.client.request_access(
            TRANSACTION_URL, REDIRECT_URL, ["scim-api"]
        )

        # Assert
        assert isinstance(pending, PendingGrant)
        assert self.redirects.instructions == [
            RedirectInstruction(uri=INTERACTION_URL)
        ]

        # Arrange
        interact_ref = "4IFWWIKYBC2PQ6U56NL1"
        valid_hash = compute_interaction_hash(
            self.client.storage.get_finish_nonce(),
            "as-finish-nonce",
            interact_ref,
            TRANSACTION_URL,
        )
        self.http.post.return_value = json_response(200, approved_response_data())

        # Act
        approved = await self.client.handle_callback(
            f"{REDIRECT_URL}?hash={valid_hash}&interact_ref={interact_ref}"
        )

        # Assert
        assert isinstance(approved, ApprovedGrant)
        assert approved.state == GrantState.APPROVED
        assert approved.access_token.value == "final-access-token"
        assert self.store.keys() == [slots.CLIENT_KEYS]
        assert self.client.get_client_keys() is not None

    async def test_immediate_approval_skips_redirect(
        self, json_response, approved_response_data
    ):
        # Arrange
        self.http.post.return_value = json_response(200, approved_response_data())

        # Act
        outcome = await self.client.request_access(
            TRANSACTION_URL, REDIRECT_URL, ["scim-api"]
        )

        # Assert
        assert isinstance(outcome, ApprovedGrant)
        assert self.redirects.instructions == []

    async def test_client_default_proof_method(
        self, json_response, pending_response_data
    ):
        # Arrange
        client = GNAPClient(proof_method="jwsd")
        client.transactions._http_client = AsyncMock()
        client.transactions._http_client.post.return_value = json_response(
            200, pending_response_data()
        )

        # Act
        await client.request_access(TRANSACTION_URL, REDIRECT_URL, ["scim-api"])

        # Assert
        headers = client.transactions._http_client.post.call_args[1]["headers"]
        assert "Detached-JWS" in headers

    async def test_transport_errors_leave_state_for_inspection(self):
        # Arrange
        self.http.post.side_effect = TransactionError("boom")

        # Act & Assert
        with pytest.raises(TransactionError):
            await self.client.request_access(
                TRANSACTION_URL, REDIRECT_URL, ["scim-api"]
            )

        assert self.store.get(slots.FINISH_NONCE) is not None

    async def test_abandon_grant_keeps_client_keys(
        self, json_response, pending_response_data
    ):
        # Arrange
        self.http.post.return_value = json_response(200, pending_response_data())
        await self.client.request_access(TRANSACTION_URL, REDIRECT_URL, ["scim-api"])

        # Act
        self.client.abandon_grant()

        # Assert
        assert self.store.keys() == [slots.CLIENT_KEYS]

    async def test_finalized_grant_raises(self, json_response):
        # Arrange
        self.http.post.return_value = json_response(
            200, {"error": {"code": "request_denied"}}
        )

        # Act & Assert
        with pytest.raises(GrantFinalizedError, match="request_denied"):
            await self.client.request_access(
                TRANSACTION_URL, REDIRECT_URL, ["scim-api"]
            )

    async def test_context_manager_closes_transport(self):
        # Act
        async with self.client as client:
            assert client is self.client

        # Assert
        self.http.aclose.assert_awaited_once()
