"""Test the inbound relay endpoint."""

from __future__ import annotations

import pytest

from guildrelay.api.relay import RelayEndpoint, SubmitResult, validate_submission
from guildrelay.errors import ChannelNotFoundError, NetworkError, SendFailedError, ValidationError
from guildrelay.gateway import ChannelFilter
from tests.harness import TARGET
from tests.mocks import MockGatewaySession


@pytest.fixture
def session() -> MockGatewaySession:
    return MockGatewaySession()


@pytest.fixture
def endpoint(session: MockGatewaySession) -> RelayEndpoint:
    return RelayEndpoint(session, ChannelFilter(TARGET))


class TestValidation:
    @pytest.mark.parametrize(
        "payload",
        [{}, {"message": ""}, {"message": "   "}, {"message": None}, {"message": 5}, None, "hello", ["x"]],
    )
    def test_invalid_payloads_raise(self, payload):
        with pytest.raises(ValidationError):
            validate_submission(payload)

    def test_valid_payload_returns_text(self):
        assert validate_submission({"message": " hi "}) == " hi "

    @pytest.mark.asyncio
    @pytest.mark.parametrize("payload", [{}, {"message": ""}])
    async def test_invalid_submission_never_reaches_gateway(self, endpoint, session, payload):
        # Act
        result = await endpoint.submit(payload)

        # Assert
        assert result.to_json() == {"success": False}
        assert result.error_code == "validation"
        assert session.sent == []


class TestForwarding:
    @pytest.mark.asyncio
    async def test_success(self, endpoint, session):
        result = await endpoint.submit({"message": "hello"})

        assert result == SubmitResult(success=True)
        assert result.to_json() == {"success": True}
        assert session.sent == [(TARGET, "hello")]

    @pytest.mark.asyncio
    async def test_session_not_ready(self, endpoint, session):
        session.ready = False

        result = await endpoint.submit({"message": "hello"})

        assert result.to_json() == {"success": False}
        assert result.error_code == "gateway"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error",
        [
            ChannelNotFoundError("channel 1 not found"),
            SendFailedError("rejected"),
            NetworkError("reset"),
        ],
    )
    async def test_gateway_errors_become_flag_only(self, endpoint, session, error):
        session.error = error

        result = await endpoint.submit({"message": "hello"})

        assert result.to_json() == {"success": False}
        assert "not found" not in str(result.to_json())

    @pytest.mark.asyncio
    async def test_unexpected_exception_becomes_failure(self, session):
        class Exploding:
            async def send_to_channel(self, channel_id, text):
                raise RuntimeError("bug")

        endpoint = RelayEndpoint(Exploding(), ChannelFilter(TARGET))
        result = await endpoint.submit({"message": "hello"})
        assert result.to_json() == {"success": False}
        assert result.error_code == "internal"
