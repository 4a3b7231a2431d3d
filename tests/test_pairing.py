"""Tests for token and PIN pairing."""

import errno
import json

import pytest
from conftest import FakeSession
from const import SamsungConfig
from errors import ErrorKind, SamsungTvError
from pairing import PinPairing, TokenPairing
from rest import SamsungRest

PIN_PAGE_URL = "http://192.168.1.20:8080/ws/apps/CloudPINPage"


class TestTokenPairing:
    """Tests for TokenPairing."""

    @pytest.mark.asyncio
    async def test_request_token(self, token_config: SamsungConfig, session: FakeSession) -> None:
        """Test that the granted token is returned."""
        token_config.token = None
        session.ack_token = "55512345"

        token = await TokenPairing(token_config, session).request_token()

        assert token == "55512345"
        assert session.ws_urls[0].startswith("wss://192.168.1.20:8002/")
        assert "token=" not in session.ws_urls[0]
        assert session.sockets[0].closed

    @pytest.mark.asyncio
    async def test_no_token_granted(self, token_config: SamsungConfig, session: FakeSession) -> None:
        """Test that a connect without token fails."""
        with pytest.raises(SamsungTvError) as exc_info:
            await TokenPairing(token_config, session).request_token()

        assert exc_info.value.kind == ErrorKind.PAIRING_FAILED

    @pytest.mark.asyncio
    async def test_access_denied(self, token_config: SamsungConfig, session: FakeSession) -> None:
        """Test that a close with status 1005 fails the pairing with its reason."""
        token_config.token = None
        session.on_connect = lambda ws: ws.push_close(1005)

        with pytest.raises(SamsungTvError) as exc_info:
            await TokenPairing(token_config, session).request_token()

        assert exc_info.value.kind == ErrorKind.PAIRING_FAILED
        assert "access must be allowed" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_connect_error(self, token_config: SamsungConfig, session: FakeSession) -> None:
        """Test that transport errors fail the pairing."""
        session.connect_error = OSError(errno.ECONNREFUSED, "Connection refused")

        with pytest.raises(SamsungTvError) as exc_info:
            await TokenPairing(token_config, session).request_token()

        assert exc_info.value.kind == ErrorKind.PAIRING_FAILED
        assert "connection" in str(exc_info.value).lower()

    @pytest.mark.asyncio
    async def test_user_does_not_answer(
        self, token_config: SamsungConfig, session: FakeSession
    ) -> None:
        """Test that pairing gives up after the timeout."""
        session.on_connect = lambda ws: None

        with pytest.raises(SamsungTvError) as exc_info:
            await TokenPairing(token_config, session, timeout=0.05).request_token()

        assert exc_info.value.kind == ErrorKind.PAIRING_FAILED
        assert session.sockets[0].closed


def _auth_response(**fields) -> dict:
    return {"auth_data": json.dumps({"auth_type": "SPC", **fields})}


class TestPinPairing:
    """Tests for PinPairing."""

    @pytest.fixture
    def pairing(self, config: SamsungConfig, session: FakeSession) -> PinPairing:
        """Return a PIN pairing using the fake session."""
        return PinPairing(config, SamsungRest(config, session), device_id="client-42")

    @pytest.mark.asyncio
    async def test_pin_flow(self, pairing: PinPairing, session: FakeSession) -> None:
        """Test the complete challenge."""
        session.route("POST", "CloudPINPage")
        session.route("DELETE", "CloudPINPage/run")
        session.route("GET", "step=0")
        session.route("POST", "step=1", body=_auth_response(request_id="0"))
        session.route("POST", "step=2", body=_auth_response(session_id="9"))

        async with pairing.pin_session() as pin_session:
            identity = await pin_session.confirm("1234")

        assert identity == {"session_id": "9", "request_id": "0", "device_id": "client-42"}
        assert pairing.identity == identity
        assert session.calls() == [
            ("POST", PIN_PAGE_URL),
            (
                "GET",
                "http://192.168.1.20:8080/ws/pairing?step=0"
                "&app_id=721b6fce-4ee6-48ba-8045-955a539edadb&device_id=client-42&type=1",
            ),
            (
                "POST",
                "http://192.168.1.20:8080/ws/pairing?step=1"
                "&app_id=721b6fce-4ee6-48ba-8045-955a539edadb&device_id=client-42",
            ),
            (
                "POST",
                "http://192.168.1.20:8080/ws/pairing?step=2"
                "&app_id=721b6fce-4ee6-48ba-8045-955a539edadb&device_id=client-42",
            ),
            ("DELETE", f"{PIN_PAGE_URL}/run"),
        ]
        pin_request = session.requests[2][2]["json"]
        assert pin_request["auth_Data"]["GeneratorServerHello"] == "1234"
        ack_request = session.requests[3][2]["json"]
        assert ack_request["auth_Data"]["request_id"] == "0"

    @pytest.mark.asyncio
    async def test_wrong_pin_hides_page(self, pairing: PinPairing, session: FakeSession) -> None:
        """Test that the PIN page is hidden when the PIN is rejected."""
        session.route("POST", "CloudPINPage")
        session.route("DELETE", "CloudPINPage/run")
        session.route("GET", "step=0")
        session.route("POST", "step=1", body=_auth_response())

        with pytest.raises(SamsungTvError) as exc_info:
            async with pairing.pin_session() as pin_session:
                await pin_session.confirm("0000")

        assert exc_info.value.kind == ErrorKind.PAIRING_FAILED
        assert pairing.identity is None
        assert session.calls("DELETE") == [("DELETE", f"{PIN_PAGE_URL}/run")]

    @pytest.mark.asyncio
    async def test_missing_session_id(self, pairing: PinPairing, session: FakeSession) -> None:
        """Test that an acknowledgement without session fails."""
        session.route("POST", "step=2", body={"auth_data": {"auth_type": "SPC"}})

        with pytest.raises(SamsungTvError) as exc_info:
            await pairing.acknowledge_request_id("0")

        assert exc_info.value.kind == ErrorKind.PAIRING_FAILED

    @pytest.mark.asyncio
    async def test_hide_failure_is_not_raised(
        self, pairing: PinPairing, session: FakeSession
    ) -> None:
        """Test that a failing hide does not mask the pairing result."""
        session.route("POST", "CloudPINPage")
        session.route("GET", "step=0")
        session.route("POST", "step=1", body=_auth_response(request_id="3"))
        session.route("POST", "step=2", body=_auth_response(session_id="4"))

        async with pairing.pin_session() as pin_session:
            await pin_session.confirm("1234")

        assert pin_session.identity["session_id"] == "4"
        assert len(session.calls("DELETE")) == 1

    @pytest.mark.asyncio
    async def test_pin_page_unavailable(self, pairing: PinPairing, session: FakeSession) -> None:
        """Test that a TV without PIN page fails early."""
        with pytest.raises(SamsungTvError) as exc_info:
            async with pairing.pin_session():
                pass

        assert exc_info.value.kind == ErrorKind.HTTP_NOT_FOUND
        assert [m for m, _ in session.calls()] == ["POST", "DELETE"]
