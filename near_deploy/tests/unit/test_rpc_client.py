"""
Unit tests for the NEAR JSON-RPC client
"""

import asyncio
import base64
import json
from unittest.mock import AsyncMock, patch

import aiohttp
import pytest

from near_deploy.contracts.args import AccountIdArgs
from near_deploy.core.rpc_client import EMPTY_CODE_HASH, NearRpcClient
from near_deploy.utils.exceptions import ErrorCodes, RpcError

RPC_URL = "https://rpc.testnet.near.org"


class FakeResponse:
    def __init__(self, status=200, payload=None, text=""):
        self.status = status
        self._payload = payload
        self._text = text

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        return False

    async def json(self, content_type=None):
        return self._payload

    async def text(self):
        return self._text


class FakeSession:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.posted = []

    def post(self, url, json=None):
        self.posted.append((url, json))
        if self.error is not None:
            raise self.error
        return self.response


def unknown_account_error(account_id):
    return RpcError(
        f"RPC Error: account {account_id} does not exist while viewing",
        method="query",
        rpc_error={"name": "HANDLER_ERROR", "cause": {"name": "UNKNOWN_ACCOUNT", "info": {}}}
    )


class TestSendRequest:
    """Test JSON-RPC transport handling"""

    @pytest.mark.asyncio
    async def test_requires_context_manager(self):
        client = NearRpcClient(RPC_URL)
        with pytest.raises(RuntimeError):
            await client.status()

    @pytest.mark.asyncio
    async def test_result_returned(self):
        client = NearRpcClient(RPC_URL)
        client.session = FakeSession(FakeResponse(payload={"jsonrpc": "2.0", "id": "1", "result": {"chain_id": "testnet"}}))

        assert await client.status() == {"chain_id": "testnet"}

        url, payload = client.session.posted[0]
        assert url == RPC_URL
        assert payload["method"] == "status"
        assert payload["jsonrpc"] == "2.0"

    @pytest.mark.asyncio
    async def test_rpc_error(self):
        client = NearRpcClient(RPC_URL)
        client.session = FakeSession(FakeResponse(payload={
            "error": {"name": "HANDLER_ERROR", "cause": {"name": "UNKNOWN_ACCOUNT"}, "data": "unknown account"}
        }))

        with pytest.raises(RpcError) as exc_info:
            await client.view_account("missing.testnet")
        assert exc_info.value.cause_name == "UNKNOWN_ACCOUNT"
        assert exc_info.value.details["method"] == "query"

    @pytest.mark.asyncio
    async def test_http_error(self):
        client = NearRpcClient(RPC_URL)
        client.session = FakeSession(FakeResponse(status=503, text="unavailable"))

        with pytest.raises(RpcError) as exc_info:
            await client.status()
        assert "503" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_timeout(self):
        client = NearRpcClient(RPC_URL, timeout=1.0)
        client.session = FakeSession(error=asyncio.TimeoutError())

        with pytest.raises(RpcError) as exc_info:
            await client.status()
        assert exc_info.value.code == ErrorCodes.RPC_TIMEOUT

    @pytest.mark.asyncio
    async def test_connection_error(self):
        client = NearRpcClient(RPC_URL)
        client.session = FakeSession(error=aiohttp.ClientError("refused"))

        with pytest.raises(RpcError) as exc_info:
            await client.status()
        assert exc_info.value.code == ErrorCodes.RPC_CONNECTION_FAILED

    @pytest.mark.asyncio
    async def test_session_lifecycle(self):
        async with NearRpcClient(RPC_URL) as client:
            assert client.session is not None
        assert client.session is None


class TestQueries:
    """Test account and view-function helpers"""

    @pytest.fixture
    def client(self):
        return NearRpcClient(RPC_URL)

    @pytest.mark.asyncio
    async def test_view_account_params(self, client):
        with patch.object(client, "send_request", AsyncMock(return_value={"amount": "1"})) as mock_send:
            await client.view_account("metagallery.testnet")

        mock_send.assert_awaited_once_with("query", {
            "request_type": "view_account",
            "finality": "final",
            "account_id": "metagallery.testnet",
        })

    @pytest.mark.asyncio
    async def test_account_exists(self, client):
        with patch.object(client, "send_request", AsyncMock(return_value={"amount": "1"})):
            assert await client.account_exists("metagallery.testnet") is True

    @pytest.mark.asyncio
    async def test_account_does_not_exist(self, client):
        with patch.object(client, "send_request", AsyncMock(side_effect=unknown_account_error("nft.x.testnet"))):
            assert await client.account_exists("nft.x.testnet") is False

    @pytest.mark.asyncio
    async def test_other_errors_propagate(self, client):
        with patch.object(client, "send_request", AsyncMock(side_effect=RpcError("Connection error"))):
            with pytest.raises(RpcError):
                await client.account_exists("metagallery.testnet")

    @pytest.mark.asyncio
    async def test_view_code_hash(self, client):
        with patch.object(client, "send_request", AsyncMock(return_value={"code_hash": EMPTY_CODE_HASH})):
            assert await client.view_code_hash("empty.testnet") == EMPTY_CODE_HASH

    @pytest.mark.asyncio
    async def test_call_view_function(self, client):
        response = {"result": list(json.dumps({"symbol": "META", "decimals": 8}).encode()), "logs": []}
        with patch.object(client, "send_request", AsyncMock(return_value=response)) as mock_send:
            result = await client.call_view_function(
                "metagallery.testnet", "ft_balance_of", AccountIdArgs("cuong.metagallery.testnet")
            )

        assert result == {"symbol": "META", "decimals": 8}
        params = mock_send.call_args.args[1]
        assert params["request_type"] == "call_function"
        assert params["method_name"] == "ft_balance_of"
        assert base64.b64decode(params["args_base64"]) == b'{"account_id":"cuong.metagallery.testnet"}'

    @pytest.mark.asyncio
    async def test_call_view_function_without_args(self, client):
        with patch.object(client, "send_request", AsyncMock(return_value={"result": list(b'"0"')})) as mock_send:
            assert await client.call_view_function("metagallery.testnet", "ft_total_supply") == "0"
        assert base64.b64decode(mock_send.call_args.args[1]["args_base64"]) == b"{}"

    @pytest.mark.asyncio
    async def test_call_view_function_errors(self, client):
        with patch.object(client, "send_request", AsyncMock(return_value={"error": "MethodNotFound"})):
            with pytest.raises(RpcError):
                await client.call_view_function("metagallery.testnet", "nope")
        with patch.object(client, "send_request", AsyncMock(return_value={"result": list(b"\xff\xfe")})):
            with pytest.raises(RpcError):
                await client.call_view_function("metagallery.testnet", "raw")
        with patch.object(client, "send_request", AsyncMock(return_value={"result": []})):
            assert await client.call_view_function("metagallery.testnet", "nothing") is None
