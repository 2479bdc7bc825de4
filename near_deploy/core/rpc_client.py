import asyncio
import base64
import json
import logging
from typing import Any, Dict, Optional

import aiohttp

from ..contracts.args import ContractArgs, serialize_args
from ..utils.exceptions import ErrorCodes, RpcError

LOG = logging.getLogger(__name__)

# code_hash reported for accounts without contract code
EMPTY_CODE_HASH = "11111111111111111111111111111111"


class NearRpcClient:
    """NEAR JSON-RPC client used for pre-flight and post-deploy checks"""

    def __init__(self, rpc_url: str, timeout: float = 30.0):
        self.rpc_url = rpc_url
        self.timeout = timeout
        self.session: Optional[aiohttp.ClientSession] = None
        self._request_id = 0

    async def __aenter__(self):
        self.session = aiohttp.ClientSession(
            timeout=aiohttp.ClientTimeout(total=self.timeout)
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if self.session:
            await self.session.close()
            self.session = None

    async def send_request(self, method: str, params: Any = None) -> Any:
        """Send JSON-RPC request

        Raises:
            RpcError: Request failed or returned error
        """
        if not self.session:
            raise RuntimeError("Client not initialized. Use async with statement.")

        self._request_id += 1
        payload = {
            "jsonrpc": "2.0",
            "id": str(self._request_id),
            "method": method,
            "params": params if params is not None else [],
        }

        try:
            async with self.session.post(self.rpc_url, json=payload) as response:
                if response.status != 200:
                    text = await response.text()
                    raise RpcError(
                        f"HTTP {response.status}: {text}",
                        method=method,
                        code=ErrorCodes.RPC_ERROR
                    )

                result = await response.json(content_type=None)
                if "error" in result:
                    error = result["error"]
                    message = error.get("data") or error.get("message") or str(error)
                    raise RpcError(f"RPC Error: {message}", method=method, rpc_error=error)

                return result["result"]

        except asyncio.TimeoutError:
            raise RpcError(
                f"Request timeout after {self.timeout}s",
                method=method,
                code=ErrorCodes.RPC_TIMEOUT
            )
        except aiohttp.ClientError as e:
            raise RpcError(
                f"Connection error: {e}",
                method=method,
                code=ErrorCodes.RPC_CONNECTION_FAILED,
                cause=e
            )
        except json.JSONDecodeError as e:
            raise RpcError(f"Invalid JSON response: {e}", method=method, cause=e)

    async def status(self) -> Dict:
        """Node status (chain id, latest block)"""
        return await self.send_request("status", [])

    async def _query(self, request_type: str, account_id: str, **extra) -> Dict:
        params = {
            "request_type": request_type,
            "finality": "final",
            "account_id": account_id,
        }
        params.update(extra)
        return await self.send_request("query", params)

    async def view_account(self, account_id: str) -> Dict:
        return await self._query("view_account", account_id)

    async def account_exists(self, account_id: str) -> bool:
        try:
            await self.view_account(account_id)
            return True
        except RpcError as e:
            if e.cause_name == "UNKNOWN_ACCOUNT" or "does not exist" in e.message:
                return False
            raise

    async def view_code_hash(self, account_id: str) -> str:
        account = await self.view_account(account_id)
        return account["code_hash"]

    async def call_view_function(
        self,
        account_id: str,
        method: str,
        args: Optional[ContractArgs] = None
    ) -> Any:
        """Call a view method and decode its JSON result"""
        args_json = serialize_args(args) or "{}"
        result = await self._query(
            "call_function",
            account_id,
            method_name=method,
            args_base64=base64.b64encode(args_json.encode()).decode(),
        )
        if result.get("error"):
            raise RpcError(f"View call {account_id}.{method} failed: {result['error']}", method="query")
        raw = bytes(result.get("result", []))
        if not raw:
            return None
        try:
            return json.loads(raw.decode())
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise RpcError(f"View call {account_id}.{method} returned non-JSON data", method="query", cause=e)
