"""
Solana JSON-RPC client

Minimal HTTP client for reading account data:
- getAccountInfo: one account
- getMultipleAccounts: up to 100 accounts per request

Account data is always requested as base64.

Docs: https://solana.com/docs/rpc/http
"""

import base64
import logging
from typing import List, Optional, Sequence

import requests

from config import DEFAULT_RPC_TIMEOUT, MAX_ACCOUNTS_PER_REQUEST
from .exceptions import AccountNotFoundError, RpcTimeoutError, SolanaRpcError
from .pda import PubkeyLike, decode_pubkey, encode_pubkey

logger = logging.getLogger(__name__)


def _to_base58(address: PubkeyLike) -> str:
    """Validate and normalize an address for the RPC."""
    return encode_pubkey(decode_pubkey(address))


class SolanaRpcClient:
    """
    Read-only Solana RPC client.

    Usage:
        client = SolanaRpcClient("https://api.mainnet-beta.solana.com")
        data = client.get_account_data(pool_id)
        accounts = client.get_multiple_accounts([addr1, addr2])
    """

    def __init__(self, rpc_url: str, timeout: float = DEFAULT_RPC_TIMEOUT,
                 session: Optional[requests.Session] = None):
        self.rpc_url = rpc_url
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({
            "Content-Type": "application/json",
            "Accept": "application/json",
        })
        self._request_id = 0

    def _call(self, method: str, params: list):
        """
        One JSON-RPC 2.0 call.

        Returns:
            The "result" member of the response

        Raises:
            RpcTimeoutError: request timed out
            SolanaRpcError: transport failure, non-200, bad JSON, or an error object
        """
        self._request_id += 1
        payload = {
            "jsonrpc": "2.0",
            "id": self._request_id,
            "method": method,
            "params": params,
        }

        try:
            resp = self.session.post(self.rpc_url, json=payload, timeout=self.timeout)
        except requests.exceptions.Timeout:
            raise RpcTimeoutError(f"Timeout calling {method} ({self.timeout}s)")
        except requests.exceptions.RequestException as e:
            raise SolanaRpcError(f"Request failed: {e}")

        if resp.status_code != 200:
            raise SolanaRpcError(f"HTTP {resp.status_code}: {resp.text[:500]}")

        try:
            body = resp.json()
        except ValueError:
            raise SolanaRpcError(f"Invalid JSON response to {method}")

        if not isinstance(body, dict):
            raise SolanaRpcError(f"Unexpected response to {method}: {str(body)[:100]}")

        error = body.get("error")
        if isinstance(error, dict):
            raise SolanaRpcError(error.get("message", "Unknown error"), code=error.get("code"))
        if error:
            raise SolanaRpcError(str(error))
        if "result" not in body:
            raise SolanaRpcError(f"No result in response to {method}")
        return body["result"]

    @staticmethod
    def _decode_account(value: Optional[dict]) -> Optional[bytes]:
        if value is None:
            return None
        data = value.get("data")
        if not isinstance(data, list) or len(data) != 2 or data[1] != "base64":
            raise SolanaRpcError(f"Unexpected account data encoding: {str(data)[:100]}")
        return base64.b64decode(data[0])

    def get_account_info(self, address: PubkeyLike) -> Optional[bytes]:
        """Account data, or None if the account does not exist."""
        address = _to_base58(address)
        result = self._call("getAccountInfo", [address, {"encoding": "base64"}])
        return self._decode_account(result.get("value"))

    def get_account_data(self, address: PubkeyLike) -> bytes:
        """
        Account data of an account that must exist.

        Raises:
            AccountNotFoundError: no such account
        """
        data = self.get_account_info(address)
        if data is None:
            raise AccountNotFoundError(_to_base58(address))
        logger.debug(f"Fetched {len(data)} bytes for {_to_base58(address)}")
        return data

    def get_multiple_accounts(self, addresses: Sequence[PubkeyLike]) -> List[Optional[bytes]]:
        """
        Account data for many addresses, in input order (None for missing ones).

        Split into requests of MAX_ACCOUNTS_PER_REQUEST keys.
        """
        keys = [_to_base58(address) for address in addresses]
        accounts: List[Optional[bytes]] = []
        for offset in range(0, len(keys), MAX_ACCOUNTS_PER_REQUEST):
            batch = keys[offset:offset + MAX_ACCOUNTS_PER_REQUEST]
            result = self._call("getMultipleAccounts", [batch, {"encoding": "base64"}])
            values = result.get("value") or []
            if len(values) != len(batch):
                raise SolanaRpcError(
                    f"getMultipleAccounts returned {len(values)} accounts for {len(batch)} keys"
                )
            accounts.extend(self._decode_account(value) for value in values)
        logger.debug(
            f"getMultipleAccounts: {len(keys)} keys, "
            f"{sum(1 for a in accounts if a is not None)} found"
        )
        return accounts
