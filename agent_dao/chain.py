"""
Stacks API Client
=================
The REST calls the deployer depends on: nonces, balances, broadcast
and transaction status.

Transport failures and unexpected responses raise RemoteError.
"""

from typing import Optional

import httpx

from .errors import RemoteError

# tx_status values that will never turn into success
REJECTED_STATUSES = {"abort_by_response", "abort_by_post_condition"}


class StacksAPIClient:
    """
    Async client for a Stacks API node (Hiro API compatible).

    Usage:
        async with StacksAPIClient(api_url) as chain:
            nonce = await chain.get_next_nonce(address)
    """

    def __init__(
        self,
        api_url: str = "https://api.testnet.hiro.so",
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.api_url = api_url.rstrip("/")
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def __aenter__(self) -> "StacksAPIClient":
        return self

    async def __aexit__(self, *exc):
        await self.aclose()

    async def aclose(self):
        await self._client.aclose()

    async def _get(self, path: str) -> httpx.Response:
        try:
            return await self._client.get(f"{self.api_url}{path}")
        except httpx.HTTPError as e:
            raise RemoteError(f"GET {path} failed: {e}") from e

    @staticmethod
    def _json(resp: httpx.Response, what: str):
        try:
            return resp.json()
        except ValueError as e:
            raise RemoteError(f"Malformed {what} response: {e}") from e

    async def get_next_nonce(self, address: str) -> int:
        """Next nonce the chain will accept for `address`."""
        resp = await self._get(f"/extended/v1/address/{address}/nonces")
        if resp.status_code != 200:
            raise RemoteError(f"Failed to get nonce: HTTP {resp.status_code}")
        data = self._json(resp, "nonce")
        try:
            return int(data["possible_next_nonce"])
        except (KeyError, TypeError, ValueError) as e:
            raise RemoteError(f"Malformed nonce response: missing or invalid {e}") from e

    async def get_stx_balance(self, address: str) -> int:
        """STX balance in microSTX."""
        resp = await self._get(f"/extended/v1/address/{address}/balances")
        if resp.status_code != 200:
            raise RemoteError(f"Failed to get balance: HTTP {resp.status_code}")
        data = self._json(resp, "balance")
        try:
            return int(data["stx"]["balance"])
        except (KeyError, TypeError, ValueError) as e:
            raise RemoteError(f"Malformed balance response: missing or invalid {e}") from e

    async def get_tx_status(self, tx_id: str) -> Optional[dict]:
        """
        Fetch a transaction.

        Returns None while the node has not seen it yet (HTTP 404),
        otherwise a dict with `status` and `result` (the repr of the
        transaction result, if any).
        """
        resp = await self._get(f"/extended/v1/tx/{tx_id}")
        if resp.status_code == 404:
            return None
        if resp.status_code != 200:
            raise RemoteError(f"Failed to get tx {tx_id}: HTTP {resp.status_code}")
        data = self._json(resp, "transaction")
        if not isinstance(data, dict):
            raise RemoteError(f"Malformed transaction response for {tx_id}")
        return {
            "status": data.get("tx_status", "unknown"),
            "result": (data.get("tx_result") or {}).get("repr"),
        }

    async def broadcast(self, raw_tx: bytes) -> str:
        """Broadcast a signed transaction, returning its tx id."""
        try:
            resp = await self._client.post(
                f"{self.api_url}/v2/transactions",
                content=raw_tx,
                headers={"Content-Type": "application/octet-stream"},
            )
        except httpx.HTTPError as e:
            raise RemoteError(f"Broadcast failed: {e}") from e

        try:
            data = resp.json()
        except ValueError:
            data = resp.text.strip().strip('"')

        if resp.status_code == 200 and isinstance(data, dict) and data.get("txid"):
            return str(data["txid"])
        if resp.status_code != 200 or isinstance(data, dict):
            if isinstance(data, dict):
                reason = data.get("reason") or data.get("error") or "unknown"
                error = data.get("error", "rejected")
                raise RemoteError(f"Broadcast rejected: {error} ({reason})")
            raise RemoteError(f"Broadcast rejected: HTTP {resp.status_code}")

        if not isinstance(data, str) or not data:
            raise RemoteError(f"Broadcast returned no tx id: {resp.text[:100]!r}")
        return data
