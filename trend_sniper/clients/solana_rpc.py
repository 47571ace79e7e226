"""
Minimal Solana JSON-RPC client for submitting and confirming swaps
"""

import asyncio
import base64
import logging
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

import aiohttp

from trend_sniper.errors import RemoteUnavailable, TransactionFailed


@dataclass
class TokenAccount:
    """Wallet token account for one mint"""
    pubkey: str
    mint: str
    amount: int  # raw base units


class SolanaRpcClient:
    """Handles the handful of RPC calls the swap path needs"""

    def __init__(self, rpc_endpoint: str, timeout: float = 30):
        self.logger = logging.getLogger(__name__)
        self.rpc_endpoint = rpc_endpoint
        self.timeout = timeout
        self.session = None

    async def _get_session(self):
        """Get or create aiohttp session"""
        if not self.session:
            self.session = aiohttp.ClientSession(
                headers={"Content-Type": "application/json"},
                timeout=aiohttp.ClientTimeout(total=self.timeout)
            )
        return self.session

    async def _make_rpc_request(self, method: str, params: list):
        """Make RPC request and return its result field"""
        session = await self._get_session()

        payload = {
            "jsonrpc": "2.0",
            "id": 1,
            "method": method,
            "params": params
        }

        try:
            async with session.post(self.rpc_endpoint, json=payload) as response:
                response.raise_for_status()
                result = await response.json()
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            raise RemoteUnavailable(f"RPC {method} failed: {e}") from e

        if not isinstance(result, dict):
            raise RemoteUnavailable(f"RPC {method} returned unexpected body: {result!r}")
        if "error" in result:
            raise RemoteUnavailable(f"RPC {method} error: {result['error']}")
        return result.get("result")

    async def get_token_account(self, owner: str, mint: str) -> Optional[TokenAccount]:
        """Find the owner's token account for a mint, if any"""
        result = await self._make_rpc_request(
            "getTokenAccountsByOwner",
            [owner, {"mint": mint}, {"encoding": "jsonParsed"}]
        )
        accounts = (result or {}).get("value", [])
        if not accounts:
            return None

        account = accounts[0]
        try:
            info = account.get("account", {}).get("data", {}).get("parsed", {}).get("info", {})
            amount = int(info.get("tokenAmount", {}).get("amount", 0))
            return TokenAccount(pubkey=account["pubkey"], mint=mint, amount=amount)
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise RemoteUnavailable(f"Malformed token account for {mint}: {e!r}") from e

    async def send_transaction(self, tx_bytes: bytes) -> str:
        """Submit a signed transaction, returning its signature"""
        return await self._make_rpc_request(
            "sendTransaction",
            [
                base64.b64encode(tx_bytes).decode('utf-8'),
                {"encoding": "base64", "skipPreflight": True}
            ]
        )

    async def get_latest_blockhash(self, commitment: str = "finalized") -> Tuple[str, int]:
        result = await self._make_rpc_request(
            "getLatestBlockhash", [{"commitment": commitment}]
        )
        try:
            value = result["value"]
            return value["blockhash"], value["lastValidBlockHeight"]
        except (KeyError, TypeError) as e:
            raise RemoteUnavailable(f"Malformed blockhash response: {e!r}") from e

    async def get_block_height(self, commitment: str = "confirmed") -> int:
        return await self._make_rpc_request("getBlockHeight", [{"commitment": commitment}])

    async def get_signature_status(self, signature: str) -> Optional[Dict]:
        result = await self._make_rpc_request("getSignatureStatuses", [[signature]])
        statuses = (result or {}).get("value") or [None]
        return statuses[0]

    async def confirm_transaction(self, signature: str, last_valid_block_height: int,
                                  commitment: str = "confirmed",
                                  poll_interval: float = 2.0):
        """
        Wait until the signature reaches the commitment level

        Raises:
            TransactionFailed: if the transaction landed with an error or the
                blockhash expired before confirmation
        """
        accepted = ("confirmed", "finalized") if commitment == "confirmed" else ("finalized",)

        while True:
            status = await self.get_signature_status(signature)
            if status:
                if status.get("err"):
                    raise TransactionFailed(f"Transaction {signature} failed: {status['err']}")
                if status.get("confirmationStatus") in accepted:
                    return

            block_height = await self.get_block_height(commitment)
            if block_height > last_valid_block_height:
                raise TransactionFailed(f"Transaction {signature} expired before confirmation")

            await asyncio.sleep(poll_interval)

    async def get_transaction(self, signature: str) -> Optional[Dict]:
        return await self._make_rpc_request(
            "getTransaction",
            [signature, {"encoding": "json", "maxSupportedTransactionVersion": 0}]
        )

    async def close(self):
        """Close the HTTP session"""
        if self.session:
            await self.session.close()
            self.session = None
