"""
Raydium trade API client: priority fees, swap quotes and swap transactions
"""

import asyncio
import logging
from typing import Dict, List, Optional

import aiohttp

from trend_sniper.errors import (
    PriorityFeeFetchFailed,
    RemoteUnavailable,
    RouteComputeFailed,
    TransactionFailed,
)

BASE_HOST = "https://api-v3.raydium.io"
SWAP_HOST = "https://transaction-v1.raydium.io"
PRIORITY_FEE_PATH = "/main/auto-fee"


class RaydiumClient:
    """Thin wrapper over the Raydium compute and transaction endpoints"""

    def __init__(self, base_host: str = BASE_HOST, swap_host: str = SWAP_HOST,
                 priority_fee_path: str = PRIORITY_FEE_PATH, timeout: float = 15):
        self.logger = logging.getLogger(__name__)
        self.base_host = base_host.rstrip('/')
        self.swap_host = swap_host.rstrip('/')
        self.priority_fee_path = priority_fee_path
        self.timeout = timeout
        self.session = None

    async def _get_session(self):
        if not self.session:
            self.session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout)
            )
        return self.session

    async def _request(self, method: str, url: str, **kwargs) -> Dict:
        session = await self._get_session()
        try:
            async with session.request(method, url, **kwargs) as response:
                response.raise_for_status()
                data = await response.json()
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            raise RemoteUnavailable(f"{method} {url} failed: {e}") from e

        if not isinstance(data, dict):
            raise RemoteUnavailable(f"{method} {url} returned unexpected body: {data!r}")
        return data

    async def get_priority_fee(self) -> Dict[str, int]:
        """
        Get statistical priority fee tiers

        Returns:
            {'vh': very high, 'h': high, 'm': medium} in micro-lamports
        """
        data = await self._request("GET", f"{self.base_host}{self.priority_fee_path}")
        if not data.get('success'):
            raise PriorityFeeFetchFailed()
        try:
            return data['data']['default']
        except (KeyError, TypeError) as e:
            raise PriorityFeeFetchFailed(f"Malformed priority fee response: {e!r}") from e

    async def compute_swap(self, input_mint: str, output_mint: str, amount: int,
                           slippage_bps: int, tx_version: str) -> Dict:
        """Request a swap-base-in route quote"""
        swap_response = await self._request(
            "GET",
            f"{self.swap_host}/compute/swap-base-in",
            params={
                'inputMint': input_mint,
                'outputMint': output_mint,
                'amount': str(amount),
                'slippageBps': str(slippage_bps),
                'txVersion': tx_version,
            }
        )
        if not swap_response.get('success'):
            self.logger.error(f"Compute swap failed, msg: {swap_response.get('msg')}")
            raise RouteComputeFailed()
        return swap_response

    async def build_swap_transactions(self, swap_response: Dict, wallet: str,
                                      compute_unit_price: int, tx_version: str,
                                      wrap_sol: bool, unwrap_sol: bool,
                                      input_account: Optional[str] = None,
                                      output_account: Optional[str] = None) -> List[str]:
        """Request the serialized, unsigned transactions for a quote"""
        payload = {
            'computeUnitPriceMicroLamports': str(compute_unit_price),
            'swapResponse': swap_response,
            'txVersion': tx_version,
            'wallet': wallet,
            'wrapSol': wrap_sol,
            'unwrapSol': unwrap_sol,
        }
        if input_account:
            payload['inputAccount'] = input_account
        if output_account:
            payload['outputAccount'] = output_account

        data = await self._request(
            "POST", f"{self.swap_host}/transaction/swap-base-in", json=payload
        )
        if not data.get('success'):
            raise TransactionFailed(f"Build swap transaction failed: {data.get('msg')}")
        try:
            return [tx['transaction'] for tx in data['data']]
        except (KeyError, TypeError) as e:
            raise TransactionFailed(f"Malformed swap transaction response: {e!r}") from e

    async def close(self):
        if self.session:
            await self.session.close()
            self.session = None
