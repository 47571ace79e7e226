"""
Swap execution through the Raydium trade API
"""

import base64
import logging
import time
from typing import Dict, List, Optional, Tuple

from solders.keypair import Keypair
from solders.transaction import Transaction, VersionedTransaction

from trend_sniper.clients.raydium_client import RaydiumClient
from trend_sniper.clients.solana_rpc import SolanaRpcClient
from trend_sniper.errors import (
    InputAccountNotFound,
    OutputAmountTooLow,
    PriorityFeeFetchFailed,
    RemoteUnavailable,
    SwapError,
    TransactionFailed,
)
from trend_sniper.utils.wallet import load_keypair

NATIVE_MINT = "So11111111111111111111111111111111111111112"
LAMPORTS_PER_SOL = 1_000_000_000

# Sentinel for "sell everything": clamped to the account balance
MAX_AMOUNT = 2 ** 53 - 1


class SwapExecutor:
    """Computes, signs, submits and confirms swaps for the owned wallet"""

    def __init__(self, config: Dict, keypair: Keypair, rpc: SolanaRpcClient,
                 raydium: RaydiumClient, metrics):
        self.logger = logging.getLogger(__name__)
        self.keypair = keypair
        self.rpc = rpc
        self.raydium = raydium
        self.metrics = metrics

        trade = config.get('trade', {})
        self.slippage_bps = trade.get('slippage_bps', 50)
        self.tx_version = trade.get('tx_version', 'V0')
        self.min_output_amount = int(trade.get('min_output_sol', 0.01) * LAMPORTS_PER_SOL)
        self.confirm_poll_interval = trade.get('confirm_poll_interval_sec', 2.0)

    @classmethod
    def from_config(cls, config: Dict, metrics) -> "SwapExecutor":
        """Wire RPC, Raydium client and wallet from the loaded config"""
        solana = config['solana']
        raydium = config.get('raydium', {})
        return cls(
            config,
            keypair=load_keypair(solana),
            rpc=SolanaRpcClient(solana['rpc_endpoint']),
            raydium=RaydiumClient(**raydium),
            metrics=metrics,
        )

    @property
    def wallet_address(self) -> str:
        return str(self.keypair.pubkey())

    async def swap(self, input_mint: str, output_mint: str, amount: int) -> bool:
        """
        Swap `amount` base units of input_mint into output_mint

        Returns True once every transaction is confirmed.

        Raises:
            SwapError: one of its subclasses describing the failed step
        """
        start_time = time.time()
        try:
            await self._swap(input_mint, output_mint, int(amount))
        except SwapError as e:
            self.metrics.inc(f"swap.failed.{e.kind.value}")
            raise

        self.metrics.inc("swap.ok")
        self.metrics.observe("swap.latency_ms", (time.time() - start_time) * 1000)
        return True

    async def _swap(self, input_mint: str, output_mint: str, amount: int):
        is_input_sol = input_mint == NATIVE_MINT
        is_output_sol = output_mint == NATIVE_MINT

        input_account = None
        if not is_input_sol:
            input_account = await self.rpc.get_token_account(self.wallet_address, input_mint)
            if input_account is None:
                raise InputAccountNotFound()
            if amount > input_account.amount:
                amount = input_account.amount
                self.logger.info(f"Input token amount exceed, set to max amount: {amount}")

        output_account = None
        if not is_output_sol:
            output_account = await self.rpc.get_token_account(self.wallet_address, output_mint)

        fee_tiers = await self.raydium.get_priority_fee()

        swap_response = await self.raydium.compute_swap(
            input_mint, output_mint, amount, self.slippage_bps, self.tx_version
        )

        try:
            output_amount = int(swap_response['data']['outputAmount'])
        except (KeyError, TypeError, ValueError) as e:
            raise RemoteUnavailable(f"Malformed swap quote: {e!r}") from e
        if output_amount < self.min_output_amount:
            raise OutputAmountTooLow(
                f"Output amount too low: {output_amount} < {self.min_output_amount}"
            )

        try:
            compute_unit_price = fee_tiers['h']
        except (KeyError, TypeError) as e:
            raise PriorityFeeFetchFailed(f"Malformed priority fee tiers: {e!r}") from e

        transactions = await self.raydium.build_swap_transactions(
            swap_response,
            wallet=self.wallet_address,
            compute_unit_price=compute_unit_price,
            tx_version=self.tx_version,
            wrap_sol=is_input_sol,
            unwrap_sol=is_output_sol,
            input_account=input_account.pubkey if input_account else None,
            output_account=output_account.pubkey if output_account else None,
        )
        self.logger.debug(f"Total {len(transactions)} transactions")

        for idx, tx_b64 in enumerate(transactions, start=1):
            try:
                raw = base64.b64decode(tx_b64, validate=True)
            except (TypeError, ValueError) as e:
                raise TransactionFailed(f"Undecodable swap transaction: {e!r}") from e
            signed = self._sign(raw)
            signature = await self.rpc.send_transaction(signed)
            _, last_valid_block_height = await self.rpc.get_latest_blockhash("finalized")
            self.logger.info(f"{idx} transaction sending..., txId: {signature}")

            await self.rpc.confirm_transaction(
                signature,
                last_valid_block_height,
                commitment="confirmed",
                poll_interval=self.confirm_poll_interval,
            )
            self.logger.info(f"{idx} transaction confirmed")

    def _sign(self, tx_bytes: bytes) -> bytes:
        try:
            return self._sign_raw(tx_bytes)
        except Exception as e:
            raise TransactionFailed(f"Cannot sign swap transaction: {e!r}") from e

    def _sign_raw(self, tx_bytes: bytes) -> bytes:
        if self.tx_version == 'V0':
            tx = VersionedTransaction.from_bytes(tx_bytes)
            return bytes(VersionedTransaction(tx.message, [self.keypair]))

        tx = Transaction.from_bytes(tx_bytes)
        tx.sign([self.keypair], tx.message.recent_blockhash)
        return bytes(tx)

    async def get_failed_transaction_logs(self, signature: str) -> Optional[Tuple[object, List[str]]]:
        """Return (error, last three log lines) if the transaction failed"""
        tx_info = await self.rpc.get_transaction(signature)
        meta = (tx_info or {}).get('meta') or {}
        if meta.get('err') and meta.get('logMessages'):
            return meta['err'], meta['logMessages'][-3:]
        return None

    async def close(self):
        await self.rpc.close()
        await self.raydium.close()
