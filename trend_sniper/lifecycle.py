"""
Buy/sell lifecycle for discovered trend tokens

Per token: Discovered -> BoughtIn -> SellScheduled -> SoldOut, with
bought_in=False recording a skipped (too late) or failed buy.
"""

import logging
import time
from datetime import datetime
from typing import Callable, Dict

from trend_sniper.errors import SwapError
from trend_sniper.execution import LAMPORTS_PER_SOL, MAX_AMOUNT, NATIVE_MINT
from trend_sniper.models import MIN_MARGIN_MINUTES, TrendToken


class LifecycleTracker:
    """Drives buys and timed sells for every token in the store"""

    def __init__(self, config: Dict, store, executor, scheduler, notifier, metrics,
                 clock: Callable[[], float] = time.time):
        self.logger = logging.getLogger(__name__)
        self.store = store
        self.executor = executor
        self.scheduler = scheduler
        self.notifier = notifier
        self.metrics = metrics
        self.clock = clock

        trade = config.get('trade', {})
        self.buy_amount = int(trade.get('buy_amount_sol', 0.05) * LAMPORTS_PER_SOL)
        self.buy_retries = trade.get('buy_retries', 5)
        self.sell_retries = trade.get('sell_retries', 10)

        lifecycle = config.get('lifecycle', {})
        self.min_margin_sec = lifecycle.get('min_margin_min', MIN_MARGIN_MINUTES) * 60

    async def _report(self, message: str, error: bool = False):
        if error:
            self.logger.error(message)
        else:
            self.logger.info(message)
        await self.notifier.notify(message)

    async def evaluate_all(self):
        """Advance every token whose flags still allow a transition"""
        for token in self.store.all():
            await self.evaluate(token)

    async def evaluate(self, token: TrendToken):
        if token.bought_in is None:
            if token.closed_time - self.clock() < self.min_margin_sec:
                token.bought_in = False
                self.metrics.inc("lifecycle.buy_skipped")
                await self._report(f"Time too late to buy in `{token.token_name}`", error=True)
                return

            if await self.buy_in(token):
                token.bought_in = True
                self.metrics.inc("lifecycle.buy_ok")
                await self._report(f"Bought in `{token.token_name}`")
            else:
                token.bought_in = False
                self.metrics.inc("lifecycle.buy_failed")
                await self._report(f"Failed to buy in `{token.token_name}`", error=True)
                return

        if token.bought_in and token.sold_out is None:
            token.sold_out = False
            self._arm_sell(token)
            local_close = datetime.fromtimestamp(token.closed_time).strftime('%Y-%m-%d %H:%M:%S')
            await self._report(f"Scheduled sell out `{token.token_name}` at {local_close}")

    def restore(self) -> int:
        """Re-arm sells for tokens bought in but not yet sold"""
        restored = 0
        for token in self.store.awaiting_sell():
            if self._arm_sell(token):
                restored += 1
                self.logger.info(f"Re-armed sell for `{token.token_name}` "
                                 f"(due in {max(0, token.closed_time - self.clock()):.0f}s)")
        return restored

    def _arm_sell(self, token: TrendToken) -> bool:
        async def fire():
            await self.complete_sell(token)

        return self.scheduler.schedule(token.token_address, token.closed_time, fire)

    async def complete_sell(self, token: TrendToken):
        """Run the sell and mark the token resolved whatever the outcome"""
        if await self.sell_out(token):
            self.metrics.inc("lifecycle.sell_ok")
            await self._report(f"Sold out `{token.token_name}`")
        else:
            self.metrics.inc("lifecycle.sell_failed")
            await self._report(f"Failed to sell out `{token.token_name}`", error=True)

        token.sold_out = True
        self.store.save()

    async def buy_in(self, token: TrendToken) -> bool:
        await self._report(f"Swap `SOL` to `{token.token_name}`[{token.token_address}]")
        return await self._swap_with_retries(
            f"Buying in `{token.token_name}`",
            NATIVE_MINT, token.token_address, self.buy_amount, self.buy_retries
        )

    async def sell_out(self, token: TrendToken) -> bool:
        await self._report(f"Swap `{token.token_name}`[{token.token_address}] to `SOL`")
        return await self._swap_with_retries(
            f"Selling out `{token.token_name}`",
            token.token_address, NATIVE_MINT, MAX_AMOUNT, self.sell_retries
        )

    async def _swap_with_retries(self, label: str, input_mint: str, output_mint: str,
                                 amount: int, retries: int) -> bool:
        """Attempt the swap up to retries + 1 times, stopping on terminal errors"""
        for attempt in range(retries + 1):
            try:
                return await self.executor.swap(input_mint, output_mint, amount)
            except SwapError as e:
                remaining = retries - attempt if e.retryable else 0
                self.logger.error(f"{label} error({remaining}): {e}")
                if not remaining:
                    break
        return False
