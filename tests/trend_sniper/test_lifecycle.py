"""
Unit tests for the buy/sell lifecycle tracker
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from trend_sniper.errors import (
    InputAccountNotFound,
    OutputAmountTooLow,
    RemoteUnavailable,
    RouteComputeFailed,
    TransactionFailed,
)
from trend_sniper.execution import MAX_AMOUNT, NATIVE_MINT
from trend_sniper.lifecycle import LifecycleTracker
from trend_sniper.metrics import Metrics
from trend_sniper.models import TrendToken
from trend_sniper.scheduler import SellScheduler
from trend_sniper.storage import TokenStore

NOW = 1_717_243_200.0


def _token(address: str = "mintA", minutes_left: float = 29, **flags) -> TrendToken:
    return TrendToken(
        id=7,
        token_name="PEPE",
        liquidity=5000.0,
        token_address=address,
        initial_price=0.1,
        m1_price=0.11,
        create_time="2024-06-01 12:00:00",
        closed_time=NOW + minutes_left * 60,
        **flags
    )


class TestLifecycleTracker:

    @pytest.fixture(autouse=True)
    def _setup(self, test_config):
        self.config = test_config
        self.store = TokenStore(test_config['storage'])
        self.executor = MagicMock()
        self.executor.swap = AsyncMock(return_value=True)
        self.scheduler = MagicMock()
        self.scheduler.schedule.return_value = True
        self.notifier = MagicMock()
        self.notifier.notify = AsyncMock(return_value=True)
        self.metrics = Metrics()
        self.tracker = LifecycleTracker(
            test_config, self.store, self.executor, self.scheduler,
            self.notifier, self.metrics, clock=lambda: NOW
        )

    def _messages(self):
        return [c.args[0] for c in self.notifier.notify.call_args_list]

    @pytest.mark.asyncio
    async def test_too_late_is_never_bought(self):
        token = self.store.upsert(_token(minutes_left=24))

        await self.tracker.evaluate_all()

        assert token.bought_in is False
        self.executor.swap.assert_not_called()
        assert "Time too late to buy in `PEPE`" in self._messages()
        assert self.metrics.counters['lifecycle.buy_skipped'] == 1

    @pytest.mark.asyncio
    async def test_past_deadline_is_never_bought(self):
        token = self.store.upsert(_token(minutes_left=-5))

        await self.tracker.evaluate_all()

        assert token.bought_in is False
        assert token.sold_out is None
        self.executor.swap.assert_not_called()

    @pytest.mark.asyncio
    async def test_successful_buy_schedules_sell_at_close(self):
        token = self.store.upsert(_token(minutes_left=29))

        await self.tracker.evaluate_all()

        self.executor.swap.assert_awaited_once_with(NATIVE_MINT, "mintA", 50_000_000)
        assert token.bought_in is True
        assert token.sold_out is False

        key, due_at, _ = self.scheduler.schedule.call_args.args
        assert key == "mintA"
        assert due_at == token.closed_time

        messages = self._messages()
        assert messages[0] == "Swap `SOL` to `PEPE`[mintA]"
        assert "Bought in `PEPE`" in messages
        assert any(m.startswith("Scheduled sell out `PEPE` at") for m in messages)

    @pytest.mark.asyncio
    async def test_buy_path_runs_once_across_cycles(self):
        self.store.upsert(_token(minutes_left=29))

        for _ in range(3):
            await self.tracker.evaluate_all()

        assert self.executor.swap.await_count == 1
        assert self.scheduler.schedule.call_count == 1

    @pytest.mark.asyncio
    async def test_buy_retries_then_gives_up(self):
        self.executor.swap.side_effect = RemoteUnavailable("timeout")
        token = self.store.upsert(_token())

        await self.tracker.evaluate_all()

        assert self.executor.swap.await_count == self.config['trade']['buy_retries'] + 1
        assert token.bought_in is False
        assert "Failed to buy in `PEPE`" in self._messages()
        self.scheduler.schedule.assert_not_called()

        # Failed buys are terminal
        await self.tracker.evaluate_all()
        assert self.executor.swap.await_count == self.config['trade']['buy_retries'] + 1

    @pytest.mark.asyncio
    async def test_buy_succeeds_after_transient_failure(self):
        self.executor.swap.side_effect = [TransactionFailed("dropped"), True]
        token = self.store.upsert(_token())

        await self.tracker.evaluate_all()

        assert self.executor.swap.await_count == 2
        assert token.bought_in is True

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error", [InputAccountNotFound(), RouteComputeFailed(), OutputAmountTooLow()])
    async def test_sell_stops_on_terminal_error(self, error):
        self.executor.swap.side_effect = error
        token = self.store.upsert(_token(bought_in=True, sold_out=False))

        await self.tracker.complete_sell(token)

        self.executor.swap.assert_awaited_once_with("mintA", NATIVE_MINT, MAX_AMOUNT)
        assert token.sold_out is True
        assert "Failed to sell out `PEPE`" in self._messages()

    @pytest.mark.asyncio
    async def test_sell_retries_transient_failure_up_to_bound(self):
        self.executor.swap.side_effect = TransactionFailed("blockhash expired")
        token = self.store.upsert(_token(bought_in=True, sold_out=False))

        await self.tracker.complete_sell(token)

        assert self.executor.swap.await_count == self.config['trade']['sell_retries'] + 1
        assert token.sold_out is True
        assert self.metrics.counters['lifecycle.sell_failed'] == 1

    @pytest.mark.asyncio
    async def test_completed_sell_is_persisted(self):
        token = self.store.upsert(_token(bought_in=True, sold_out=False))

        await self.tracker.complete_sell(token)

        assert "Sold out `PEPE`" in self._messages()
        reloaded = TokenStore(self.config['storage'])
        assert reloaded.get("mintA").sold_out is True

    def test_restore_rearms_pending_sells(self):
        self.store.upsert(_token("pending", bought_in=True, sold_out=False))
        self.store.upsert(_token("done", bought_in=True, sold_out=True))
        self.store.upsert(_token("failed", bought_in=False))

        assert self.tracker.restore() == 1

        key, due_at, _ = self.scheduler.schedule.call_args.args
        assert key == "pending"
        assert due_at == NOW + 29 * 60


class TestLifecycleWithScheduler:
    """Buy, timed sell and persistence wired through the real scheduler"""

    @pytest.mark.asyncio
    async def test_full_lifecycle(self, test_config):
        store = TokenStore(test_config['storage'])
        executor = MagicMock()
        executor.swap = AsyncMock(return_value=True)
        notifier = MagicMock()
        notifier.notify = AsyncMock(return_value=True)

        # Scheduler clock is already past every close deadline
        scheduler = SellScheduler(clock=lambda: NOW + 3600)
        tracker = LifecycleTracker(test_config, store, executor, scheduler,
                                   notifier, Metrics(), clock=lambda: NOW)

        token = store.upsert(_token())
        await tracker.evaluate_all()
        assert scheduler.is_scheduled("mintA")

        await scheduler.join()

        assert executor.swap.await_count == 2
        assert executor.swap.await_args_list[1].args == ("mintA", NATIVE_MINT, MAX_AMOUNT)
        assert token.sold_out is True
        assert TokenStore(test_config['storage']).get("mintA").sold_out is True
        assert scheduler.pending() == []

        # Nothing left to do for this token
        await tracker.evaluate_all()
        assert executor.swap.await_count == 2
