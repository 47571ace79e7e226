#!/usr/bin/env python3
"""
Trend Sniper - Main orchestrator: poll alerts, buy in, sell at window close
"""

import asyncio
import logging
import signal
import sys
from datetime import datetime
from typing import Dict, Optional

from trend_sniper.discovery import AlertPoller
from trend_sniper.execution import SwapExecutor
from trend_sniper.lifecycle import LifecycleTracker
from trend_sniper.metrics import Metrics
from trend_sniper.scheduler import SellScheduler
from trend_sniper.storage import TokenStore
from trend_sniper.utils.config_loader import (
    get_log_level,
    get_log_path,
    load_config,
    validate_required_keys,
)
from trend_sniper.utils.logger_setup import setup_logging
from trend_sniper.utils.slack_notifier import SlackNotifier

logger = logging.getLogger(__name__)


class SniperBot:
    """Main orchestrator for the trend sniper"""

    def __init__(self, config: Dict, executor: Optional[SwapExecutor] = None,
                 notifier: Optional[SlackNotifier] = None):
        self.logger = logging.getLogger(__name__)
        self.config = config
        self.running = False
        self.tasks = []

        self.logger.info("Initializing components...")
        self.store = TokenStore(config['storage'])
        self.metrics = Metrics(config)
        self.notifier = notifier or SlackNotifier(config['notifications'].get('slack_webhook'))
        self.executor = executor or SwapExecutor.from_config(config, self.metrics)
        self.scheduler = SellScheduler()
        self.tracker = LifecycleTracker(
            config, self.store, self.executor, self.scheduler, self.notifier, self.metrics
        )
        self.poller = AlertPoller(config, self.store, self.metrics)

        self.start_time = datetime.now()
        self.cycles = 0
        self.status_interval = 60

    async def run_cycle(self):
        """One poll cycle; completes before the next one is scheduled"""
        await self.poller.poll()
        await self.tracker.evaluate_all()
        self.store.save()
        self.cycles += 1

    async def run(self):
        """Main loop"""
        self.running = True
        self.logger.info("=" * 50)
        self.logger.info("TREND SNIPER STARTED")
        self.logger.info(f"Wallet: {self.executor.wallet_address}")
        self.logger.info(f"Buy size: {self.config['trade']['buy_amount_sol']} SOL")
        self.logger.info(f"Poll interval: {self.poller.poll_interval}s")
        self.logger.info("=" * 50)

        restored = self.tracker.restore()
        if restored:
            self.logger.info(f"Re-armed {restored} pending sells from disk")

        self.tasks = [asyncio.create_task(self._status_loop())]

        try:
            while self.running:
                try:
                    await self.run_cycle()
                except Exception as e:
                    self.logger.error(f"Poll cycle error: {e}", exc_info=True)
                    self.metrics.inc("cycle.errors")
                await asyncio.sleep(self.poller.poll_interval)
        except asyncio.CancelledError:
            self.logger.info("Main loop cancelled")
        finally:
            await self.shutdown()

    def stop(self):
        self.running = False

    async def _status_loop(self):
        """Periodic status reporting"""
        while self.running:
            await asyncio.sleep(self.status_interval)

            try:
                uptime = (datetime.now() - self.start_time).total_seconds() / 60
                summary = self.metrics.get_summary()
                storage_stats = self.store.get_stats()

                self.logger.info("=" * 50)
                self.logger.info("STATUS REPORT")
                self.logger.info(f"Uptime: {uptime:.1f} minutes, cycles: {self.cycles}")
                self.logger.info(f"Tokens tracked: {storage_stats['total_tokens']}")
                self.logger.info(f"Buys: {summary['buys_ok']} ok / {summary['buys_failed']} failed "
                                 f"/ {summary['buys_skipped']} skipped")
                self.logger.info(f"Sells: {summary['sells_ok']} ok / {summary['sells_failed']} failed")
                self.logger.info(f"Pending sells: {len(self.scheduler.pending())}")
                self.logger.info("=" * 50)
            except Exception as e:
                self.logger.error(f"Status loop error: {e}")

    async def shutdown(self):
        """Graceful shutdown"""
        self.logger.info("Shutting down trend sniper...")
        self.running = False

        for task in self.tasks:
            task.cancel()
        await asyncio.gather(*self.tasks, return_exceptions=True)

        # Pending sells stay recoverable through the persisted flags
        pending = self.scheduler.pending()
        if pending:
            self.logger.warning(f"{len(pending)} sells still pending, they will be re-armed on restart")
        await self.scheduler.cancel_all()

        self.store.save()
        await self.poller.close()
        await self.executor.close()
        await self.notifier.close()

        self.logger.info("Trend sniper stopped")


async def main_async(config_filename: str = "config_sniper.yml"):
    config = load_config(config_filename)
    setup_logging(get_log_level(config), get_log_path(config))
    validate_required_keys(config)

    bot = SniperBot(config)

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, bot.stop)
        except NotImplementedError:
            # Windows event loops do not support signal handlers
            pass

    await bot.run()


def main():
    """Main entry point"""
    try:
        asyncio.run(main_async())
    except KeyboardInterrupt:
        logger.info("Received shutdown signal")
    except (FileNotFoundError, ValueError) as e:
        logger.error(f"Fatal error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
