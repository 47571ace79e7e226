#!/usr/bin/env python3
"""
Trend Sniper CLI - one-shot manual operations
"""

import argparse
import asyncio
import logging
import sys
from datetime import datetime

from trend_sniper.errors import SwapError
from trend_sniper.execution import MAX_AMOUNT, NATIVE_MINT, SwapExecutor
from trend_sniper.metrics import Metrics
from trend_sniper.models import TokenStatus
from trend_sniper.storage import TokenStore
from trend_sniper.utils.config_loader import (
    CLI_REQUIRED_KEYS,
    get_log_level,
    load_config,
    validate_required_keys,
)
from trend_sniper.utils.logger_setup import setup_logging

logger = logging.getLogger(__name__)


class SniperCLI:
    """CLI interface for manual swaps and state inspection"""

    def __init__(self, config_filename: str = 'config_sniper.yml', config=None):
        self.config = config or load_config(config_filename)
        self._executor = None

    @property
    def executor(self) -> SwapExecutor:
        if self._executor is None:
            validate_required_keys(self.config, CLI_REQUIRED_KEYS)
            self._executor = SwapExecutor.from_config(self.config, Metrics(self.config))
        return self._executor

    async def buy(self) -> int:
        logger.warning("Manual buy is not implemented")
        return 0

    async def sell(self, mint: str) -> int:
        """Swap the entire balance of mint to SOL"""
        executor = self.executor
        print(f"Swap `{mint}` to `SOL`")
        try:
            await executor.swap(mint, NATIVE_MINT, MAX_AMOUNT)
        except SwapError as e:
            print(f"❌ Sell failed: {e}")
            return 1
        finally:
            await executor.close()

        print(f"✅ Sold out `{mint}`")
        return 0

    async def get(self, signature: str) -> int:
        """Show the error logs of a past transaction if it failed"""
        executor = self.executor
        try:
            failure = await executor.get_failed_transaction_logs(signature)
        except SwapError as e:
            print(f"❌ Error: {e}")
            return 1
        finally:
            await executor.close()

        if failure is None:
            print(f"No error recorded for {signature}")
            return 0

        err, logs = failure
        print(f"Transaction warning: {err}")
        for line in logs:
            print(f"  {line}")
        return 0

    def list_tokens(self, status: str = 'all') -> int:
        """List persisted trend tokens"""
        store = TokenStore(self.config['storage'])
        tokens = store.all()
        if status != 'all':
            tokens = [t for t in tokens if t.status.value == status]

        print(f"\n{'='*90}")
        print(f"TREND TOKENS ({len(tokens)} total)")
        print(f"{'='*90}")

        if not tokens:
            print("No tokens found")
            print(f"{'='*90}\n")
            return 0

        print(f"{'Name':<16} {'Address':<46} {'Status':<15} {'Closes':<19}")
        print(f"{'-'*16} {'-'*46} {'-'*15} {'-'*19}")
        for token in tokens:
            closes = datetime.fromtimestamp(token.closed_time).strftime('%Y-%m-%d %H:%M:%S')
            print(f"{str(token.token_name)[:15]:<16} {token.token_address:<46} "
                  f"{token.status.value:<15} {closes:<19}")

        print(f"{'='*90}\n")
        return 0


def main(argv=None):
    """Main CLI entry point"""
    parser = argparse.ArgumentParser(description='Trend Sniper CLI')
    parser.add_argument('--config', default='config_sniper.yml', help='Config file name in config/')
    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    subparsers.add_parser('buy', help='Manual buy (not implemented)')

    sell = subparsers.add_parser('sell', help='Swap the entire balance of a mint to SOL')
    sell.add_argument('mint', help='Token mint address')

    get = subparsers.add_parser('get', help='Show error logs of a failed transaction')
    get.add_argument('signature', help='Transaction signature')

    tokens = subparsers.add_parser('tokens', help='List persisted trend tokens')
    tokens.add_argument('--status', choices=['all'] + [s.value for s in TokenStatus],
                        default='all', help='Status filter')

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    try:
        cli = SniperCLI(args.config)
        setup_logging(get_log_level(cli.config), log_file=None)

        if args.command == 'buy':
            return asyncio.run(cli.buy())
        if args.command == 'sell':
            return asyncio.run(cli.sell(args.mint))
        if args.command == 'get':
            return asyncio.run(cli.get(args.signature))
        if args.command == 'tokens':
            return cli.list_tokens(args.status)
    except KeyboardInterrupt:
        print("\nOperation cancelled")
        return 1
    except (FileNotFoundError, ValueError) as e:
        print(f"❌ Fatal error: {e}")
        return 1

    return 1


if __name__ == "__main__":
    sys.exit(main())
