"""
Trend alert discovery: polls the alert feed and admits new tokens
"""

import asyncio
import logging
from datetime import datetime
from typing import Dict, List, Optional

import aiohttp

from trend_sniper.models import WINDOW_MINUTES, TrendToken


class AlertPoller:
    """Fetches the ranked alert list and admits at most one new token per poll"""

    def __init__(self, config: Dict, store, metrics):
        self.logger = logging.getLogger(__name__)
        self.store = store
        self.metrics = metrics

        alerts = config['alerts']
        self.api_url = alerts['api_url']
        self.api_token = alerts.get('api_token', '')
        self.poll_interval = alerts.get('poll_interval_sec', 10)
        self.window_min = config.get('lifecycle', {}).get('window_min', WINDOW_MINUTES)

        self.session = None

    async def _get_session(self):
        if not self.session:
            self.session = aiohttp.ClientSession(
                headers={
                    "Authorization": f"Bearer {self.api_token}",
                    "Content-Type": "application/json",
                },
                timeout=aiohttp.ClientTimeout(total=15)
            )
        return self.session

    async def fetch_alerts(self) -> List[Dict]:
        """
        Fetch the alert list, oldest first

        Returns an empty list on any transport or format failure.
        """
        session = await self._get_session()
        try:
            async with session.get(self.api_url) as response:
                response.raise_for_status()
                data = await response.json()
            items = list(data['data']['list'])
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            self.logger.error(f"Fetching trend alerts error: {e}")
            self.metrics.inc("alerts.fetch_failed")
            return []
        except (KeyError, TypeError, ValueError) as e:
            self.logger.error(f"Malformed trend alert response: {e!r}")
            self.metrics.inc("alerts.fetch_failed")
            return []

        # Feed is newest first
        items.reverse()
        return items

    def admit(self, items: List[Dict]) -> Optional[TrendToken]:
        """Admit the first never-seen address, ignoring the rest this cycle"""
        for item in items:
            address = item.get('tokenAddress')
            if not address or self.store.is_seen(address):
                continue

            try:
                token = TrendToken.from_alert(item, self.window_min)
            except (KeyError, TypeError, ValueError) as e:
                self.logger.warning(f"Skipping malformed alert for {address}: {e!r}")
                self.store.mark_seen(address)
                continue

            self.store.upsert(token)
            self.metrics.inc("alerts.admitted")
            self.logger.info(
                f"{token.id} `{token.token_name}` {token.liquidity} {token.token_address} "
                f"{token.price_change_pct:.2f}% {datetime.fromtimestamp(token.closed_time - self.window_min * 60)}"
            )
            return token
        return None

    async def poll(self) -> Optional[TrendToken]:
        """One poll cycle: fetch, admit, persist the seen set"""
        items = await self.fetch_alerts()
        token = self.admit(items)
        self.store.save_seen()
        return token

    async def close(self):
        if self.session:
            await self.session.close()
            self.session = None
