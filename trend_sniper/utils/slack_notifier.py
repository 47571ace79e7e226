"""
Slack webhook notifier for the trend sniper
Best-effort: failures are logged and never raised to the caller
"""

import asyncio
import logging
from typing import Any, Dict, Optional

import httpx


class SlackNotifier:
    """Posts plain-text status messages to a Slack incoming webhook"""

    def __init__(self, webhook_url: Optional[str], client: Optional[httpx.AsyncClient] = None,
                 retry_delay: float = 1.0):
        self.webhook_url = webhook_url or ''
        self.retry_delay = retry_delay
        self.logger = logging.getLogger(__name__)
        self._client = client or httpx.AsyncClient(timeout=10)
        self.enabled = bool(self.webhook_url.strip())

        if not self.enabled:
            self.logger.warning("Slack notifications disabled (SLACK_WEBHOOK is not set)")
        else:
            self.logger.info(f"Slack notifier initialized with webhook: {self.webhook_url[:40]}...")

    async def _post(self, payload: Dict[str, Any]) -> bool:
        """Post to the webhook, retrying on rate limits and server errors"""
        for attempt in range(3):
            try:
                resp = await self._client.post(self.webhook_url, json=payload)
                if resp.status_code == 200:
                    return True

                if resp.status_code == 429:
                    retry_after = float(resp.headers.get("Retry-After", "1"))
                    self.logger.warning(f"Slack rate limited, waiting {retry_after}s")
                    await asyncio.sleep(retry_after)
                    continue

                if 500 <= resp.status_code < 600:
                    await asyncio.sleep(self.retry_delay * (1 + attempt))
                    continue

                self.logger.error(f"Failed to send slack message: {resp.status_code} {resp.text}")
                return False

            except httpx.HTTPError as e:
                self.logger.error(f"Sending Slack message error (attempt {attempt + 1}): {e}")
                if attempt < 2:
                    await asyncio.sleep(self.retry_delay)

        return False

    async def notify(self, message: str) -> bool:
        """Send a text message; returns whether it was delivered"""
        if not self.enabled:
            self.logger.debug(f"Slack disabled, dropping message: {message}")
            return False
        return await self._post({"text": message})

    async def close(self):
        await self._client.aclose()
