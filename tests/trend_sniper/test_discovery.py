"""
Unit tests for alert discovery
"""

from unittest.mock import MagicMock

import aiohttp
import pytest

from trend_sniper.discovery import AlertPoller
from trend_sniper.metrics import Metrics
from trend_sniper.storage import TokenStore

from conftest import make_alert, minutes_ago


class FakeResponse:

    def __init__(self, payload=None, error=None):
        self.payload = payload
        self.error = error

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False

    def raise_for_status(self):
        if self.error:
            raise self.error

    async def json(self):
        return self.payload


class FakeSession:

    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.urls = []

    def get(self, url):
        self.urls.append(url)
        if self.error:
            raise self.error
        return self.response

    async def close(self):
        pass


def _feed(*items):
    return {'data': {'list': list(items)}}


class TestAlertPoller:

    @pytest.fixture(autouse=True)
    def _setup(self, test_config):
        self.config = test_config
        self.store = TokenStore(test_config['storage'])
        self.metrics = Metrics()
        self.poller = AlertPoller(test_config, self.store, self.metrics)

    def _use(self, session):
        self.poller.session = session
        return session

    @pytest.mark.asyncio
    async def test_fetch_returns_oldest_first(self):
        session = self._use(FakeSession(FakeResponse(_feed(make_alert("new"), make_alert("old")))))

        items = await self.poller.fetch_alerts()

        assert [i['tokenAddress'] for i in items] == ["old", "new"]
        assert session.urls == [self.config['alerts']['api_url']]

    @pytest.mark.asyncio
    async def test_http_error_yields_empty_list(self):
        error = aiohttp.ClientResponseError(request_info=MagicMock(), history=(), status=503)
        self._use(FakeSession(FakeResponse(error=error)))

        assert await self.poller.fetch_alerts() == []
        assert self.metrics.counters['alerts.fetch_failed'] == 1

    @pytest.mark.asyncio
    async def test_connection_error_yields_empty_list(self):
        self._use(FakeSession(error=aiohttp.ClientConnectionError("refused")))

        assert await self.poller.fetch_alerts() == []
        assert self.metrics.counters['alerts.fetch_failed'] == 1

    @pytest.mark.asyncio
    async def test_malformed_body_yields_empty_list(self):
        self._use(FakeSession(FakeResponse({'code': 0, 'data': None})))

        assert await self.poller.fetch_alerts() == []

    def test_admits_only_first_unseen(self):
        self.store.mark_seen("seen")
        items = [make_alert("seen"), make_alert("a", created=minutes_ago(2)), make_alert("b")]

        token = self.poller.admit(items)

        assert token.token_address == "a"
        assert self.store.get("a") is token
        assert self.store.get("b") is None
        assert not self.store.is_seen("b")
        assert self.metrics.counters['alerts.admitted'] == 1

    def test_known_addresses_are_never_readmitted(self):
        first = self.poller.admit([make_alert("a")])
        assert first is not None

        assert self.poller.admit([make_alert("a", name="AGAIN")]) is None
        assert self.store.get("a").token_name == "TEST"

    def test_malformed_item_is_skipped(self):
        items = [make_alert("bad", createTime="not a time"), make_alert("good")]

        token = self.poller.admit(items)

        assert token.token_address == "good"
        assert self.store.is_seen("bad")
        assert self.store.get("bad") is None

    @pytest.mark.asyncio
    async def test_poll_persists_seen_set(self):
        self._use(FakeSession(FakeResponse(_feed(make_alert("b"), make_alert("a")))))

        token = await self.poller.poll()
        assert token.token_address == "a"

        reloaded = TokenStore(self.config['storage'])
        assert reloaded.is_seen("a")

    @pytest.mark.asyncio
    async def test_empty_feed(self):
        self._use(FakeSession(FakeResponse(_feed())))
        assert await self.poller.poll() is None
