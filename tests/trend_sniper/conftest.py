"""
Shared fixtures for trend sniper tests
"""

import copy
from datetime import datetime, timedelta
from typing import Dict

import pytest

from trend_sniper.utils.config_loader import DEFAULT_CONFIG


def make_alert(address: str, name: str = "TEST", created: datetime = None, **overrides) -> Dict:
    """One alert feed entry as the API returns it"""
    created = created or datetime.now()
    item = {
        'id': abs(hash(address)) % 100000,
        'tokenName': name,
        'liquidity': 12345.6,
        'tokenAddress': address,
        'initialPrice': 0.0001,
        'm1Price': 0.00012,
        'createTime': created.strftime('%Y-%m-%d %H:%M:%S'),
    }
    item.update(overrides)
    return item


def minutes_ago(minutes: float) -> datetime:
    return datetime.now() - timedelta(minutes=minutes)


@pytest.fixture
def test_config(tmp_path) -> Dict:
    """Default config pointing storage at a temporary directory"""
    config = copy.deepcopy(DEFAULT_CONFIG)
    config['alerts']['api_url'] = 'https://alerts.test/api/change-alert'
    config['alerts']['api_token'] = 'test-token'
    config['storage']['path'] = str(tmp_path / 'cache')
    config['trade']['confirm_poll_interval_sec'] = 0
    return config
