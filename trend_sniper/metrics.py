"""
In-process metrics for the trend sniper
"""

import logging
from collections import defaultdict
from typing import Dict


class Metrics:
    """Prometheus-style counters, gauges and histograms kept in memory"""

    def __init__(self, config: Dict = None):
        self.logger = logging.getLogger(__name__)
        self.config = config or {}

        self.counters = defaultdict(int)
        self.gauges = defaultdict(float)
        self.histograms = defaultdict(list)

        self.max_observations = self.config.get('metrics', {}).get('max_observations', 1000)

    def inc(self, metric: str, value: int = 1):
        """Increment counter metric"""
        self.counters[metric] += value

    def set(self, metric: str, value: float):
        """Set gauge metric"""
        self.gauges[metric] = value

    def observe(self, metric: str, value: float):
        """Observe histogram metric"""
        self.histograms[metric].append(value)
        if len(self.histograms[metric]) > self.max_observations:
            self.histograms[metric] = self.histograms[metric][-self.max_observations:]

    def get_summary(self) -> Dict:
        """Snapshot of trading outcomes"""
        buys_ok = self.counters['lifecycle.buy_ok']
        buys_failed = self.counters['lifecycle.buy_failed']
        attempted = buys_ok + buys_failed
        latencies = self.histograms['swap.latency_ms']

        return {
            'tokens_admitted': self.counters['alerts.admitted'],
            'feed_failures': self.counters['alerts.fetch_failed'],
            'buys_ok': buys_ok,
            'buys_failed': buys_failed,
            'buys_skipped': self.counters['lifecycle.buy_skipped'],
            'sells_ok': self.counters['lifecycle.sell_ok'],
            'sells_failed': self.counters['lifecycle.sell_failed'],
            'buy_success_rate': (buys_ok / attempted * 100) if attempted else 0.0,
            'avg_swap_latency_ms': (sum(latencies) / len(latencies)) if latencies else 0.0,
        }
