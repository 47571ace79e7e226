"""
Trend token model and lifecycle states
"""

from dataclasses import dataclass, asdict
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

WINDOW_MINUTES = 30
MIN_MARGIN_MINUTES = 25


class TokenStatus(Enum):
    """Lifecycle state derived from the persisted flags"""
    DISCOVERED = "discovered"
    BUY_REJECTED = "buy_rejected"  # skipped as too late, or buy failed
    BOUGHT_IN = "bought_in"
    SELL_SCHEDULED = "sell_scheduled"
    SOLD_OUT = "sold_out"


def parse_create_time(value: Any) -> float:
    """
    Convert a feed createTime into epoch seconds

    Accepts epoch numbers (seconds or milliseconds) and ISO-8601 strings.
    Naive datetimes are interpreted as local time.
    """
    if isinstance(value, (int, float)):
        return value / 1000 if value > 1e11 else float(value)

    text = str(value).strip()
    if text.isdigit():
        return parse_create_time(int(text))
    if text.endswith('Z'):
        text = text[:-1] + '+00:00'
    return datetime.fromisoformat(text).timestamp()


@dataclass
class TrendToken:
    id: Any
    token_name: str
    liquidity: float
    token_address: str
    initial_price: float
    m1_price: float
    create_time: str
    closed_time: float
    bought_in: Optional[bool] = None
    sold_out: Optional[bool] = None

    @classmethod
    def from_alert(cls, item: Dict, window_min: float = WINDOW_MINUTES) -> "TrendToken":
        """Build a token from one alert feed entry"""
        create_time = item['createTime']
        return cls(
            id=item.get('id'),
            token_name=item.get('tokenName', 'UNKNOWN'),
            liquidity=item.get('liquidity', 0),
            token_address=item['tokenAddress'],
            initial_price=item.get('initialPrice', 0),
            m1_price=item.get('m1Price', 0),
            create_time=create_time,
            closed_time=parse_create_time(create_time) + window_min * 60,
        )

    @classmethod
    def from_dict(cls, data: Dict) -> "TrendToken":
        return cls(**data)

    def to_dict(self) -> Dict:
        return asdict(self)

    @property
    def price_change_pct(self) -> float:
        if not self.initial_price:
            return 0.0
        return (self.m1_price - self.initial_price) / self.initial_price * 100

    @property
    def status(self) -> TokenStatus:
        if self.bought_in is None:
            return TokenStatus.DISCOVERED
        if self.bought_in is False:
            return TokenStatus.BUY_REJECTED
        if self.sold_out is None:
            return TokenStatus.BOUGHT_IN
        if self.sold_out is False:
            return TokenStatus.SELL_SCHEDULED
        return TokenStatus.SOLD_OUT
