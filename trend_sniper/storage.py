"""
JSON-backed token repository with in-memory caching
"""

import json
import logging
from pathlib import Path
from threading import Lock
from typing import Dict, List, Optional, Set

from trend_sniper.models import TrendToken


class TokenStore:
    """Keyed collection of trend tokens plus the seen-address set"""

    def __init__(self, config: Dict):
        self.logger = logging.getLogger(__name__)
        self.config = config

        # Storage paths
        self.base_path = Path(config.get('path', '.cache'))
        self.base_path.mkdir(parents=True, exist_ok=True)
        self.tokens_file = self.base_path / 'trend_tokens.json'
        self.seen_file = self.base_path / 'seen_tokens.json'

        # In-memory caches
        self.tokens_cache: Dict[str, TrendToken] = {}
        self.seen_cache: Set[str] = set()

        self.lock = Lock()

        self.load()

    def load(self):
        """Load both files into memory, replacing current contents"""
        self.tokens_cache.clear()
        self.seen_cache.clear()

        data = self._read_json(self.tokens_file)
        if isinstance(data, list):
            # Legacy format: plain list of seen addresses
            self.seen_cache.update(data)
        elif isinstance(data, dict):
            for address, item in data.items():
                try:
                    self.tokens_cache[address] = TrendToken.from_dict(item)
                except (TypeError, KeyError) as e:
                    self.logger.error(f"Skipping malformed token {address}: {e}")

        seen = self._read_json(self.seen_file)
        if isinstance(seen, list):
            self.seen_cache.update(seen)

        # Every stored token counts as seen
        self.seen_cache.update(self.tokens_cache)

        self.logger.debug(f"Loaded {len(self.tokens_cache)} tokens, "
                          f"{len(self.seen_cache)} seen addresses")

    def _read_json(self, file_path: Path):
        if not file_path.exists():
            return None
        try:
            with open(file_path, 'r', encoding='utf-8') as f:
                return json.load(f)
        except (OSError, ValueError) as e:
            self.logger.error(f"Error loading {file_path}: {e}")
            return None

    def _write_json(self, data, file_path: Path):
        with self.lock:
            with open(file_path, 'w', encoding='utf-8') as f:
                json.dump(data, f, indent=2, ensure_ascii=False)

    # Token management
    def get(self, address: str) -> Optional[TrendToken]:
        return self.tokens_cache.get(address)

    def upsert(self, token: TrendToken) -> TrendToken:
        """Insert or replace a token, keyed by its address"""
        self.tokens_cache[token.token_address] = token
        self.seen_cache.add(token.token_address)
        return token

    def all(self) -> List[TrendToken]:
        return list(self.tokens_cache.values())

    def awaiting_sell(self) -> List[TrendToken]:
        """Tokens bought in whose scheduled sell has not completed"""
        return [t for t in self.tokens_cache.values()
                if t.bought_in is True and t.sold_out is False]

    def save(self):
        """Overwrite the tokens file with the current map"""
        data = {address: token.to_dict() for address, token in self.tokens_cache.items()}
        self._write_json(data, self.tokens_file)

    # Seen-address set
    def is_seen(self, address: str) -> bool:
        return address in self.seen_cache

    def mark_seen(self, address: str):
        self.seen_cache.add(address)

    def save_seen(self):
        self._write_json(sorted(self.seen_cache), self.seen_file)

    def get_stats(self) -> Dict:
        """Get storage statistics"""
        return {
            'total_tokens': len(self.tokens_cache),
            'seen_addresses': len(self.seen_cache),
            'bought_in': len([t for t in self.tokens_cache.values() if t.bought_in]),
            'awaiting_sell': len(self.awaiting_sell()),
            'storage_path': str(self.base_path)
        }
