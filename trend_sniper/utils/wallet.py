"""
Wallet keypair loading
"""

import json
import logging
from pathlib import Path
from typing import Dict

import base58
from solders.keypair import Keypair

logger = logging.getLogger(__name__)


def load_keypair(solana_config: Dict) -> Keypair:
    """
    Load the owned keypair from config

    Prefers `private_key` (base58) and falls back to `keypair_path`, a
    solana-keygen JSON file holding the 64 secret key bytes.

    Raises:
        ValueError: If neither source is configured or the key is malformed
    """
    private_key = solana_config.get('private_key')
    if private_key:
        keypair = Keypair.from_bytes(base58.b58decode(private_key))
    else:
        keypair_path = solana_config.get('keypair_path')
        if not keypair_path:
            raise ValueError("No wallet configured: set solana.private_key or solana.keypair_path")

        path = Path(keypair_path).expanduser()
        with open(path, 'r') as f:
            secret = json.load(f)
        if not isinstance(secret, list) or len(secret) != 64:
            raise ValueError(f"Keypair file {path} must contain 64 secret key bytes")
        keypair = Keypair.from_bytes(bytes(secret))

    logger.info(f"Wallet loaded: {str(keypair.pubkey())[:8]}...")
    return keypair
