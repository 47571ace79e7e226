"""
Configuration loader: YAML file, environment substitution and defaults
"""

import copy
import os
import re
from pathlib import Path
from typing import Any, Dict, Iterable, Optional

import yaml

PROJECT_ROOT = Path(__file__).parent.parent.parent

_ENV_PATTERN = re.compile(r'\$\{([A-Za-z_][A-Za-z0-9_]*)(?::-([^}]*))?\}')

DEFAULT_CONFIG: Dict[str, Any] = {
    'alerts': {
        'api_url': '',
        'api_token': '',
        'poll_interval_sec': 10,
    },
    'notifications': {
        'slack_webhook': '',
    },
    'solana': {
        'rpc_endpoint': 'https://api.mainnet-beta.solana.com',
        'keypair_path': '~/.config/solana/id.json',
    },
    'raydium': {
        'base_host': 'https://api-v3.raydium.io',
        'swap_host': 'https://transaction-v1.raydium.io',
        'priority_fee_path': '/main/auto-fee',
    },
    'trade': {
        'buy_amount_sol': 0.05,
        'slippage_bps': 50,
        'tx_version': 'V0',
        'min_output_sol': 0.01,
        'buy_retries': 5,
        'sell_retries': 10,
        'confirm_poll_interval_sec': 2.0,
    },
    'lifecycle': {
        'window_min': 30,
        'min_margin_min': 25,
    },
    'storage': {
        'path': '.cache',
    },
    'logging': {
        'level': 'INFO',
        'file': 'logs/sniper.log',
    },
}

BOT_REQUIRED_KEYS = ['alerts.api_url', 'alerts.api_token', 'solana.rpc_endpoint']
CLI_REQUIRED_KEYS = ['solana.rpc_endpoint']


def substitute_env_vars(value: Any) -> Any:
    """
    Recursively substitute ${VAR} and ${VAR:-default} in config values

    Raises:
        ValueError: If a variable without default is not set
    """
    if isinstance(value, dict):
        return {k: substitute_env_vars(v) for k, v in value.items()}
    if isinstance(value, list):
        return [substitute_env_vars(item) for item in value]
    if not isinstance(value, str):
        return value

    def replace_var(match):
        var_name, default = match.group(1), match.group(2)
        env_value = os.getenv(var_name)
        if env_value is not None:
            return env_value
        if default is not None:
            return default
        raise ValueError(f"Environment variable {var_name} not found")

    return _ENV_PATTERN.sub(replace_var, value)


def deep_merge(base: Dict, updates: Dict) -> Dict:
    for key, value in updates.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            deep_merge(base[key], value)
        else:
            base[key] = value
    return base


def load_config(config_filename: str = "config_sniper.yml",
                config_dir: Optional[Path] = None) -> Dict[str, Any]:
    """
    Load configuration from YAML file in the config directory

    Args:
        config_filename: Name of config file
        config_dir: Directory holding it (defaults to <project root>/config)

    Returns:
        Defaults deep-merged with the file contents

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If config file has invalid YAML syntax
        ValueError: If a referenced environment variable is missing
    """
    config_dir = Path(config_dir) if config_dir else PROJECT_ROOT / "config"
    config_path = config_dir / config_filename

    if not config_path.exists():
        raise FileNotFoundError(
            f"Config file '{config_filename}' not found at {config_path}"
        )

    try:
        with open(config_path, 'r', encoding='utf-8') as f:
            raw_config = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise yaml.YAMLError(f"Invalid YAML syntax in {config_path}: {e}")

    config = copy.deepcopy(DEFAULT_CONFIG)
    return deep_merge(config, substitute_env_vars(raw_config))


def get_value(config: Dict[str, Any], dotted_key: str, default: Any = None) -> Any:
    """Look up a dot-notation key such as 'alerts.api_url'"""
    value = config
    for key in dotted_key.split('.'):
        if not isinstance(value, dict) or key not in value:
            return default
        value = value[key]
    return value


def validate_required_keys(config: Dict[str, Any], required: Iterable[str] = BOT_REQUIRED_KEYS) -> None:
    """
    Validate that required configuration keys are present and non-empty

    Raises:
        ValueError: If required keys are missing
    """
    missing_keys = [key for key in required if get_value(config, key) in (None, '')]
    if missing_keys:
        raise ValueError(f"Missing required configuration keys: {', '.join(missing_keys)}")


def get_log_path(config: Dict[str, Any]) -> str:
    return config.get('logging', {}).get('file', 'logs/sniper.log')


def get_log_level(config: Dict[str, Any]) -> str:
    return config.get('logging', {}).get('level', 'INFO')
