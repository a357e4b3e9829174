"""
Configuration loader: YAML file merged over built-in defaults.
"""
import copy
from pathlib import Path
from typing import Dict, Optional

import yaml

from txgraph.analysis.graph import GraphAnalytics
from txgraph.analysis.query import QueryEngine
from txgraph.analysis.statistics import BANK_COUNTING_MODES, StatisticsEngine
from txgraph.core.ledger import TransactionLedger

DEFAULT_CONFIG = {
    'ledger': {
        'allow_self_transfers': False,
    },
    'statistics': {
        'bank_counting': 'per_transaction',
    },
    'generator': {
        'seed': 42,
        'n_accounts': 50,
        'n_transactions': 500,
        'days_back': 365,
    },
    'output': {
        'directory': 'data',
    },
}


def merge_config(base: Dict, override: Dict) -> Dict:
    """
    Recursively merge override into a copy of base.

    Nested dictionaries are merged key by key; any other value in override
    replaces the one in base.
    """
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = merge_config(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def validate_config(config: Dict) -> Dict:
    bank_counting = config['statistics']['bank_counting']
    if bank_counting not in BANK_COUNTING_MODES:
        raise ValueError(f"statistics.bank_counting must be one of {BANK_COUNTING_MODES}, got {bank_counting!r}")
    if not isinstance(config['ledger']['allow_self_transfers'], bool):
        raise ValueError("ledger.allow_self_transfers must be true or false")
    for key, minimum in (('n_accounts', 0), ('n_transactions', 0), ('days_back', 1)):
        value = config['generator'][key]
        if isinstance(value, bool) or not isinstance(value, int) or value < minimum:
            raise ValueError(f"generator.{key} must be an integer >= {minimum}, got {value!r}")
    return config


def load_config(config_path: Optional[str] = None) -> Dict:
    """
    Load configuration from a YAML file.

    Args:
        config_path: Path to the YAML file. If None, the defaults are returned.

    Returns:
        Complete configuration dictionary (defaults overridden by the file)
    """
    if config_path is None:
        return validate_config(copy.deepcopy(DEFAULT_CONFIG))

    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f'Config file not found: {config_path}')

    with open(config_path, 'r') as f:
        loaded = yaml.safe_load(f) or {}
    if not isinstance(loaded, dict):
        raise ValueError(f"Config file {config_path} must contain a mapping at the top level")

    config = merge_config(DEFAULT_CONFIG, loaded)

    # Relative output directories are resolved against the config file location
    output_dir = Path(config['output']['directory'])
    if not output_dir.is_absolute():
        config['output']['directory'] = str(config_path.parent / output_dir)

    return validate_config(config)


class Services:
    """One ledger and the three read-only engines wired to it."""

    def __init__(self, ledger: TransactionLedger, query: QueryEngine,
                 statistics: StatisticsEngine, graph: GraphAnalytics):
        self.ledger = ledger
        self.query = query
        self.statistics = statistics
        self.graph = graph


def build_services(config: Optional[Dict] = None) -> Services:
    """Construct the ledger and its engines from a configuration dictionary."""
    if config is None:
        config = load_config()
    ledger = TransactionLedger(allow_self_transfers=config['ledger']['allow_self_transfers'])
    return Services(
        ledger=ledger,
        query=QueryEngine(ledger),
        statistics=StatisticsEngine(ledger, bank_counting=config['statistics']['bank_counting']),
        graph=GraphAnalytics(ledger),
    )
