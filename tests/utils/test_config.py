"""
Unit tests for configuration utilities
"""
from pathlib import Path

import pytest
import yaml

from txgraph.analysis.graph import GraphAnalytics
from txgraph.analysis.query import QueryEngine
from txgraph.analysis.statistics import PER_ACCOUNT, StatisticsEngine
from txgraph.core.errors import ValidationError
from txgraph.utils.config import DEFAULT_CONFIG, build_services, load_config, merge_config


def _write(path: Path, data) -> str:
    with open(path, 'w') as f:
        yaml.safe_dump(data, f)
    return str(path)


@pytest.mark.unit
class TestMergeConfig:
    """Tests for merge_config"""

    def test_nested_merge(self):
        """Test that nested sections are merged key by key"""
        merged = merge_config({'a': {'x': 1, 'y': 2}, 'b': 3}, {'a': {'y': 20}})
        assert merged == {'a': {'x': 1, 'y': 20}, 'b': 3}

    def test_base_not_modified(self):
        """Test that the base dictionary is not changed"""
        base = {'a': {'x': 1}}
        merge_config(base, {'a': {'x': 2}})
        assert base == {'a': {'x': 1}}


@pytest.mark.unit
class TestLoadConfig:
    """Tests for load_config"""

    def test_defaults_without_path(self):
        """Test that no path gives a copy of the defaults"""
        config = load_config()
        assert config == DEFAULT_CONFIG
        assert config is not DEFAULT_CONFIG

    def test_file_overrides_defaults(self, tmp_path):
        """Test that file values override defaults and the rest is kept"""
        path = _write(tmp_path / 'conf.yaml', {
            'ledger': {'allow_self_transfers': True},
            'generator': {'n_accounts': 7},
        })
        config = load_config(path)
        assert config['ledger']['allow_self_transfers'] is True
        assert config['generator']['n_accounts'] == 7
        assert config['generator']['n_transactions'] == DEFAULT_CONFIG['generator']['n_transactions']

    def test_relative_output_resolved_against_config_dir(self, tmp_path):
        """Test that a relative output directory is resolved next to the file"""
        path = _write(tmp_path / 'conf.yaml', {'output': {'directory': 'out'}})
        assert load_config(path)['output']['directory'] == str(tmp_path / 'out')

    def test_empty_file(self, tmp_path):
        """Test that an empty file gives the defaults"""
        path = tmp_path / 'empty.yaml'
        path.write_text('')
        assert load_config(str(path))['statistics']['bank_counting'] == 'per_transaction'

    def test_missing_file(self, tmp_path):
        """Test that a missing file raises FileNotFoundError"""
        with pytest.raises(FileNotFoundError):
            load_config(str(tmp_path / 'nope.yaml'))

    @pytest.mark.parametrize('override', [
        {'statistics': {'bank_counting': 'per_bank'}},
        {'ledger': {'allow_self_transfers': 'yes'}},
        {'generator': {'n_accounts': -1}},
        {'generator': {'days_back': 0}},
    ])
    def test_invalid_values(self, tmp_path, override):
        """Test that invalid settings raise ValueError"""
        with pytest.raises(ValueError):
            load_config(_write(tmp_path / 'conf.yaml', override))

    def test_non_mapping_rejected(self, tmp_path):
        """Test that a file without a top-level mapping is rejected"""
        path = tmp_path / 'list.yaml'
        path.write_text('- a\n- b\n')
        with pytest.raises(ValueError):
            load_config(str(path))

    def test_shipped_default_config_loads(self):
        """Test that config/default.yaml loads"""
        path = Path(__file__).parent.parent.parent / 'config' / 'default.yaml'
        config = load_config(str(path))
        assert config['generator']['seed'] == 42


@pytest.mark.unit
class TestBuildServices:
    """Tests for build_services"""

    def test_engines_share_one_ledger(self):
        """Test that all engines read the same ledger"""
        services = build_services()
        assert isinstance(services.query, QueryEngine)
        assert isinstance(services.statistics, StatisticsEngine)
        assert isinstance(services.graph, GraphAnalytics)
        assert services.query.ledger is services.ledger
        assert services.statistics.ledger is services.ledger
        assert services.graph.ledger is services.ledger

    def test_each_call_builds_fresh_services(self):
        """Test that services are not shared between calls"""
        assert build_services().ledger is not build_services().ledger

    def test_settings_applied(self, tmp_path, make_tx):
        """Test that ledger and statistics settings are applied"""
        path = _write(tmp_path / 'conf.yaml', {
            'ledger': {'allow_self_transfers': False},
            'statistics': {'bank_counting': PER_ACCOUNT},
        })
        services = build_services(load_config(path))
        assert services.statistics.bank_counting == PER_ACCOUNT
        with pytest.raises(ValidationError):
            services.ledger.record_transaction(make_tx('A', 'A', 1))
