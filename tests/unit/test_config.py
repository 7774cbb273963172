"""
Unit tests for chain configuration.

Tests cover:
1. Defaults
2. Bounds checks
3. JSON file and environment overrides
4. Logging settings applied by load_config
"""

import json
import logging

import pytest

from forkchain.core.config import ENV_FIELDS, ENV_PREFIX, ChainConfig, load_config
from forkchain.utils.logger import get_logger, setup_logging


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for suffix in ENV_FIELDS:
        monkeypatch.delenv(ENV_PREFIX + suffix, raising=False)
    yield
    setup_logging()


class TestChainConfig:
    """Tests for ChainConfig."""
    
    def test_defaults(self):
        config = ChainConfig()
        assert config.cut_off_age == 10
        assert config.coinbase_reward == 25
        assert config.mempool_max_size == 10_000
        assert config.max_transactions_per_block == 100
        assert config.log_level == "INFO"
        assert config.log_levels == {}
        assert config.log_file is None
    
    def test_zero_cut_off_allowed(self):
        assert ChainConfig(cut_off_age=0).cut_off_age == 0
    
    @pytest.mark.parametrize("field,value", [
        ("cut_off_age", -1),
        ("coinbase_reward", -1),
        ("mempool_max_size", 0),
        ("max_transactions_per_block", 0),
        ("log_level", "LOUD"),
        ("log_levels", {"chain": "chatty"}),
    ])
    def test_bounds(self, field, value):
        with pytest.raises(ValueError):
            ChainConfig(**{field: value})
    
    def test_level_names_are_case_insensitive(self):
        assert ChainConfig(log_level="debug", log_levels={"validator": "warning"})


class TestLoadConfig:
    """Tests for load_config."""
    
    def test_defaults_without_sources(self):
        assert load_config() == ChainConfig()
    
    def test_json_file(self, tmp_path):
        path = tmp_path / "chain.json"
        path.write_text(json.dumps({"cut_off_age": 4, "coinbase_reward": 50}))
        
        config = load_config(str(path))
        
        assert config.cut_off_age == 4
        assert config.coinbase_reward == 50
    
    def test_unknown_key(self, tmp_path):
        path = tmp_path / "chain.json"
        path.write_text(json.dumps({"cutoff": 4}))
        with pytest.raises(ValueError):
            load_config(str(path))
    
    def test_environment_overrides_file(self, tmp_path, monkeypatch):
        path = tmp_path / "chain.json"
        path.write_text(json.dumps({"cut_off_age": 4}))
        monkeypatch.setenv("FORKCHAIN_CUT_OFF_AGE", "7")
        monkeypatch.setenv("FORKCHAIN_MAX_TXS_PER_BLOCK", "5")
        
        config = load_config(str(path))
        
        assert config.cut_off_age == 7
        assert config.max_transactions_per_block == 5
    
    def test_invalid_environment_value(self, monkeypatch):
        monkeypatch.setenv("FORKCHAIN_CUT_OFF_AGE", "-2")
        with pytest.raises(ValueError):
            load_config()


class TestLoggingSettings:
    """Tests for the logging settings load_config applies."""
    
    def test_levels_from_file(self, tmp_path):
        path = tmp_path / "chain.json"
        path.write_text(json.dumps({"log_level": "WARNING", "log_levels": {"validator": "DEBUG"}}))
        
        load_config(str(path))
        
        assert logging.getLogger("forkchain").level == logging.WARNING
        assert get_logger("validator").getEffectiveLevel() == logging.DEBUG
        assert get_logger("chain").getEffectiveLevel() == logging.WARNING
    
    def test_level_from_environment(self, monkeypatch):
        monkeypatch.setenv("FORKCHAIN_LOG_LEVEL", "error")
        
        config = load_config()
        
        assert config.log_level == "error"
        assert logging.getLogger("forkchain").level == logging.ERROR
    
    def test_log_file(self, tmp_path, monkeypatch):
        log_file = tmp_path / "logs" / "chain.log"
        monkeypatch.setenv("FORKCHAIN_LOG_FILE", str(log_file))
        
        load_config()
        get_logger("chain").info("file handler check")
        
        assert "file handler check" in log_file.read_text()
    
    def test_reload_clears_subsystem_overrides(self, tmp_path):
        path = tmp_path / "chain.json"
        path.write_text(json.dumps({"log_levels": {"mempool": "ERROR"}}))
        load_config(str(path))
        
        load_config()
        
        assert get_logger("mempool").level == logging.NOTSET
        assert get_logger("mempool").getEffectiveLevel() == logging.INFO
