"""
Chain configuration parameters for ForkChain.

Defines the fork-window policy, economic parameters, pool limits and
logging levels. Values can be overridden from a JSON file and from
environment variables (a .env file in the working directory is loaded
first).
"""

import json
import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Dict, Optional

from dotenv import load_dotenv

from forkchain.utils.logger import setup_logging


ENV_PREFIX = "FORKCHAIN_"

# Environment variable suffix -> ChainConfig field
ENV_FIELDS = {
    "CUT_OFF_AGE": "cut_off_age",
    "COINBASE_REWARD": "coinbase_reward",
    "MEMPOOL_MAX_SIZE": "mempool_max_size",
    "MAX_TXS_PER_BLOCK": "max_transactions_per_block",
    "LOG_LEVEL": "log_level",
    "LOG_FILE": "log_file",
}

# Fields read from the environment as plain strings
STRING_FIELDS = {"log_level", "log_file"}


def _is_level_name(name: str) -> bool:
    return isinstance(name, str) and isinstance(logging.getLevelName(name.upper()), int)


@dataclass
class ChainConfig:
    """Chain-wide configuration parameters"""

    # Fork window: branches more than this many blocks behind the head are pruned
    cut_off_age: int = 10

    # Tokenomics
    coinbase_reward: int = 25  # Reward per block

    # Pool and block limits
    mempool_max_size: int = 10_000
    max_transactions_per_block: int = 100

    # Logging: package level, per-subsystem overrides, optional file
    log_level: str = "INFO"
    log_levels: Dict[str, str] = field(default_factory=dict)
    log_file: Optional[str] = None

    def __post_init__(self):
        """Reject values the chain cannot operate with"""
        if self.cut_off_age < 0:
            raise ValueError(f"cut_off_age must be >= 0, got {self.cut_off_age}")
        if self.coinbase_reward < 0:
            raise ValueError(f"coinbase_reward must be >= 0, got {self.coinbase_reward}")
        if self.mempool_max_size <= 0:
            raise ValueError(f"mempool_max_size must be > 0, got {self.mempool_max_size}")
        if self.max_transactions_per_block <= 0:
            raise ValueError(
                f"max_transactions_per_block must be > 0, got {self.max_transactions_per_block}"
            )
        for name, level in {"log_level": self.log_level, **self.log_levels}.items():
            if not _is_level_name(level):
                raise ValueError(f"Unknown log level for {name}: {level}")


# Global config instance (can be overridden)
config = ChainConfig()


def apply_logging(cfg: ChainConfig) -> None:
    """Install cfg's logging levels and file on the forkchain loggers."""
    setup_logging(level=cfg.log_level, subsystem_levels=cfg.log_levels, log_file=cfg.log_file)


def load_config(config_path: Optional[str] = None) -> ChainConfig:
    """
    Load configuration from file and environment, falling back to defaults.

    Precedence: environment > JSON file > defaults. The loaded logging
    settings are applied before returning.

    Args:
        config_path: Optional path to a JSON config file

    Returns:
        ChainConfig instance
    """
    values = {}
    known = {f.name for f in fields(ChainConfig)}

    if config_path:
        data = json.loads(Path(config_path).read_text())
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown config keys: {', '.join(sorted(unknown))}")
        values.update(data)

    load_dotenv()
    for suffix, name in ENV_FIELDS.items():
        raw = os.environ.get(ENV_PREFIX + suffix)
        if raw is not None:
            values[name] = raw if name in STRING_FIELDS else int(raw)

    loaded = ChainConfig(**values)
    apply_logging(loaded)
    return loaded
