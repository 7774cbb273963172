"""
Logging for ForkChain.

Every module logs through a child of the "forkchain" logger, named after
its subsystem (chain, validator, mempool, block_producer). Console output
is colored with colorlog. Levels can be set for the whole package and per
subsystem; load_config applies the levels a ChainConfig carries.
"""

import logging
import sys
from pathlib import Path
from typing import Dict, Optional, Union

import colorlog

ROOT_LOGGER = "forkchain"

Level = Union[int, str]


def _coerce_level(level: Level) -> int:
    """Accept logging constants or level names ("debug", "INFO")."""
    if isinstance(level, int):
        return level
    value = logging.getLevelName(level.upper())
    if not isinstance(value, int):
        raise ValueError(f"Unknown log level: {level}")
    return value


class ChainLogger:
    """Owns the handlers on the forkchain root logger."""

    _initialized = False
    _log_file: Optional[Path] = None
    _tuned: Dict[str, int] = {}

    @classmethod
    def setup(
        cls,
        level: Level = logging.INFO,
        subsystem_levels: Optional[Dict[str, Level]] = None,
        log_file: Optional[str] = None,
    ) -> None:
        """
        (Re)configure package logging.

        Handlers are replaced on every call, so configuration loaded later
        overrides the defaults installed by the first get_logger call.

        Args:
            level: Level for the whole package
            subsystem_levels: Overrides per subsystem, e.g. {"validator": "DEBUG"}
            log_file: Also write plain-text records to this file
        """
        root_level = _coerce_level(level)
        root_logger = logging.getLogger(ROOT_LOGGER)
        root_logger.setLevel(root_level)
        for handler in root_logger.handlers:
            handler.close()
        root_logger.handlers.clear()

        # Handlers pass everything; the loggers decide what is emitted
        console_handler = colorlog.StreamHandler(sys.stdout)
        console_handler.setFormatter(
            colorlog.ColoredFormatter(
                "%(log_color)s%(asctime)s [%(name)s] %(levelname)-8s%(reset)s %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
                log_colors={
                    "DEBUG": "cyan",
                    "INFO": "green",
                    "WARNING": "yellow",
                    "ERROR": "red",
                    "CRITICAL": "red,bg_white",
                },
            )
        )
        root_logger.addHandler(console_handler)

        cls._log_file = Path(log_file) if log_file else None
        if cls._log_file is not None:
            cls._log_file.parent.mkdir(exist_ok=True, parents=True)
            file_handler = logging.FileHandler(cls._log_file)
            file_handler.setFormatter(
                logging.Formatter(
                    "%(asctime)s [%(name)s] %(levelname)-8s %(message)s",
                    datefmt="%Y-%m-%d %H:%M:%S",
                )
            )
            root_logger.addHandler(file_handler)

        # Overrides from an earlier call fall back to the package level
        for name in cls._tuned:
            logging.getLogger(f"{ROOT_LOGGER}.{name}").setLevel(logging.NOTSET)
        cls._tuned = {
            name: _coerce_level(sub_level) for name, sub_level in (subsystem_levels or {}).items()
        }
        for name, sub_level in cls._tuned.items():
            logging.getLogger(f"{ROOT_LOGGER}.{name}").setLevel(sub_level)

        cls._initialized = True

    @classmethod
    def get_logger(cls, name: str) -> logging.Logger:
        """
        Get a logger for a specific subsystem.

        Args:
            name: Subsystem name (e.g., 'chain', 'validator', 'mempool')
        """
        if not cls._initialized:
            cls.setup()

        return logging.getLogger(f"{ROOT_LOGGER}.{name}")


def get_logger(name: str) -> logging.Logger:
    return ChainLogger.get_logger(name)


def setup_logging(
    level: Level = logging.INFO,
    subsystem_levels: Optional[Dict[str, Level]] = None,
    log_file: Optional[str] = None,
) -> None:
    ChainLogger.setup(level=level, subsystem_levels=subsystem_levels, log_file=log_file)
