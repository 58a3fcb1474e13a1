"""
Tiny Language configuration
Limits and integer width shared by the parser, lowering and interpreter
"""

import configparser
import logging
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Optional, Union

from utilities import int_bounds

logger = logging.getLogger(__name__)

CONFIG_SECTION = "tinylang"


class ConfigError(ValueError):
    """Invalid configuration value"""
    pass


@dataclass(frozen=True)
class TinyLangConfig:
    """Runtime limits for one parse/run unit"""
    # None means no limit on the source text length
    max_source_length: Optional[int] = None
    # Width of the signed integer used for literals and arithmetic
    int_bits: int = 64

    def __post_init__(self):
        if self.int_bits < 2:
            raise ConfigError(f"int_bits must be at least 2, got {self.int_bits}")
        if self.max_source_length is not None and self.max_source_length < 0:
            raise ConfigError(
                f"max_source_length must be non-negative, got {self.max_source_length}"
            )

    @property
    def min_int(self) -> int:
        return int_bounds(self.int_bits)[0]

    @property
    def max_int(self) -> int:
        return int_bounds(self.int_bits)[1]

    def with_overrides(self, **overrides) -> "TinyLangConfig":
        """Copy of this config with the non-None overrides applied"""
        changes = {key: value for key, value in overrides.items() if value is not None}
        return replace(self, **changes) if changes else self


DEFAULT_CONFIG = TinyLangConfig()


def _read_optional_int(section: configparser.SectionProxy, key: str) -> Optional[int]:
    raw = section.get(key, fallback=None)
    if raw is None or raw.strip().lower() in ("", "none", "unlimited"):
        return None
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"'{key}' must be an integer, got {raw!r}")


def load_config(path: Union[str, Path]) -> TinyLangConfig:
    """Load configuration from the [tinylang] section of an INI file

    Missing keys keep their defaults. A missing section yields the default
    configuration.

    Raises:
        ConfigError: if the file cannot be read or a value is invalid
    """
    parser = configparser.ConfigParser()
    try:
        read_files = parser.read(str(path), encoding="utf-8")
    except configparser.Error as e:
        raise ConfigError(f"Cannot parse config file {path}: {e}")

    if not read_files:
        raise ConfigError(f"Config file not found: {path}")

    if not parser.has_section(CONFIG_SECTION):
        logger.warning("No [%s] section in %s, using defaults", CONFIG_SECTION, path)
        return DEFAULT_CONFIG

    section = parser[CONFIG_SECTION]
    max_source_length = _read_optional_int(section, "max_source_length")
    int_bits = _read_optional_int(section, "int_bits")

    config = TinyLangConfig(
        max_source_length=max_source_length,
        int_bits=int_bits if int_bits is not None else DEFAULT_CONFIG.int_bits,
    )
    logger.debug("Loaded config from %s: %s", path, config)
    return config
