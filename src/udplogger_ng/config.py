from __future__ import annotations

import configparser
import logging
from dataclasses import dataclass, fields, replace
from typing import Dict, Tuple

from udplogger_ng.errors import StartupError

CONFIG_SECTION = "udplogger"

# option -> (minimum, maximum); values outside are clamped, not rejected.
BOUNDS: Dict[str, Tuple[int, int]] = {
    "timeout": (5, 600),
    "clients": (10, 65536),
    "wbuf": (1024, 1048576),
    "rbuf": (65536, 1024 * 1048576),
}

@dataclass(frozen=True)
class ReceiverConfig:
    ip: str = "0.0.0.0"
    port: int = 6666
    log_dir: str = "."
    timeout: int = 10
    clients: int = 1024
    wbuf: int = 65536
    rbuf: int = 8 * 1048576

    def clamped(self) -> ReceiverConfig:
        """Returns a copy with every bounded option forced into range."""
        changes = {}
        for name, (low, high) in BOUNDS.items():
            value = getattr(self, name)
            bounded = min(max(value, low), high)
            if bounded != value:
                logging.debug(f"Option {name}={value} out of range, using {bounded}")
                changes[name] = bounded
        return replace(self, **changes)

    def override(self, **values) -> ReceiverConfig:
        """Returns a copy with every non-None keyword applied."""
        return replace(self, **{k: v for k, v in values.items() if v is not None})

def load_config_file(path: str, base: ReceiverConfig | None = None) -> ReceiverConfig:
    """
    Reads option values from the [udplogger] section of an INI file.
    Unknown keys are ignored; bad numbers raise StartupError.
    """
    base = base or ReceiverConfig()
    parser = configparser.ConfigParser()
    try:
        with open(path, "r") as f:
            parser.read_file(f)
    except (OSError, configparser.Error) as e:
        raise StartupError(f"Could not read config file {path}: {e}") from e

    if not parser.has_section(CONFIG_SECTION):
        logging.warning(f"No [{CONFIG_SECTION}] section in {path}, using defaults")
        return base

    section = parser[CONFIG_SECTION]
    values = {}
    for field in fields(ReceiverConfig):
        if field.name not in section:
            continue
        raw = section[field.name].strip()
        if field.type in ("int", int):
            try:
                values[field.name] = int(raw)
            except ValueError as e:
                raise StartupError(f"Invalid value for {field.name} in {path}: {raw!r}") from e
        else:
            values[field.name] = raw
    return base.override(**values)
