from functools import lru_cache

import yaml

from . import paths

DEFAULTS: dict = {
    "heartbeat_interval_seconds": 30,
    "offline_after_seconds": 300,
    "settle_delay_seconds": 0.5,
    "default_window": "0",
    "history_limit": 50,
    "retention_hours": 24,
    "tmux_timeout_seconds": 10,
}

_NUMERIC_KEYS = {
    "heartbeat_interval_seconds",
    "offline_after_seconds",
    "settle_delay_seconds",
    "history_limit",
    "retention_hours",
    "tmux_timeout_seconds",
}


def _validate_config(cfg: dict) -> None:
    """Validate config structure. Fail fast on invalid types."""
    if not isinstance(cfg, dict):
        raise ValueError(f"Config must be a dict, got {type(cfg).__name__}")

    unknown = sorted(set(cfg) - set(DEFAULTS))
    if unknown:
        raise ValueError(f"Unknown config keys: {', '.join(unknown)}")

    for key in _NUMERIC_KEYS & set(cfg):
        value = cfg[key]
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValueError(f"Config '{key}' must be a number, got {type(value).__name__}")
        if value < 0:
            raise ValueError(f"Config '{key}' cannot be negative")

    if "default_window" in cfg and not isinstance(cfg["default_window"], (str, int)):
        raise ValueError("Config 'default_window' must be a string or integer")


def clear_cache():
    load_config.cache_clear()


@lru_cache(maxsize=1)
def load_config() -> dict:
    """Load config.yaml merged over DEFAULTS; defaults alone when the file is absent."""
    path = paths.config_file()
    cfg = dict(DEFAULTS)
    if not path.exists():
        return cfg
    with open(path) as f:
        loaded = yaml.safe_load(f) or {}
    _validate_config(loaded)
    cfg.update(loaded)
    cfg["default_window"] = str(cfg["default_window"])
    return cfg


def get(key: str):
    return load_config()[key]


def init_config() -> bool:
    """Write the defaults to config.yaml if missing. Returns True when a file was created."""
    target = paths.config_file()
    if target.exists():
        return False

    target.parent.mkdir(parents=True, exist_ok=True)
    with open(target, "w") as f:
        yaml.safe_dump(DEFAULTS, f, sort_keys=False)
    clear_cache()
    return True
