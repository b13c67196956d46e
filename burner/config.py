"""
Service configuration: built-in defaults, then an optional YAML file, then env vars.
"""
import copy
import os

import yaml

DEFAULTS = {
    "port": 3000,
    "log_level": "INFO",
    "redis": {"host": "localhost", "port": 6379, "socket_timeout": 5},
    # caps are None (unbounded) unless configured
    "burn": {
        "max_seconds": None,
        "max_workers": None,
        "max_mem_mb": None,
        "start_method": "spawn",
    },
}

# env var -> (config path, converter)
ENV_OVERRIDES = [
    ("PORT", ("port",), int),
    ("LOG_LEVEL", ("log_level",), str),
    ("REDIS_HOST", ("redis", "host"), str),
    ("REDIS_PORT", ("redis", "port"), int),
    ("BURN_MAX_SECONDS", ("burn", "max_seconds"), int),
    ("BURN_MAX_WORKERS", ("burn", "max_workers"), int),
    ("BURN_MAX_MEM_MB", ("burn", "max_mem_mb"), int),
    ("BURN_START_METHOD", ("burn", "start_method"), str),
]


def _merge(base, extra):
    for k, v in extra.items():
        if isinstance(v, dict) and isinstance(base.get(k), dict):
            _merge(base[k], v)
        else:
            base[k] = v
    return base


def load_config(path=None, environ=None):
    cfg = copy.deepcopy(DEFAULTS)
    if path:
        with open(path) as fh:
            _merge(cfg, yaml.safe_load(fh) or {})

    environ = os.environ if environ is None else environ
    for name, keys, conv in ENV_OVERRIDES:
        raw = environ.get(name)
        if not raw:
            continue
        try:
            value = conv(raw)
        except ValueError:
            raise ValueError(f"{name} must be an integer, got {raw!r}")
        section = cfg
        for k in keys[:-1]:
            section = section.setdefault(k, {})
        section[keys[-1]] = value
    return cfg
