#!/usr/bin/env python3
"""
Environment configuration for the phone network SSID detector.

Settings are SSIDDETECT_ environment variables. Before reading them, .env
(defaults) and .env.local (site overrides) beside this module are merged
into the environment; a variable the shell already exports is never
replaced.
"""

import os
from pathlib import Path

ENV_PREFIX = 'SSIDDETECT_'
ENV_FILES = ('.env', '.env.local')

TRUE_VALUES = ('true', '1', 'yes', 'on')


def _clean_value(raw):
    value = raw.split('#', 1)[0].strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in '"\'':
        value = value[1:-1]
    return value


def parse_env_file(filepath):
    """KEY=VALUE pairs from one env file; a missing file yields nothing"""
    path = Path(filepath)
    if not path.is_file():
        return {}

    settings = {}
    for line in path.read_text().splitlines():
        line = line.strip()
        if line.startswith('#'):
            continue
        key, sep, raw = line.partition('=')
        if sep and key.strip():
            settings[key.strip()] = _clean_value(raw)
    return settings


def load_env_files(directory=None):
    """Merge the env files into os.environ, later files winning over earlier ones"""
    base = Path(directory) if directory else Path(__file__).resolve().parent

    merged = {}
    for name in ENV_FILES:
        merged.update(parse_env_file(base / name))

    for key, value in merged.items():
        os.environ.setdefault(key, value)
    return merged


def get_env(key, fallback=''):
    return os.environ.get(ENV_PREFIX + key, fallback)


def _typed(key, cast, fallback):
    raw = get_env(key, None)
    if raw is None:
        return fallback
    try:
        return cast(raw)
    except ValueError:
        return fallback


def get_env_bool(key, fallback=False):
    raw = get_env(key, None)
    if raw is None:
        return fallback
    return raw.strip().lower() in TRUE_VALUES


def get_env_int(key, fallback=0):
    return _typed(key, int, fallback)


def get_env_float(key, fallback=0.0):
    return _typed(key, float, fallback)
