"""Load ``AppConfig`` from YAML plus ``LEDGER_*`` environment overrides."""

from __future__ import annotations

import os
from pathlib import Path

import yaml

from crypto_ledger.config.schema import AppConfig

# env var -> (section, key)
ENV_OVERRIDES = {
    "LEDGER_DATABASE_URL": ("database", "url"),
    "LEDGER_LOG_LEVEL": ("logging", "level"),
    "LEDGER_LOG_FORMAT": ("logging", "format"),
    "LEDGER_DELETE_POLICY": ("ledger", "portfolio_delete_policy"),
}


def _read_yaml(path: Path) -> dict:
    with open(path) as f:
        data = yaml.safe_load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: expected a mapping of config sections")
    return data


def load_config(path: str | Path | None = None) -> AppConfig:
    """Build the config; a missing *path* (or None) means defaults.

    Non-empty environment variables in ``ENV_OVERRIDES`` win over the file.
    """
    data: dict = {}
    if path is not None and Path(path).exists():
        data = _read_yaml(Path(path))

    for env_name, (section, key) in ENV_OVERRIDES.items():
        value = os.environ.get(env_name)
        if value:
            data.setdefault(section, {})[key] = value

    return AppConfig.model_validate(data)
