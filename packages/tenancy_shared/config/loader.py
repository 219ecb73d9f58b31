"""Layered configuration loading.

Sources are merged lowest precedence first:

    model defaults < ~/.config/tenancy/tenancy.yaml < TENANCY_* env < CLI params

Environment keys drop the ``TENANCY_`` prefix, split on ``__`` and are
lowercased, so ``TENANCY_COMPONENTS__SUBSTRATE__POSTGRES__POOL_SIZE=9``
sets ``components.substrate.postgres.pool_size``.
"""

from __future__ import annotations

import json
import os
import re
from functools import reduce
from pathlib import Path
from typing import Any, Mapping

import yaml

from .models import DEFAULT_CONFIG_PATH, TenancySettings

ENV_PREFIX = "TENANCY_"

_LITERALS: dict[str, Any] = {"true": True, "false": False, "null": None, "none": None}
_INT = re.compile(r"[+-]?\d+")
_FLOAT = re.compile(r"[+-]?(\d+\.\d*|\.\d+|\d+)([eE][+-]?\d+)?")


def load_settings(
    *,
    cli_params: Mapping[str, Any] | None = None,
    environ: Mapping[str, str] | None = None,
    config_path: str | Path | None = None,
) -> TenancySettings:
    """Build validated root settings from every configuration layer."""
    return TenancySettings.model_validate(
        load_config(cli_params=cli_params, environ=environ, config_path=config_path)
    )


def load_config(
    *,
    cli_params: Mapping[str, Any] | None = None,
    environ: Mapping[str, str] | None = None,
    config_path: str | Path | None = None,
    env_prefix: str = ENV_PREFIX,
) -> dict[str, Any]:
    """Return the merged plain mapping before model validation."""
    layers = (
        read_yaml_layer(Path(config_path) if config_path else DEFAULT_CONFIG_PATH),
        read_env_layer(os.environ if environ is None else environ, env_prefix),
        dict(cli_params or {}),
    )
    return reduce(deep_merge, layers, {})


def read_yaml_layer(path: Path) -> dict[str, Any]:
    if not path.is_file():
        return {}
    document = yaml.safe_load(path.read_text(encoding="utf-8"))
    if document is None:
        return {}
    if not isinstance(document, dict):
        raise ValueError(f"Config file must contain a top-level mapping: {path}")
    return document


def read_env_layer(environ: Mapping[str, str], prefix: str) -> dict[str, Any]:
    layer: dict[str, Any] = {}
    for name, raw in environ.items():
        if not name.startswith(prefix):
            continue
        segments = [part.lower() for part in name[len(prefix) :].split("__") if part]
        if not segments:
            continue
        *parents, leaf = segments
        node = layer
        for parent in parents:
            if not isinstance(node.get(parent), dict):
                node[parent] = {}
            node = node[parent]
        node[leaf] = parse_env_value(raw)
    return layer


def parse_env_value(raw: str) -> Any:
    """Decode env strings that plainly spell a literal, number, or JSON value."""
    text = raw.strip()
    if text.lower() in _LITERALS:
        return _LITERALS[text.lower()]
    if _INT.fullmatch(text):
        return int(text)
    if _FLOAT.fullmatch(text):
        return float(text)
    if text[:1] in ("{", "["):
        try:
            return json.loads(text)
        except json.JSONDecodeError:
            pass
    return raw


def deep_merge(lower: Mapping[str, Any], upper: Mapping[str, Any]) -> dict[str, Any]:
    """Merge ``upper`` onto ``lower``; nested mappings merge key by key."""
    merged = {str(key): value for key, value in lower.items()}
    for key, value in upper.items():
        current = merged.get(str(key))
        if isinstance(current, Mapping) and isinstance(value, Mapping):
            merged[str(key)] = deep_merge(current, value)
        elif isinstance(value, Mapping):
            merged[str(key)] = deep_merge({}, value)
        else:
            merged[str(key)] = value
    return merged
