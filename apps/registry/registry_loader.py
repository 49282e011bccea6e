from __future__ import annotations

import json
import logging
from functools import lru_cache
from pathlib import Path
from typing import Any

from .config import get_settings, resolve_path
from .errors import RegistryLoadError
from .models import RegistryData
from .stats import RegistryStats

LOGGER = logging.getLogger('registryguard.loader')


def _read_json(path: Path) -> Any:
    try:
        return json.loads(path.read_text(encoding='utf-8'))
    except FileNotFoundError as exc:
        raise RegistryLoadError(str(path), 'file not found') from exc
    except json.JSONDecodeError as exc:
        raise RegistryLoadError(str(path), f'invalid JSON: {exc}') from exc


def _emissions_list(raw: Any) -> list[dict[str, Any]]:
    # dumps key emissions adapters by name: {"aave": {"meta": {...}}}
    if isinstance(raw, dict):
        return [
            {'name': name, 'meta': (value or {}).get('meta', {}) if isinstance(value, dict) else {}}
            for name, value in raw.items()
        ]
    if isinstance(raw, list):
        return raw
    return []


def parse_registry(payload: Any, *, source: str = '<memory>') -> RegistryData:
    if not isinstance(payload, dict):
        raise RegistryLoadError(source, 'expected a JSON object')
    body = dict(payload)
    body['emissions'] = _emissions_list(body.get('emissions'))
    return RegistryData.model_validate(body)


@lru_cache(maxsize=4)
def _load_registry_cached(path_value: str) -> RegistryData:
    path = resolve_path(path_value)
    data = parse_registry(_read_json(path), source=str(path))
    LOGGER.info(
        'registry loaded path=%s protocols=%d parents=%d treasuries=%d emissions=%d',
        path, len(data.protocols), len(data.parent_protocols), len(data.treasuries), len(data.emissions)
    )
    return data


def load_registry(path_value: str | None = None) -> RegistryData:
    return _load_registry_cached(path_value or get_settings().registry_path)


load_registry.cache_clear = _load_registry_cached.cache_clear  # type: ignore[attr-defined]


def load_stats(path_value: str) -> RegistryStats:
    path = resolve_path(path_value)
    payload = _read_json(path)
    if not isinstance(payload, dict):
        raise RegistryLoadError(str(path), 'expected a JSON object')
    return RegistryStats.model_validate(payload)

