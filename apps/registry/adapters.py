from __future__ import annotations

import asyncio
import importlib
import json
import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Any, Protocol as TypingProtocol

from .errors import AdapterLoadError, RegistryLoadError
from .models import Protocol

LOGGER = logging.getLogger('registryguard.adapters')

LAZY_MARKER = '_lmtf'


class ExportKind(str, Enum):
    FUNCTION = 'function'
    MARKER = 'marker'
    OTHER = 'other'


def export_kind(value: Any, marker: str = LAZY_MARKER) -> ExportKind:
    if value == marker:
        return ExportKind.MARKER
    if callable(value) or value == ExportKind.FUNCTION.value:
        return ExportKind.FUNCTION
    return ExportKind.OTHER


@dataclass(frozen=True)
class AdapterModule:
    """Shape of an adapter: top-level object entries keyed by chain.

    Only entries whose value is an object are kept (``chain -> export key ->
    kind``); scalars such as ``methodology`` or ``timetravel`` are dropped,
    matching how the chain checks read a module.
    """

    ref: str
    chains: Mapping[str, Mapping[str, ExportKind]] = field(default_factory=dict)

    def __post_init__(self) -> None:
        frozen = {key: MappingProxyType(dict(value)) for key, value in self.chains.items()}
        object.__setattr__(self, 'chains', MappingProxyType(frozen))

    def keys(self) -> list[str]:
        return list(self.chains)

    @classmethod
    def from_exports(cls, ref: str, exports: Mapping[str, Any]) -> AdapterModule:
        chains: dict[str, dict[str, ExportKind]] = {}
        for key, value in exports.items():
            if isinstance(value, Mapping):
                chains[str(key)] = {str(name): export_kind(item) for name, item in value.items()}
        return cls(ref=ref, chains=chains)


class AdapterResolver(TypingProtocol):
    async def resolve(self, ref: str) -> AdapterModule:
        ...


class ManifestAdapterResolver:
    """Resolves adapters from a manifest exported by the adapter build.

    The manifest maps an adapter ref to its top-level exports, where function
    values are written as ``"function"`` and lazy entries as ``"_lmtf"``.
    """

    def __init__(self, manifest: Mapping[str, Mapping[str, Any]]) -> None:
        self._manifest = dict(manifest)

    @classmethod
    def from_file(cls, path: Path) -> ManifestAdapterResolver:
        if not path.exists():
            LOGGER.warning('adapter manifest missing at %s; adapter checks will report load failures', path)
            return cls({})
        try:
            payload = json.loads(path.read_text(encoding='utf-8'))
        except json.JSONDecodeError as exc:
            raise RegistryLoadError(str(path), f'invalid JSON: {exc}') from exc
        if not isinstance(payload, dict):
            raise RegistryLoadError(str(path), 'expected a JSON object')
        return cls(payload)

    async def resolve(self, ref: str) -> AdapterModule:
        exports = self._manifest.get(ref)
        if not isinstance(exports, Mapping):
            raise LookupError(f'no manifest entry for {ref}')
        return AdapterModule.from_exports(ref, exports)


class ImportlibAdapterResolver:
    """Imports Python adapter modules from a package and inspects their shape.

    ``aave/index.js`` resolves to ``<package>.aave.index``. The import runs in
    a worker thread so a slow module does not block sibling loads; nothing the
    module exports is ever called. When the module defines ``__all__`` only
    those names count as exports.
    """

    def __init__(self, package: str) -> None:
        self.package = package

    def module_name(self, ref: str) -> str:
        path = ref[:-3] if ref.endswith('.js') else ref
        parts = [part.replace('-', '_') for part in path.strip('/').split('/') if part]
        return '.'.join([self.package, *parts])

    async def resolve(self, ref: str) -> AdapterModule:
        module = await asyncio.to_thread(importlib.import_module, self.module_name(ref))
        names = getattr(module, '__all__', None)
        if names is None:
            names = [name for name in dir(module) if not name.startswith('_')]
        exports = {name: getattr(module, name) for name in names if hasattr(module, name)}
        if isinstance(exports.get('default'), Mapping):
            exports = {**exports, **exports['default']}
        return AdapterModule.from_exports(ref, exports)


def adapter_key(record: Protocol) -> tuple[str, str]:
    # records may share an id; the module keeps their results apart
    return record.id, record.module


@dataclass
class AdapterLoadResult:
    modules: dict[tuple[str, str], AdapterModule] = field(default_factory=dict)
    failures: dict[tuple[str, str], AdapterLoadError] = field(default_factory=dict)

    def module_for(self, record: Protocol) -> AdapterModule | None:
        return self.modules.get(adapter_key(record))

    def failure_for(self, record: Protocol) -> AdapterLoadError | None:
        return self.failures.get(adapter_key(record))


async def _load_one(
    resolver: AdapterResolver,
    record: Protocol,
    ref: str,
    timeout_seconds: float
) -> AdapterModule:
    try:
        return await asyncio.wait_for(resolver.resolve(ref), timeout=timeout_seconds)
    except asyncio.TimeoutError as exc:
        raise AdapterLoadError(ref, f'timed out after {timeout_seconds:g}s', entity_id=record.id) from exc
    except asyncio.CancelledError:
        raise
    except Exception as exc:
        raise AdapterLoadError(ref, f'{type(exc).__name__}: {exc}', entity_id=record.id) from exc


async def load_adapters(
    resolver: AdapterResolver,
    records: Iterable[Protocol],
    *,
    timeout_seconds: float = 30.0,
    skip_modules: Iterable[str] = ()
) -> AdapterLoadResult:
    """Resolve every record's adapter concurrently, keyed by (id, module).

    One failing load is recorded against its own record and never cancels
    the others.
    """
    if records is None:
        raise TypeError('records must be an iterable of protocols')
    skipped = frozenset(skip_modules)
    pending = [r for r in records if r.module and r.module not in skipped]

    outcomes = await asyncio.gather(
        *(_load_one(resolver, record, record.module, timeout_seconds) for record in pending),
        return_exceptions=True
    )

    result = AdapterLoadResult()
    for record, outcome in zip(pending, outcomes):
        if isinstance(outcome, AdapterLoadError):
            LOGGER.warning('adapter load failed id=%s name=%s: %s', record.id, record.name, outcome.detail)
            result.failures[adapter_key(record)] = outcome
        elif isinstance(outcome, BaseException):
            raise outcome
        else:
            result.modules[adapter_key(record)] = outcome

    LOGGER.info('adapters resolved loaded=%d failed=%d', len(result.modules), len(result.failures))
    return result
