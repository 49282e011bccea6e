from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from types import MappingProxyType
from typing import Any

from .config import get_settings, resolve_path
from .errors import RegistryLoadError, UnknownChainError

LOGGER = logging.getLogger('registryguard.chains')


@dataclass(frozen=True)
class ChainInfo:
    key: str
    gecko_id: str | None = None
    chain_id: int | None = None
    cmc_id: str | None = None

    @property
    def stable_id(self) -> str | None:
        for value in (self.chain_id, self.cmc_id, self.gecko_id):
            if value is not None and str(value).strip():
                return str(value).strip()
        return None


@dataclass(frozen=True)
class CanonicalChain:
    display_name: str
    key: str
    stable_id: str
    gecko_id: str | None = None


def _default_key(display_name: str) -> str:
    return display_name.strip().lower().replace(' ', '_')


def _optional_int(value: Any) -> int | None:
    if value is None or value == '':
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _optional_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


@dataclass(frozen=True)
class ChainAliasTable:
    """Immutable alias configuration the canonicalizer resolves against.

    ``chains`` maps each canonical display name to its identifiers,
    ``aliases`` maps raw spellings to a display name, ``synonyms`` pairs
    adapter keys that may stand in for each other (``avax``/``avalanche``)
    and ``pseudo_chains`` lists declared-chain values that are accepted
    without resolution.
    """

    chains: Mapping[str, ChainInfo] = field(default_factory=dict)
    aliases: Mapping[str, str] = field(default_factory=dict)
    synonyms: Mapping[str, str] = field(default_factory=dict)
    pseudo_chains: frozenset[str] = frozenset({'Multi-Chain'})

    def __post_init__(self) -> None:
        object.__setattr__(self, 'chains', MappingProxyType(dict(self.chains)))
        object.__setattr__(self, 'aliases', MappingProxyType(dict(self.aliases)))
        object.__setattr__(self, 'synonyms', MappingProxyType(dict(self.synonyms)))
        object.__setattr__(self, 'pseudo_chains', frozenset(self.pseudo_chains))
        self._validate()

    def _validate(self) -> None:
        owners: dict[str, str] = {}
        for display_name, info in self.chains.items():
            stable_id = info.stable_id
            if stable_id is None:
                raise ValueError(f'chain {display_name!r} has no stable id')
            if stable_id in owners:
                raise ValueError(
                    f'chains {owners[stable_id]!r} and {display_name!r} share stable id {stable_id!r}'
                )
            owners[stable_id] = display_name

        for alias, display_name in self.aliases.items():
            if display_name not in self.chains:
                raise ValueError(f'alias {alias!r} points to unknown chain {display_name!r}')

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> ChainAliasTable:
        raw_chains = payload.get('chains') if isinstance(payload.get('chains'), dict) else {}
        chains: dict[str, ChainInfo] = {}
        for display_name, raw in raw_chains.items():
            info = raw if isinstance(raw, dict) else {}
            chains[str(display_name)] = ChainInfo(
                key=_optional_str(info.get('key')) or _default_key(str(display_name)),
                gecko_id=_optional_str(info.get('geckoId')),
                chain_id=_optional_int(info.get('chainId')),
                cmc_id=_optional_str(info.get('cmcId'))
            )

        aliases = payload.get('aliases') if isinstance(payload.get('aliases'), dict) else {}
        synonyms = payload.get('synonyms') if isinstance(payload.get('synonyms'), dict) else {}
        pseudo = payload.get('pseudoChains')
        return cls(
            chains=chains,
            aliases={str(k): str(v) for k, v in aliases.items()},
            synonyms={str(k).lower(): str(v).lower() for k, v in synonyms.items()},
            pseudo_chains=frozenset(str(x) for x in pseudo) if isinstance(pseudo, list) else frozenset({'Multi-Chain'})
        )


class ChainCanonicalizer:
    def __init__(self, table: ChainAliasTable) -> None:
        if not isinstance(table, ChainAliasTable):
            raise TypeError('ChainCanonicalizer needs a ChainAliasTable')
        self.table = table
        self._folded: dict[str, str] = {}
        for display_name, info in table.chains.items():
            self._folded.setdefault(display_name.strip().lower(), display_name)
            self._folded.setdefault(info.key.lower(), display_name)
        for alias, display_name in table.aliases.items():
            self._folded.setdefault(alias.strip().lower(), display_name)

        self._synonyms: dict[str, set[str]] = {}
        for left, right in table.synonyms.items():
            self._synonyms.setdefault(left, set()).add(right)
            self._synonyms.setdefault(right, set()).add(left)

    def _lookup(self, raw: str) -> str | None:
        if raw in self.table.chains:
            return raw
        if raw in self.table.aliases:
            return self.table.aliases[raw]
        return self._folded.get(raw.strip().lower())

    def _resolve(self, raw: str) -> str | None:
        found = self._lookup(raw)
        if found is not None:
            return found
        for synonym in sorted(self.synonyms_of(raw)):
            found = self._lookup(synonym)
            if found is not None:
                return found
        return None

    def canonicalize(self, raw_name: str, protocol: str | None = None) -> CanonicalChain:
        if not isinstance(raw_name, str):
            raise TypeError(f'chain name must be a string, got {type(raw_name).__name__}')
        display_name = self._resolve(raw_name)
        if display_name is None:
            raise UnknownChainError(raw_name, protocol)
        info = self.table.chains[display_name]
        return CanonicalChain(
            display_name=display_name,
            key=info.key,
            stable_id=info.stable_id or '',
            gecko_id=info.gecko_id
        )

    def display_name(self, raw_name: str, protocol: str | None = None) -> str:
        return self.canonicalize(raw_name, protocol).display_name

    def chain_key(self, raw_name: str, protocol: str | None = None) -> str:
        return self.canonicalize(raw_name, protocol).key

    def is_known(self, raw_name: str) -> bool:
        return self._resolve(raw_name) is not None

    def is_pseudo(self, raw_name: str) -> bool:
        return raw_name in self.table.pseudo_chains

    def synonyms_of(self, key: str) -> set[str]:
        return set(self._synonyms.get(key.strip().lower(), set()))

    def module_has_chain(self, exports: Mapping[str, Any], key: str) -> bool:
        if key in exports:
            return True
        return any(synonym in exports for synonym in self.synonyms_of(key))

    def stable_ids(self) -> set[str]:
        return {info.stable_id for info in self.table.chains.values() if info.stable_id}


def _read_alias_payload(path: Path) -> dict[str, Any]:
    try:
        payload = json.loads(path.read_text(encoding='utf-8'))
    except json.JSONDecodeError as exc:
        raise RegistryLoadError(str(path), f'invalid JSON: {exc}') from exc
    if not isinstance(payload, dict):
        raise RegistryLoadError(str(path), 'expected a JSON object')
    return payload


@lru_cache(maxsize=4)
def _load_chain_alias_table_cached(path_value: str) -> ChainAliasTable:
    path = resolve_path(path_value)
    if not path.exists():
        LOGGER.warning('chain alias table missing at %s; every chain will be unknown', path)
        return ChainAliasTable()
    try:
        return ChainAliasTable.from_payload(_read_alias_payload(path))
    except ValueError as exc:
        if isinstance(exc, RegistryLoadError):
            raise
        raise RegistryLoadError(str(path), str(exc)) from exc


def load_chain_alias_table(path_value: str | None = None) -> ChainAliasTable:
    return _load_chain_alias_table_cached(path_value or get_settings().chain_aliases_path)


load_chain_alias_table.cache_clear = _load_chain_alias_table_cached.cache_clear  # type: ignore[attr-defined]
