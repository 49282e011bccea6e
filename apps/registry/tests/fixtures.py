from __future__ import annotations

from typing import Any

from apps.registry.chain_registry import ChainAliasTable, ChainCanonicalizer
from apps.registry.config import RegistryPolicy
from apps.registry.consistency import ConsistencyChecker
from apps.registry.models import RegistryData
from apps.registry.registry_index import RegistryIndex
from apps.registry.slugs import slugify

ALIAS_PAYLOAD: dict[str, Any] = {
    'chains': {
        'Ethereum': {'key': 'ethereum', 'geckoId': 'ethereum', 'chainId': 1},
        'BSC': {'key': 'bsc', 'geckoId': 'binancecoin', 'chainId': 56},
        'Avalanche': {'key': 'avax', 'geckoId': 'avalanche-2', 'chainId': 43114},
        'Arbitrum': {'key': 'arbitrum', 'geckoId': 'arbitrum', 'chainId': 42161},
        'Polygon': {'key': 'polygon', 'geckoId': 'matic-network', 'chainId': 137},
        'Bitcoin': {'geckoId': 'bitcoin'}
    },
    'aliases': {
        'Binance': 'BSC',
        'Avalanche C-Chain': 'Avalanche',
        'Matic': 'Polygon'
    },
    'synonyms': {'avax': 'avalanche'},
    'pseudoChains': ['Multi-Chain']
}


def alias_table() -> ChainAliasTable:
    return ChainAliasTable.from_payload(ALIAS_PAYLOAD)


def protocol(id: str, name: str, **fields: Any) -> dict[str, Any]:
    record = {
        'id': id,
        'name': name,
        'category': 'Dexs',
        'chains': ['Ethereum'],
        'module': f'{slugify(name) or id}/index.js'
    }
    record.update(fields)
    return record


def parent(id: str, name: str, **fields: Any) -> dict[str, Any]:
    record = {'id': id, 'name': name}
    record.update(fields)
    return record


def registry(
    protocols: list[dict[str, Any]] | None = None,
    parents: list[dict[str, Any]] | None = None,
    **collections: Any
) -> RegistryData:
    return RegistryData.model_validate({
        'protocols': protocols or [],
        'parentProtocols': parents or [],
        **collections
    })


def checker(data: RegistryData, policy: RegistryPolicy | None = None) -> ConsistencyChecker:
    policy = policy or RegistryPolicy()
    index = RegistryIndex.build(data, module_sentinels=policy.module_sentinels)
    return ConsistencyChecker(index, ChainCanonicalizer(alias_table()), policy)
