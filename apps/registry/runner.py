from __future__ import annotations

import asyncio
import logging

from .adapters import AdapterResolver, load_adapters
from .chain_registry import ChainAliasTable, ChainCanonicalizer
from .config import RegistryPolicy
from .consistency import ConsistencyChecker
from .models import RegistryData
from .registry_index import RegistryIndex
from .stats import RegistryStats, check_stats
from .violations import ViolationReport

LOGGER = logging.getLogger('registryguard.runner')


async def run_registry_checks(
    data: RegistryData,
    table: ChainAliasTable,
    *,
    policy: RegistryPolicy | None = None,
    resolver: AdapterResolver | None = None,
    timeout_seconds: float = 30.0,
    stats: RegistryStats | None = None
) -> ViolationReport:
    """Build the derived views once and run every check over them.

    Adapter-dependent checks only run when a resolver is given; protocol and
    treasury adapters are resolved concurrently.
    """
    if data is None or table is None:
        raise TypeError('registry data and chain alias table are required')
    policy = policy or RegistryPolicy()

    canonicalizer = ChainCanonicalizer(table)
    index = RegistryIndex.build(data, module_sentinels=policy.module_sentinels)
    checker = ConsistencyChecker(index, canonicalizer, policy)

    protocol_adapters = treasury_adapters = None
    if resolver is not None:
        protocol_adapters, treasury_adapters = await asyncio.gather(
            load_adapters(
                resolver, data.protocols,
                timeout_seconds=timeout_seconds,
                skip_modules=policy.no_adapter_modules
            ),
            load_adapters(
                resolver, data.treasuries,
                timeout_seconds=timeout_seconds,
                skip_modules=policy.no_adapter_modules
            )
        )

    report = checker.run_all(protocol_adapters=protocol_adapters, treasury_adapters=treasury_adapters)
    if stats is not None:
        report.extend(check_stats(stats, policy.stats_tolerance))

    for violation in report.soft():
        LOGGER.warning('advisory %s id=%s: %s', violation.kind.value, violation.entity_id, violation.detail)
    return report
