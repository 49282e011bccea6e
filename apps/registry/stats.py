from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from .violations import Violation, ViolationKind, collect


class BucketStats(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra='allow')

    on_chain_mcap: float = Field(default=0.0, alias='onChainMcap')
    active_mcap: float = Field(default=0.0, alias='activeMcap')
    defi_active_tvl: float = Field(default=0.0, alias='defiActiveTvl')
    asset_count: int = Field(default=0, alias='assetCount')


class ChainStats(BaseModel):
    model_config = ConfigDict(extra='allow')

    base: BucketStats | None = None


class RegistryStats(BaseModel):
    """Aggregate asset stats as served by the stats endpoint."""

    model_config = ConfigDict(populate_by_name=True, extra='allow')

    total_on_chain_mcap: float = Field(default=0.0, alias='totalOnChainMcap')
    total_active_mcap: float = Field(default=0.0, alias='totalActiveMcap')
    total_defi_active_tvl: float = Field(default=0.0, alias='totalDefiActiveTvl')
    asset_count: int = Field(default=0, alias='assetCount')
    by_category: dict[str, BucketStats] = Field(default_factory=dict, alias='byCategory')
    by_platform: dict[str, BucketStats] = Field(default_factory=dict, alias='byPlatform')
    by_chain: dict[str, ChainStats] = Field(default_factory=dict, alias='byChain')


def _active_exceeds(scope: str, name: str, active: float, on_chain: float) -> Violation:
    return Violation(
        kind=ViolationKind.STATS_ACTIVE_EXCEEDS_ONCHAIN,
        entity_id=f'{scope}:{name}',
        subject='activeMcap',
        detail=f'{scope} {name}: active mcap {active:,.2f} exceeds on-chain mcap {on_chain:,.2f}'
    )


def check_stats(stats: RegistryStats, tolerance: float) -> list[Violation]:
    """Category sums must land within ``tolerance`` of the reported total."""
    if stats is None:
        raise TypeError('stats must not be None')
    if tolerance < 0:
        raise ValueError('tolerance must be >= 0')

    violations = []
    totals = (
        ('totalOnChainMcap', stats.total_on_chain_mcap),
        ('totalActiveMcap', stats.total_active_mcap),
        ('totalDefiActiveTvl', stats.total_defi_active_tvl)
    )
    for label, value in totals:
        if value < 0:
            violations.append(Violation(
                kind=ViolationKind.STATS_TOTAL_MISMATCH,
                entity_id='total',
                subject=label,
                detail=f'{label} is negative: {value:,.2f}'
            ))

    total = stats.total_on_chain_mcap
    category_sum = sum(bucket.on_chain_mcap for bucket in stats.by_category.values())
    band = abs(total) * tolerance
    if abs(category_sum - total) > band:
        violations.append(Violation(
            kind=ViolationKind.STATS_TOTAL_MISMATCH,
            entity_id='total',
            subject='byCategory.onChainMcap',
            detail=(
                f'sum of category on-chain mcap {category_sum:,.2f} differs from total '
                f'{total:,.2f} by more than {tolerance:.1%}'
            )
        ))

    for label, value in totals[1:]:
        if value > total:
            violations.append(Violation(
                kind=ViolationKind.STATS_TOTAL_MISMATCH,
                entity_id='total',
                subject=label,
                detail=f'{label} {value:,.2f} exceeds totalOnChainMcap {total:,.2f}'
            ))

    for scope, buckets in (('category', stats.by_category), ('platform', stats.by_platform)):
        for name, bucket in buckets.items():
            if bucket.active_mcap > bucket.on_chain_mcap:
                violations.append(_active_exceeds(scope, name, bucket.active_mcap, bucket.on_chain_mcap))
    for name, chain in stats.by_chain.items():
        if chain.base is not None and chain.base.active_mcap > chain.base.on_chain_mcap:
            violations.append(_active_exceeds('chain', name, chain.base.active_mcap, chain.base.on_chain_mcap))

    return collect(violations)
